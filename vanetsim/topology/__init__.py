"""
Topology Layer - vehicles to network endpoints

Components:
- topology_builder: endpoints, mobility, shared medium and addressing
"""

from .topology_builder import (
    TopologyBuilder, Topology, NetworkEndpoint, ChannelConfig, allocate_addresses
)

__all__ = ['TopologyBuilder', 'Topology', 'NetworkEndpoint', 'ChannelConfig', 'allocate_addresses']
