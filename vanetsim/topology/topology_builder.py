"""
Topology builder

Maps vehicles onto network endpoints:
- one endpoint per vehicle; on a fresh engine endpoint id == vehicle id
- waypoint mobility attached per endpoint (empty traces stay stationary)
- every endpoint on one shared broadcast channel
- addresses from a single block, wide enough for more than 254 hosts
"""

import logging
from dataclasses import dataclass
from ipaddress import IPv4Address, IPv4Network
from typing import Dict, List, Optional, Sequence

import networkx as nx

from ..engine.base import SimulationEngine
from ..errors import CapacityError, ConfigurationError
from ..traces.trace_loader import VehicleTrace


DEFAULT_NETWORK = "10.1.0.0/16"
MEDIUM_NODE = "medium"


@dataclass
class ChannelConfig:
    """Shared channel parameters"""
    data_rate_bps: float = 100e6
    delay_s: float = 6560e-9
    queue_packets: int = 50


@dataclass
class NetworkEndpoint:
    """Network side of one vehicle"""
    id: int
    address: IPv4Address
    trace: VehicleTrace

    @property
    def stationary(self) -> bool:
        return self.trace.is_empty


@dataclass
class Topology:
    """Endpoints on one shared medium"""
    endpoints: List[NetworkEndpoint]
    network: IPv4Network
    channel: ChannelConfig

    def __post_init__(self):
        self._by_address: Dict[IPv4Address, NetworkEndpoint] = {
            ep.address: ep for ep in self.endpoints
        }
        self._by_id: Dict[int, NetworkEndpoint] = {ep.id: ep for ep in self.endpoints}

    def __len__(self):
        return len(self.endpoints)

    def address_of(self, endpoint_id: int) -> IPv4Address:
        return self._by_id[endpoint_id].address

    def by_address(self, address) -> Optional[NetworkEndpoint]:
        return self._by_address.get(IPv4Address(address))

    def graph(self) -> nx.Graph:
        """Star view: each endpoint attached to the shared medium node"""
        G = nx.Graph()
        G.add_node(MEDIUM_NODE, kind='medium',
                   data_rate_bps=self.channel.data_rate_bps)
        for ep in self.endpoints:
            G.add_node(ep.id, kind='endpoint', address=str(ep.address),
                       waypoints=len(ep.trace.waypoints))
            G.add_edge(ep.id, MEDIUM_NODE)
        return G


def address_capacity(network: IPv4Network) -> int:
    """Usable host addresses in a block"""
    if network.prefixlen >= 31:
        return network.num_addresses
    return network.num_addresses - 2


def allocate_addresses(n: int, network: IPv4Network) -> List[IPv4Address]:
    """
    First ``n`` host addresses of the block, in order

    Raises:
        CapacityError: the block holds fewer than ``n`` hosts
    """
    capacity = address_capacity(network)
    if n > capacity:
        raise CapacityError(
            f"{n} vehicles do not fit in address block {network} "
            f"({capacity} usable addresses)"
        )

    addresses = []
    for address in network.hosts():
        if len(addresses) == n:
            break
        addresses.append(address)
    return addresses


class TopologyBuilder:
    """Build endpoints, mobility and the shared medium from vehicle traces"""

    def __init__(self,
                 engine: SimulationEngine,
                 channel: Optional[ChannelConfig] = None,
                 network: str = DEFAULT_NETWORK,
                 antenna_height: float = 1.5,
                 logger: Optional[logging.Logger] = None):
        """
        Args:
            engine: Engine providing endpoints, mobility and the medium
            channel: Rate, delay and queue bound of the shared channel
            network: Address block in CIDR notation
            antenna_height: z coordinate for every waypoint
            logger: Run logger
        """
        self.engine = engine
        self.channel = channel or ChannelConfig()
        try:
            self.network = IPv4Network(network)
        except ValueError as err:
            raise ConfigurationError(f"Invalid address block {network!r}: {err}") from err
        self.antenna_height = antenna_height
        self.logger = logger or logging.getLogger(__name__)

    def build(self, traces: Sequence[VehicleTrace]) -> Topology:
        """
        Create one endpoint per trace

        Raises:
            CapacityError: more traces than the address block can hold
        """
        n = len(traces)
        # Capacity is checked before the engine is touched
        addresses = allocate_addresses(n, self.network)
        self.logger.info(f"Creating simulation for {n} vehicles in {self.network}")

        endpoint_ids = self.engine.create_endpoints(n)

        for endpoint_id, trace in zip(endpoint_ids, traces):
            if trace.is_empty:
                self.logger.warning(
                    f"Vehicle {trace.vehicle_id} has no waypoints, keeping it stationary"
                )
                continue
            self.engine.attach_mobility(endpoint_id, trace.waypoints,
                                        height=self.antenna_height)
            self.logger.debug(
                f"Added {len(trace.waypoints)} waypoints for vehicle {trace.vehicle_id}"
            )

        bound = self.engine.build_shared_medium(
            endpoint_ids,
            self.channel.data_rate_bps,
            self.channel.delay_s,
            self.channel.queue_packets,
            addresses
        )

        if len(bound) != n or len(set(bound)) != n:
            raise CapacityError(
                f"Engine bound {len(set(bound))} distinct addresses for {n} endpoints"
            )

        endpoints = [
            NetworkEndpoint(id=endpoint_id, address=IPv4Address(address), trace=trace)
            for endpoint_id, trace, address in zip(endpoint_ids, traces, bound)
        ]
        return Topology(endpoints=endpoints, network=self.network, channel=self.channel)
