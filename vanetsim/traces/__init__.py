"""
Trace Layer - per-vehicle movement traces

Components:
- trace_loader: source discovery and line parsing
"""

from .trace_loader import TraceLoader, VehicleTrace, Waypoint, parse_trace

__all__ = ['TraceLoader', 'VehicleTrace', 'Waypoint', 'parse_trace']
