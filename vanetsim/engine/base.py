"""
Capabilities the harness needs from a simulation engine

The harness only talks to these interfaces, so ns-3 bindings, the
in-process SharedMediumEngine and the test fakes are interchangeable.
"""

from abc import ABC, abstractmethod
from ipaddress import IPv4Address
from typing import List, Sequence, Tuple

from ..stats.stats_aggregator import FlowCounters
from ..traces.trace_loader import Waypoint


class PositionProvider(ABC):
    """Mobility capability of one endpoint"""

    @abstractmethod
    def position_at(self, t: float) -> Tuple[float, float, float]:
        """Position (x, y, z) in meters at simulation time ``t``"""
        pass


class PacketMedium(ABC):
    """A broadcast channel shared by every attached endpoint"""

    @abstractmethod
    def build_shared_medium(self,
                            endpoint_ids: Sequence[int],
                            data_rate_bps: float,
                            delay_s: float,
                            queue_packets: int,
                            addresses: Sequence[IPv4Address]) -> List[IPv4Address]:
        """
        Attach endpoints to one channel and bind their addresses

        Args:
            endpoint_ids: Endpoints to connect
            data_rate_bps: Channel rate
            delay_s: Propagation delay
            queue_packets: Drop-tail queue bound per endpoint
            addresses: One address per endpoint, same order

        Returns:
            The addresses actually bound, in endpoint order
        """
        pass

    @abstractmethod
    def transmission_time(self, ip_bytes: int) -> float:
        """Seconds one IP packet of ``ip_bytes`` occupies the channel"""
        pass


class SimulationEngine(PacketMedium):
    """Full engine interface consumed by the pipeline"""

    @abstractmethod
    def create_endpoints(self, n: int) -> List[int]:
        pass

    @abstractmethod
    def attach_mobility(self, endpoint_id: int, waypoints: Sequence[Waypoint],
                        height: float = 1.5):
        pass

    @abstractmethod
    def position_provider(self, endpoint_id: int) -> PositionProvider:
        pass

    @abstractmethod
    def install_server(self, endpoint_id: int, port: int,
                       start: float, stop: float):
        pass

    @abstractmethod
    def install_client(self, endpoint_id: int, server_address: IPv4Address, port: int,
                       packet_size: int, interval: float, max_packets: int,
                       start: float, stop: float):
        pass

    @abstractmethod
    def run(self, stop_time: float):
        """Execute the simulation; returns once every event up to ``stop_time`` ran"""
        pass

    @abstractmethod
    def get_flow_stats(self) -> List[FlowCounters]:
        """Flow counters in the engine's iteration order (only valid after ``run``)"""
        pass

    @abstractmethod
    def serialize_report(self, path):
        pass
