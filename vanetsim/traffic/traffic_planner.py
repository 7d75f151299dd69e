"""
Traffic planner

Adjacent pairing over the endpoint list: endpoint i runs a UDP echo
client aimed at endpoint i+1, endpoints 1..N-1 run echo servers. With
N endpoints this gives N-1 overlapping links, all contending for the
same shared medium.
"""

import logging
from dataclasses import dataclass, field
from ipaddress import IPv4Address
from typing import List, Optional

from ..config import UINT32_MAX
from ..engine.base import SimulationEngine
from ..topology.topology_builder import Topology


@dataclass
class TrafficConfig:
    """Application parameters, all relative to simulation start"""
    port: int = 9
    packet_size: int = 1024
    interval: float = 0.1
    max_packets: int = UINT32_MAX
    server_start: float = 1.0
    client_start: float = 2.0
    stop: float = 20.0


@dataclass
class TrafficPair:
    """One client -> server link"""
    client_endpoint_id: int
    server_endpoint_id: int
    port: int
    packet_size: int
    interval: float
    start_offset: float
    stop_offset: float
    max_packets: int = UINT32_MAX


@dataclass
class TrafficPlan:
    servers: List[int] = field(default_factory=list)
    pairs: List[TrafficPair] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.pairs


class TrafficPlanner:
    """Derive and install the adjacent-pair traffic schedule"""

    def __init__(self, config: Optional[TrafficConfig] = None,
                 logger: Optional[logging.Logger] = None):
        self.config = config or TrafficConfig()
        self.logger = logger or logging.getLogger(__name__)

    def plan(self, endpoint_ids: List[int]) -> TrafficPlan:
        """
        Pair endpoint i (client) with endpoint i+1 (server)

        Args:
            endpoint_ids: Endpoint ids in topology order

        Returns:
            TrafficPlan with N-1 pairs, empty for fewer than two endpoints
        """
        n = len(endpoint_ids)
        if n < 2:
            self.logger.warning(f"{n} endpoint(s): at least 2 are needed for traffic")
            return TrafficPlan()

        cfg = self.config
        pairs = [
            TrafficPair(
                client_endpoint_id=endpoint_ids[i],
                server_endpoint_id=endpoint_ids[i + 1],
                port=cfg.port,
                packet_size=cfg.packet_size,
                interval=cfg.interval,
                start_offset=cfg.client_start,
                stop_offset=cfg.stop,
                max_packets=cfg.max_packets,
            )
            for i in range(n - 1)
        ]
        plan = TrafficPlan(servers=list(endpoint_ids[1:]), pairs=pairs)
        self.logger.info(f"Planned {len(pairs)} client/server pairs")
        return plan

    def install(self, plan: TrafficPlan, engine: SimulationEngine, topology: Topology):
        """Install servers, then clients, through the engine"""
        cfg = self.config
        for endpoint_id in plan.servers:
            engine.install_server(endpoint_id, cfg.port, cfg.server_start, cfg.stop)

        for pair in plan.pairs:
            server_address: IPv4Address = topology.address_of(pair.server_endpoint_id)
            engine.install_client(
                pair.client_endpoint_id,
                server_address,
                pair.port,
                pair.packet_size,
                pair.interval,
                pair.max_packets,
                pair.start_offset,
                pair.stop_offset
            )
