"""
Recording engine used as a test double

Stores every call so tests can check what the pipeline asked for, and
returns canned flow counters after ``run``.
"""

from ipaddress import IPv4Address
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .base import SimulationEngine
from .mobility import WaypointPositionProvider
from ..stats.flowmon import write_flowmon
from ..stats.stats_aggregator import FlowCounters


class FakeEngine(SimulationEngine):
    """Engine that executes nothing"""

    def __init__(self, flow_stats: Optional[List[FlowCounters]] = None,
                 address_limit: Optional[int] = None):
        """
        Args:
            flow_stats: Counters returned by ``get_flow_stats``
            address_limit: Bind at most this many addresses (simulates a faulty engine)
        """
        self.flow_stats = list(flow_stats or [])
        self.address_limit = address_limit

        self.endpoints: List[int] = []
        self.mobility: Dict[int, list] = {}
        self.medium: Optional[dict] = None
        self.servers: List[dict] = []
        self.clients: List[dict] = []
        self.calls: List[str] = []
        self.stop_time: Optional[float] = None

    def create_endpoints(self, n):
        self.calls.append('create_endpoints')
        first = len(self.endpoints)
        ids = list(range(first, first + n))
        self.endpoints.extend(ids)
        return ids

    def attach_mobility(self, endpoint_id, waypoints, height=1.5):
        self.calls.append('attach_mobility')
        self.mobility[endpoint_id] = list(waypoints)

    def position_provider(self, endpoint_id):
        return WaypointPositionProvider(self.mobility.get(endpoint_id, []))

    def build_shared_medium(self, endpoint_ids, data_rate_bps, delay_s,
                            queue_packets, addresses: Sequence[IPv4Address]):
        self.calls.append('build_shared_medium')
        self.medium = {
            'endpoint_ids': list(endpoint_ids),
            'data_rate_bps': data_rate_bps,
            'delay_s': delay_s,
            'queue_packets': queue_packets,
        }
        bound = list(addresses)
        if self.address_limit is not None:
            bound = bound[:self.address_limit]
        return bound

    def transmission_time(self, ip_bytes):
        if self.medium is None:
            raise RuntimeError("No shared medium built yet")
        return ip_bytes * 8.0 / self.medium['data_rate_bps']

    def install_server(self, endpoint_id, port, start, stop):
        self.calls.append('install_server')
        self.servers.append({'endpoint_id': endpoint_id, 'port': port,
                             'start': start, 'stop': stop})

    def install_client(self, endpoint_id, server_address, port, packet_size,
                       interval, max_packets, start, stop):
        self.calls.append('install_client')
        self.clients.append({
            'endpoint_id': endpoint_id,
            'server_address': server_address,
            'port': port,
            'packet_size': packet_size,
            'interval': interval,
            'max_packets': max_packets,
            'start': start,
            'stop': stop,
        })

    def run(self, stop_time):
        self.calls.append('run')
        self.stop_time = stop_time

    def get_flow_stats(self):
        if self.stop_time is None:
            raise RuntimeError("Flow statistics are only available after run()")
        return list(self.flow_stats)

    def serialize_report(self, path):
        self.calls.append('serialize_report')
        return write_flowmon(self.flow_stats, Path(path))
