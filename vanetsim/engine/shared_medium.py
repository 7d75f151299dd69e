"""
In-process shared-medium engine

A small discrete-event model of a single broadcast bus so the harness
can run end to end without an external simulator:

- one channel, frames are sent one at a time in global FIFO order
- each endpoint owns a drop-tail queue bounded by ``queue_packets``
- frame time = (payload + IP/UDP header + Ethernet overhead) * 8 / rate,
  followed by the propagation delay
- UDP echo servers reply to every packet received while active
- flow ids start at 1 in first-transmission order

Collisions, backoff and radio effects are not modeled.
"""

import heapq
import itertools
import logging
from collections import deque
from dataclasses import dataclass
from ipaddress import IPv4Address
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .base import SimulationEngine
from .mobility import WaypointPositionProvider
from ..stats.flowmon import write_flowmon
from ..stats.stats_aggregator import FlowCounters
from ..traces.trace_loader import Waypoint


FlowKey = Tuple[str, str, int, int]  # src addr, dst addr, src port, dst port


@dataclass
class ClientApp:
    endpoint_id: int
    server_address: IPv4Address
    port: int
    packet_size: int
    interval: float
    max_packets: int
    start: float
    stop: float
    src_port: int
    sent: int = 0


@dataclass
class ServerApp:
    endpoint_id: int
    port: int
    start: float
    stop: float


@dataclass
class Packet:
    key: FlowKey
    src_endpoint: int
    dst_endpoint: int
    size: int
    sent_at: float
    echo: bool = False


@dataclass
class FlowRecord:
    flow_id: int
    key: FlowKey
    tx_packets: int = 0
    tx_bytes: int = 0
    rx_packets: int = 0
    rx_bytes: int = 0
    delay_sum: float = 0.0
    first_tx_time: Optional[float] = None
    last_rx_time: Optional[float] = None

    def to_counters(self) -> FlowCounters:
        src, dst, sport, dport = self.key
        return FlowCounters(
            flow_id=self.flow_id,
            tx_packets=self.tx_packets,
            rx_packets=self.rx_packets,
            rx_bytes=self.rx_bytes,
            tx_bytes=self.tx_bytes,
            delay_sum=self.delay_sum,
            first_tx_time=self.first_tx_time or 0.0,
            last_rx_time=self.last_rx_time or 0.0,
            src_address=src,
            dst_address=dst,
            src_port=sport,
            dst_port=dport,
        )


class SharedMediumEngine(SimulationEngine):
    """Single-channel bus engine with echo applications"""

    IP_UDP_HEADER_BYTES = 28
    ETHERNET_OVERHEAD_BYTES = 18
    EPHEMERAL_PORT_BASE = 49153

    _SEND, _TX_DONE, _RX = range(3)

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

        self.endpoints: List[int] = []
        self.mobility: Dict[int, WaypointPositionProvider] = {}
        self.addresses: Dict[int, IPv4Address] = {}
        self._by_address: Dict[str, int] = {}

        self.data_rate_bps: Optional[float] = None
        self.delay_s = 0.0
        self.queue_packets = 0

        self.servers: Dict[Tuple[int, int], ServerApp] = {}
        self.clients: List[ClientApp] = []

        self.flows: Dict[FlowKey, FlowRecord] = {}
        self.dropped_packets = 0
        self.now = 0.0
        self._finished = False

        self._events = []
        self._seq = itertools.count()
        self._queue = deque()
        self._pending: Dict[int, int] = {}
        self._busy = False

    # --- setup -------------------------------------------------------

    def create_endpoints(self, n: int) -> List[int]:
        first = len(self.endpoints)
        new_ids = list(range(first, first + n))
        self.endpoints.extend(new_ids)
        return new_ids

    def attach_mobility(self, endpoint_id: int, waypoints: Sequence[Waypoint],
                        height: float = 1.5):
        provider = WaypointPositionProvider(waypoints, height=height)
        if not provider.ascending:
            self.logger.debug(
                f"Endpoint {endpoint_id}: waypoint times are not ascending, "
                f"interpolating in time order"
            )
        self.mobility[endpoint_id] = provider

    def position_provider(self, endpoint_id: int) -> WaypointPositionProvider:
        if endpoint_id not in self.mobility:
            self.mobility[endpoint_id] = WaypointPositionProvider([])
        return self.mobility[endpoint_id]

    def build_shared_medium(self, endpoint_ids, data_rate_bps, delay_s,
                            queue_packets, addresses) -> List[IPv4Address]:
        if len(endpoint_ids) != len(addresses):
            raise ValueError(
                f"{len(endpoint_ids)} endpoints but {len(addresses)} addresses"
            )

        self.data_rate_bps = data_rate_bps
        self.delay_s = delay_s
        self.queue_packets = queue_packets

        for endpoint_id, address in zip(endpoint_ids, addresses):
            address = IPv4Address(address)
            self.addresses[endpoint_id] = address
            self._by_address[str(address)] = endpoint_id
            self._pending[endpoint_id] = 0

        return [self.addresses[i] for i in endpoint_ids]

    def transmission_time(self, ip_bytes: int) -> float:
        frame_bytes = ip_bytes + self.ETHERNET_OVERHEAD_BYTES
        return frame_bytes * 8.0 / self.data_rate_bps

    def install_server(self, endpoint_id: int, port: int, start: float, stop: float):
        self.servers[(endpoint_id, port)] = ServerApp(endpoint_id, port, start, stop)

    def install_client(self, endpoint_id, server_address, port, packet_size,
                       interval, max_packets, start, stop):
        self.clients.append(ClientApp(
            endpoint_id=endpoint_id,
            server_address=IPv4Address(server_address),
            port=port,
            packet_size=packet_size,
            interval=interval,
            max_packets=max_packets,
            start=start,
            stop=stop,
            src_port=self.EPHEMERAL_PORT_BASE + len(self.clients),
        ))

    # --- execution ---------------------------------------------------

    def run(self, stop_time: float):
        if self.data_rate_bps is None:
            raise RuntimeError("build_shared_medium() must be called before run()")

        for index, app in enumerate(self.clients):
            if app.start < app.stop:
                self._schedule(app.start, self._SEND, index)

        while self._events and self._events[0][0] < stop_time:
            t, _, kind, data = heapq.heappop(self._events)
            self.now = t
            if kind == self._SEND:
                self._client_send(data)
            elif kind == self._TX_DONE:
                self._schedule(t + self.delay_s, self._RX, data)
                self._start_transmission()
            else:
                self._receive(data)

        self.now = stop_time
        self._finished = True
        self.logger.info(
            f"Engine stopped at {stop_time}s: {len(self.flows)} flows, "
            f"{self.dropped_packets} queue drops"
        )

    def get_flow_stats(self) -> List[FlowCounters]:
        if not self._finished:
            raise RuntimeError("Flow statistics are only available after run()")
        return [record.to_counters() for record in self.flows.values()]

    def serialize_report(self, path):
        return write_flowmon(self.get_flow_stats(), Path(path))

    # --- internals ---------------------------------------------------

    def _schedule(self, t: float, kind: int, data):
        heapq.heappush(self._events, (t, next(self._seq), kind, data))

    def _flow(self, key: FlowKey) -> FlowRecord:
        record = self.flows.get(key)
        if record is None:
            record = FlowRecord(flow_id=len(self.flows) + 1, key=key)
            self.flows[key] = record
        return record

    def _client_send(self, index: int):
        app = self.clients[index]
        if app.sent >= app.max_packets or self.now >= app.stop:
            return

        src = str(self.addresses[app.endpoint_id])
        dst = str(app.server_address)
        packet = Packet(
            key=(src, dst, app.src_port, app.port),
            src_endpoint=app.endpoint_id,
            dst_endpoint=self._by_address.get(dst, -1),
            size=app.packet_size + self.IP_UDP_HEADER_BYTES,
            sent_at=self.now,
        )
        self._send(packet)
        app.sent += 1

        next_time = self.now + app.interval
        if app.sent < app.max_packets and next_time < app.stop:
            self._schedule(next_time, self._SEND, index)

    def _send(self, packet: Packet):
        record = self._flow(packet.key)
        record.tx_packets += 1
        record.tx_bytes += packet.size
        if record.first_tx_time is None:
            record.first_tx_time = self.now

        if self._pending[packet.src_endpoint] >= self.queue_packets:
            self.dropped_packets += 1
            return

        self._pending[packet.src_endpoint] += 1
        self._queue.append(packet)
        if not self._busy:
            self._start_transmission()

    def _start_transmission(self):
        if not self._queue:
            self._busy = False
            return

        packet = self._queue.popleft()
        self._pending[packet.src_endpoint] -= 1
        self._busy = True
        self._schedule(self.now + self.transmission_time(packet.size), self._TX_DONE, packet)

    def _receive(self, packet: Packet):
        if packet.dst_endpoint < 0:
            return

        record = self.flows[packet.key]
        record.rx_packets += 1
        record.rx_bytes += packet.size
        record.delay_sum += self.now - packet.sent_at
        record.last_rx_time = self.now

        if packet.echo:
            return

        src, dst, sport, dport = packet.key
        server = self.servers.get((packet.dst_endpoint, dport))
        if server is None or not server.start <= self.now < server.stop:
            return

        self._send(Packet(
            key=(dst, src, dport, sport),
            src_endpoint=packet.dst_endpoint,
            dst_endpoint=packet.src_endpoint,
            size=packet.size,
            sent_at=self.now,
            echo=True,
        ))
