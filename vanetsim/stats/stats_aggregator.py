"""
Flow statistics aggregation

Reduces the engine's raw per-flow counters into per-flow metrics and
global averages once a run has finished.

Per flow (only flows that received at least one packet)::

    throughput_kbps = rx_bytes * 8 / (last_rx_time - first_tx_time) / 1024
    avg_delay_ms    = delay_sum / rx_packets * 1000
    pdr_percent     = rx_packets * 100 / tx_packets
    lost_packets    = tx_packets - rx_packets

A zero-duration flow has no defined throughput: it is reported as 0 kbps
with an ArithmeticGuard warning. A report without included flows has no
averages at all rather than 0/0.
"""

import logging
import math
import warnings
from dataclasses import dataclass, field, asdict
from typing import Iterable, List, Optional

import pandas as pd

from ..errors import ArithmeticGuard


CSV_COLUMNS = [
    'FlowID',
    'Throughput(kbps)',
    'AvgDelay(ms)',
    'PacketDeliveryRatio(%)',
    'LostPackets',
]


@dataclass
class FlowCounters:
    """Raw counters of one flow as reported by the engine"""
    flow_id: int
    tx_packets: int
    rx_packets: int
    rx_bytes: int
    delay_sum: float
    first_tx_time: float
    last_rx_time: float
    tx_bytes: int = 0
    src_address: Optional[str] = None
    dst_address: Optional[str] = None
    src_port: Optional[int] = None
    dst_port: Optional[int] = None


@dataclass
class FlowMetrics:
    """Derived metrics of one included flow"""
    flow_id: int
    throughput_kbps: float
    avg_delay_ms: float
    pdr_percent: float
    lost_packets: int
    guarded: bool = False
    src_address: Optional[str] = None
    dst_address: Optional[str] = None


@dataclass
class AggregateReport:
    """Per-flow metrics plus global figures over the included flows"""
    per_flow: List[FlowMetrics] = field(default_factory=list)
    flow_count: int = 0
    avg_throughput_kbps: Optional[float] = None
    avg_delay_ms: Optional[float] = None
    total_lost: int = 0
    total_tx_packets: int = 0
    total_loss_percent: Optional[float] = None
    skipped_flows: int = 0
    guarded_flows: List[int] = field(default_factory=list)

    @property
    def has_data(self) -> bool:
        return self.flow_count > 0

    def to_dataframe(self) -> pd.DataFrame:
        """Per-flow table with the CSV column names, in flow order"""
        rows = [
            (m.flow_id, m.throughput_kbps, m.avg_delay_ms, m.pdr_percent, m.lost_packets)
            for m in self.per_flow
        ]
        return pd.DataFrame(rows, columns=CSV_COLUMNS)

    def summary(self) -> dict:
        summary = asdict(self)
        summary.pop('per_flow')
        return summary


class StatsAggregator:
    """Turn FlowCounters into an AggregateReport"""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def flow_metrics(self, flow: FlowCounters) -> Optional[FlowMetrics]:
        """
        Metrics for a single flow

        Returns:
            FlowMetrics, or None when the flow received nothing
        """
        if flow.rx_packets <= 0:
            return None

        guarded = False
        duration = flow.last_rx_time - flow.first_tx_time
        if duration > 0:
            throughput = flow.rx_bytes * 8.0 / duration / 1024.0
        else:
            guarded = True
            throughput = 0.0
            warnings.warn(
                f"Flow {flow.flow_id} has zero duration "
                f"(first tx {flow.first_tx_time}s, last rx {flow.last_rx_time}s); "
                f"throughput reported as 0",
                ArithmeticGuard,
                stacklevel=2
            )

        avg_delay = (flow.delay_sum / flow.rx_packets) * 1000.0

        if flow.tx_packets > 0:
            pdr = flow.rx_packets * 100.0 / flow.tx_packets
        else:
            # Counters from a truncated capture can show rx without tx
            guarded = True
            pdr = 0.0
            warnings.warn(
                f"Flow {flow.flow_id} received {flow.rx_packets} packets but sent none; "
                f"delivery ratio reported as 0",
                ArithmeticGuard,
                stacklevel=2
            )

        if not all(math.isfinite(v) for v in (throughput, avg_delay, pdr)):
            guarded = True
            warnings.warn(
                f"Flow {flow.flow_id} produced a non-finite metric; replaced with 0",
                ArithmeticGuard,
                stacklevel=2
            )
            throughput, avg_delay, pdr = (
                v if math.isfinite(v) else 0.0 for v in (throughput, avg_delay, pdr)
            )

        return FlowMetrics(
            flow_id=flow.flow_id,
            throughput_kbps=throughput,
            avg_delay_ms=avg_delay,
            pdr_percent=pdr,
            lost_packets=flow.tx_packets - flow.rx_packets,
            guarded=guarded,
            src_address=flow.src_address,
            dst_address=flow.dst_address,
        )

    def aggregate(self, flows: Iterable[FlowCounters]) -> AggregateReport:
        """
        Aggregate all flows of a finished run

        Args:
            flows: Counters in the engine's flow iteration order

        Returns:
            AggregateReport; averages are None when no flow was included
        """
        report = AggregateReport()
        total_throughput = 0.0
        total_delay = 0.0

        for flow in flows:
            metrics = self.flow_metrics(flow)
            if metrics is None:
                report.skipped_flows += 1
                continue

            report.per_flow.append(metrics)
            report.flow_count += 1
            if metrics.guarded:
                report.guarded_flows.append(metrics.flow_id)

            total_throughput += metrics.throughput_kbps
            total_delay += metrics.avg_delay_ms
            report.total_lost += metrics.lost_packets
            report.total_tx_packets += flow.tx_packets

        if report.flow_count == 0:
            self.logger.warning("No valid flow statistics to report")
            return report

        report.avg_throughput_kbps = total_throughput / report.flow_count
        report.avg_delay_ms = total_delay / report.flow_count

        if report.total_tx_packets > 0:
            report.total_loss_percent = report.total_lost * 100.0 / report.total_tx_packets
        else:
            warnings.warn(
                "Total transmitted packet count is zero; loss percentage reported as 0",
                ArithmeticGuard,
                stacklevel=2
            )
            report.total_loss_percent = 0.0

        self.logger.info(
            f"Aggregated {report.flow_count} flows "
            f"({report.skipped_flows} without received packets skipped)"
        )
        return report
