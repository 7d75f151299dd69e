"""
Tests for flow metric derivation, aggregation and report files
"""

import math
import tempfile
import warnings
from pathlib import Path

import pytest
from rich.console import Console

from vanetsim.errors import ArithmeticGuard
from vanetsim.stats.flowmon import read_flowmon, write_flowmon, parse_time
from vanetsim.stats.report import write_csv, read_csv, print_summary, NO_DATA_MESSAGE
from vanetsim.stats.stats_aggregator import StatsAggregator, FlowCounters, CSV_COLUMNS


def flow(flow_id=1, tx=100, rx=90, rx_bytes=90 * 1052, delay_sum=0.9,
         first=2.0, last=12.0, **extra):
    return FlowCounters(flow_id=flow_id, tx_packets=tx, rx_packets=rx, rx_bytes=rx_bytes,
                        delay_sum=delay_sum, first_tx_time=first, last_rx_time=last, **extra)


def test_flow_metric_formulas():
    metrics = StatsAggregator().flow_metrics(flow())

    assert metrics.throughput_kbps == pytest.approx(90 * 1052 * 8 / 10.0 / 1024)
    assert metrics.avg_delay_ms == pytest.approx(10.0)
    assert metrics.pdr_percent == pytest.approx(90.0)
    assert metrics.lost_packets == 10
    assert not metrics.guarded


def test_zero_rx_flow_excluded_everywhere():
    report = StatsAggregator().aggregate([
        flow(flow_id=1),
        flow(flow_id=2, tx=50, rx=0, rx_bytes=0, delay_sum=0.0, last=0.0),
    ])

    assert [m.flow_id for m in report.per_flow] == [1]
    assert report.flow_count == 1
    assert report.skipped_flows == 1
    # lost/tx totals only count the included flow
    assert report.total_lost == 10
    assert report.total_tx_packets == 100
    assert report.total_loss_percent == pytest.approx(10.0)


def test_zero_duration_flow_is_guarded():
    with pytest.warns(ArithmeticGuard, match="zero duration"):
        report = StatsAggregator().aggregate([
            flow(flow_id=3, tx=1, rx=1, rx_bytes=1052, delay_sum=0.0, first=2.0, last=2.0)
        ])

    metrics = report.per_flow[0]
    assert metrics.throughput_kbps == 0.0
    assert math.isfinite(metrics.avg_delay_ms)
    assert metrics.guarded
    assert report.guarded_flows == [3]
    assert math.isfinite(report.avg_throughput_kbps)


def test_no_included_flows_reports_no_data():
    with warnings.catch_warnings():
        warnings.simplefilter('error')
        report = StatsAggregator().aggregate([])

    assert not report.has_data
    assert report.flow_count == 0
    assert report.avg_throughput_kbps is None
    assert report.avg_delay_ms is None
    assert report.total_loss_percent is None


def test_rx_without_tx_is_guarded():
    with pytest.warns(ArithmeticGuard):
        report = StatsAggregator().aggregate([flow(tx=0, rx=5, rx_bytes=5000, delay_sum=0.05)])

    assert report.per_flow[0].pdr_percent == 0.0
    assert report.total_loss_percent == 0.0


def test_global_averages():
    report = StatsAggregator().aggregate([
        flow(flow_id=1, tx=10, rx=10, rx_bytes=10240, delay_sum=0.1, first=0.0, last=8.0),
        flow(flow_id=2, tx=10, rx=5, rx_bytes=5120, delay_sum=0.15, first=0.0, last=4.0),
    ])

    # 10240*8/8/1024 = 10 kbps, 5120*8/4/1024 = 10 kbps
    assert report.avg_throughput_kbps == pytest.approx(10.0)
    # 10 ms and 30 ms
    assert report.avg_delay_ms == pytest.approx(20.0)
    assert report.total_lost == 5
    assert report.total_loss_percent == pytest.approx(25.0)


def test_output_order_follows_input():
    flows = [flow(flow_id=i) for i in (7, 3, 5)]
    report = StatsAggregator().aggregate(flows)
    assert [m.flow_id for m in report.per_flow] == [7, 3, 5]


def test_csv_report():
    report = StatsAggregator().aggregate([flow(flow_id=1), flow(flow_id=2, rx=0, rx_bytes=0)])

    with tempfile.TemporaryDirectory() as tmpdir:
        path = write_csv(report, Path(tmpdir) / "stats.csv")
        lines = path.read_text().splitlines()
        df = read_csv(path)

    assert lines[0] == "FlowID,Throughput(kbps),AvgDelay(ms),PacketDeliveryRatio(%),LostPackets"
    assert len(lines) == 2
    assert list(df.columns) == CSV_COLUMNS
    assert df['LostPackets'].tolist() == [10]


def test_csv_for_empty_report_has_header_only():
    report = StatsAggregator().aggregate([])
    with tempfile.TemporaryDirectory() as tmpdir:
        path = write_csv(report, Path(tmpdir) / "stats.csv")
        assert path.read_text().strip() == ",".join(CSV_COLUMNS)


def test_console_summary():
    console = Console(record=True, width=120)
    print_summary(StatsAggregator().aggregate([flow()]), console)
    text = console.export_text()
    assert "Global Statistics" in text
    assert "Avg Throughput" in text

    console = Console(record=True, width=120)
    print_summary(StatsAggregator().aggregate([]), console)
    assert NO_DATA_MESSAGE in console.export_text()


def test_parse_time():
    assert parse_time("+2e+09ns") == pytest.approx(2.0)
    assert parse_time("+2000000000.0ns") == pytest.approx(2.0)
    assert parse_time("1.5s") == pytest.approx(1.5)
    assert parse_time("+250ms") == pytest.approx(0.25)
    with pytest.raises(ValueError):
        parse_time("soon")


def test_flowmon_file_round_trip():
    flows = [
        flow(flow_id=1, tx_bytes=100 * 1052, src_address="10.1.0.1",
             dst_address="10.1.0.2", src_port=49153, dst_port=9),
        flow(flow_id=2, tx=20, rx=0, rx_bytes=0, delay_sum=0.0, last=0.0),
    ]
    with tempfile.TemporaryDirectory() as tmpdir:
        path = write_flowmon(flows, Path(tmpdir) / "results.flowmon")
        loaded = read_flowmon(path)

    assert [f.flow_id for f in loaded] == [1, 2]
    assert loaded[0].rx_packets == 90
    assert loaded[0].delay_sum == pytest.approx(0.9)
    assert loaded[0].last_rx_time == pytest.approx(12.0)
    assert loaded[0].src_address == "10.1.0.1"
    assert loaded[0].dst_port == 9
    assert loaded[1].src_address is None


NS3_FLOWMON = """<?xml version="1.0" ?>
<FlowMonitor>
  <FlowStats>
    <Flow flowId="1" timeFirstTxPacket="+2e+09ns" timeFirstRxPacket="+2.00009e+09ns" timeLastTxPacket="+1.99e+10ns" timeLastRxPacket="+1.99001e+10ns" delaySum="+1.6e+07ns" jitterSum="+0ns" lastDelay="+92160ns" txBytes="188308" rxBytes="188308" txPackets="179" rxPackets="179" lostPackets="0" timesForwarded="0">
      <delayHistogram nBins="1">
        <bin index="0" start="0" width="0.001" count="179"/>
      </delayHistogram>
    </Flow>
    <Flow flowId="2" timeFirstTxPacket="+2e+09ns" timeFirstRxPacket="+0ns" timeLastTxPacket="+2e+09ns" timeLastRxPacket="+0ns" delaySum="+0ns" jitterSum="+0ns" lastDelay="+0ns" txBytes="1052" rxBytes="0" txPackets="1" rxPackets="0" lostPackets="1" timesForwarded="0">
    </Flow>
  </FlowStats>
  <Ipv4FlowClassifier>
    <Flow flowId="1" sourceAddress="10.1.0.1" destinationAddress="10.1.0.2" protocol="17" sourcePort="49153" destinationPort="9">
      <Dscp value="0x0" packets="179"/>
    </Flow>
    <Flow flowId="2" sourceAddress="10.1.0.2" destinationAddress="10.1.0.3" protocol="17" sourcePort="49153" destinationPort="9"/>
  </Ipv4FlowClassifier>
</FlowMonitor>
"""


def test_read_ns3_flowmon():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "hc_mac_csma_results.flowmon"
        path.write_text(NS3_FLOWMON)
        flows = read_flowmon(path)

    assert len(flows) == 2
    assert flows[0].first_tx_time == pytest.approx(2.0)
    assert flows[0].last_rx_time == pytest.approx(19.9001)
    assert flows[0].rx_bytes == 188308

    report = StatsAggregator().aggregate(flows)
    assert report.flow_count == 1
    assert report.per_flow[0].pdr_percent == pytest.approx(100.0)
    assert report.per_flow[0].avg_delay_ms == pytest.approx(16.0 / 179)


def test_read_flowmon_rejects_other_xml():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "other.xml"
        path.write_text("<Something/>")
        with pytest.raises(ValueError):
            read_flowmon(path)
