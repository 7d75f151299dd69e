"""
Report output: CSV file and console summary
"""

from pathlib import Path
from typing import Optional

import pandas as pd
from rich.console import Console
from rich.table import Table

from .stats_aggregator import AggregateReport, CSV_COLUMNS


NO_DATA_MESSAGE = "No valid flow statistics to report"


def write_csv(report: AggregateReport, output_path: Path) -> Path:
    """Write one row per included flow, in report order"""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    report.to_dataframe().to_csv(output_path, index=False)
    return output_path


def read_csv(path: Path) -> pd.DataFrame:
    """Load a stats CSV written by ``write_csv``"""
    df = pd.read_csv(path)
    missing = [c for c in CSV_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"{path} is missing columns: {', '.join(missing)}")
    return df


def print_summary(report: AggregateReport, console: Optional[Console] = None):
    """Per-flow table followed by the global block"""
    console = console or Console()

    if report.per_flow:
        table = Table(title="Flow Statistics")
        table.add_column("Flow", style="cyan", justify="right")
        table.add_column("Src -> Dst", style="white")
        table.add_column("Throughput (kbps)", style="green", justify="right")
        table.add_column("Avg Delay (ms)", style="yellow", justify="right")
        table.add_column("PDR (%)", style="magenta", justify="right")
        table.add_column("Lost", style="red", justify="right")

        for m in report.per_flow:
            endpoints = f"{m.src_address or '?'} -> {m.dst_address or '?'}"
            throughput = f"{m.throughput_kbps:.2f}" + (" *" if m.guarded else "")
            table.add_row(
                str(m.flow_id),
                endpoints,
                throughput,
                f"{m.avg_delay_ms:.3f}",
                f"{m.pdr_percent:.2f}",
                str(m.lost_packets)
            )
        console.print(table)

    if not report.has_data:
        console.print(f"[yellow]{NO_DATA_MESSAGE}[/yellow]")
        return

    summary = Table(title="Global Statistics")
    summary.add_column("Metric", style="cyan")
    summary.add_column("Value", style="green")
    summary.add_row("Flows", str(report.flow_count))
    summary.add_row("Avg Throughput", f"{report.avg_throughput_kbps:.2f} kbps")
    summary.add_row("Avg End-to-End Delay", f"{report.avg_delay_ms:.3f} ms")
    summary.add_row(
        "Total Packet Loss",
        f"{report.total_lost} ({report.total_loss_percent:.2f}%)"
    )
    if report.skipped_flows:
        summary.add_row("Flows without received packets", str(report.skipped_flows))
    if report.guarded_flows:
        summary.add_row("Zero-duration flows (*)", ", ".join(map(str, report.guarded_flows)))
    console.print(summary)
