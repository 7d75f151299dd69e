#!/usr/bin/env python3
"""
VANET Trace Simulation CLI

Main command-line interface for trace-driven runs and report analysis.
"""

import warnings
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .config import SimulationConfig
from .engine.shared_medium import SharedMediumEngine
from .errors import VanetSimError
from .logs import configure_logging, close_logging
from .pipeline import run_pipeline
from .stats.flowmon import read_flowmon
from .stats.report import print_summary, write_csv, read_csv
from .stats.stats_aggregator import StatsAggregator
from .topology.topology_builder import TopologyBuilder
from .traces.trace_loader import TraceLoader
from .visualization.plots import create_result_report

app = typer.Typer(help="Trace-driven VANET shared-medium performance harness")
console = Console()


def _load_config(config: Optional[Path]) -> SimulationConfig:
    if config is None:
        return SimulationConfig()
    return SimulationConfig.from_yaml(config)


@app.command()
def run(
    config: Optional[Path] = typer.Option(None, help="YAML configuration file"),
    sim_time: Optional[float] = typer.Option(None, "--sim-time", help="Simulation time in seconds"),
    packet_size: Optional[int] = typer.Option(None, "--packet-size", help="Size of UDP packets"),
    interval: Optional[float] = typer.Option(None, help="Packet interval time"),
    trace_dir: Optional[str] = typer.Option(None, "--trace-dir", help="Directory containing vehicle traces"),
    output_dir: Optional[str] = typer.Option(None, "--output-dir", help="Where reports are written"),
    workers: int = typer.Option(1, help="Threads used to parse trace files"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Also write the log here")
):
    """Run the full trace -> topology -> traffic -> statistics pipeline"""
    try:
        cfg = _load_config(config).override(
            sim_time=sim_time,
            packet_size=packet_size,
            interval=interval,
            trace_dir=trace_dir,
            output_dir=output_dir,
            log_level=log_level,
        ).validate()
    except VanetSimError as err:
        console.print(f"[red]{err}[/red]")
        raise typer.Exit(code=1)

    logger = configure_logging(cfg.log_level, log_file)
    try:
        result = run_pipeline(cfg, logger=logger, workers=workers)
    except VanetSimError as err:
        logger.error(str(err))
        console.print(f"[red]{err}[/red]")
        raise typer.Exit(code=1)
    finally:
        close_logging(logger)

    print_summary(result.report, console)

    table = Table(title="Run Summary")
    table.add_column("Item", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Vehicles", str(len(result.traces)))
    table.add_row("Stationary vehicles", str(sum(t.is_empty for t in result.traces)))
    table.add_row("Client/server pairs", str(len(result.plan.pairs)))
    table.add_row("Engine flows", str(len(result.flows)))
    for name, path in result.outputs.items():
        table.add_row(name, str(path))
    console.print(table)


@app.command()
def analyze(
    flowmon: Path = typer.Argument(..., help="FlowMonitor XML report"),
    output: Optional[Path] = typer.Option(None, help="Write the stats CSV here")
):
    """Aggregate an existing FlowMonitor report"""
    if not flowmon.exists():
        console.print(f"[red]Report not found: {flowmon}[/red]")
        raise typer.Exit(code=1)

    try:
        flows = read_flowmon(flowmon)
    except ValueError as err:
        console.print(f"[red]{err}[/red]")
        raise typer.Exit(code=1)

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter('always')
        report = StatsAggregator().aggregate(flows)
    for w in caught:
        console.print(f"[yellow]{w.message}[/yellow]")

    print_summary(report, console)
    if output is not None:
        write_csv(report, output)
        console.print(f"[green]Wrote {output}[/green]")


@app.command()
def traces(
    trace_dir: Path = typer.Argument(..., help="Directory containing vehicle traces"),
    suffix: str = typer.Option(".txt", help="Trace file extension")
):
    """List the traces a run would load"""
    try:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            loaded = TraceLoader(suffix=suffix).load(trace_dir)
    except VanetSimError as err:
        console.print(f"[red]{err}[/red]")
        raise typer.Exit(code=1)

    table = Table(title=f"Vehicle Traces ({trace_dir})")
    table.add_column("Vehicle", style="cyan", justify="right")
    table.add_column("File", style="white")
    table.add_column("Waypoints", style="green", justify="right")
    table.add_column("Time span (s)", style="yellow")

    for trace in loaded:
        start, end = trace.time_span()
        span = "-" if trace.is_empty else f"{start:g} - {end:g}"
        table.add_row(str(trace.vehicle_id), trace.source.name,
                      str(len(trace.waypoints)), span)
    console.print(table)

    if caught:
        console.print(f"[yellow]{len(caught)} warning(s) while parsing:[/yellow]")
        for w in caught:
            console.print(f"  - {w.message}")


@app.command()
def visualize(
    trace_dir: Path = typer.Option(..., "--trace-dir", help="Directory containing vehicle traces"),
    stats: Optional[Path] = typer.Option(None, help="Stats CSV from a previous run"),
    output_dir: Path = typer.Option(Path("./visualizations"), "--output-dir", help="Output directory"),
    output_format: str = typer.Option("png", help="Output format (png, pdf, svg)")
):
    """Create trace map and per-flow metric figures"""
    try:
        with warnings.catch_warnings():
            warnings.simplefilter('ignore')
            loaded = TraceLoader().load(trace_dir)
        topology = TopologyBuilder(SharedMediumEngine()).build(loaded)
        stats_df = read_csv(stats) if stats is not None else None
    except (VanetSimError, ValueError, OSError) as err:
        console.print(f"[red]{err}[/red]")
        raise typer.Exit(code=1)

    with console.status("Creating visualizations..."):
        created = create_result_report(loaded, output_dir, stats_df, output_format,
                                       topology=topology)

    console.print(f"\n[green]Visualizations created in {output_dir}:[/green]")
    for path in created:
        console.print(f"  - {path.name}")


if __name__ == "__main__":
    app()
