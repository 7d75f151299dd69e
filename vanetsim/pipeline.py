"""
End-to-end run: traces -> topology -> traffic -> engine -> statistics

All fatal conditions (bad config, missing traces, address capacity) are
raised before the engine runs. Flow counters are read only after
``engine.run`` returns.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .config import SimulationConfig
from .engine.base import SimulationEngine
from .engine.shared_medium import SharedMediumEngine
from .stats.report import write_csv
from .stats.stats_aggregator import StatsAggregator, AggregateReport, FlowCounters
from .topology.topology_builder import TopologyBuilder, Topology, ChannelConfig
from .traces.trace_loader import TraceLoader, VehicleTrace
from .traffic.traffic_planner import TrafficPlanner, TrafficPlan, TrafficConfig


@dataclass
class PipelineResult:
    traces: List[VehicleTrace]
    topology: Topology
    plan: TrafficPlan
    flows: List[FlowCounters]
    report: AggregateReport
    outputs: Dict[str, Path] = field(default_factory=dict)


def channel_config(config: SimulationConfig) -> ChannelConfig:
    return ChannelConfig(
        data_rate_bps=config.data_rate_bps,
        delay_s=config.channel_delay_s,
        queue_packets=config.queue_packets,
    )


def traffic_config(config: SimulationConfig) -> TrafficConfig:
    return TrafficConfig(
        port=config.port,
        packet_size=config.packet_size,
        interval=config.interval,
        max_packets=config.max_packets,
        server_start=config.server_start,
        client_start=config.client_start,
        stop=config.sim_time,
    )


def run_pipeline(config: SimulationConfig,
                 engine: Optional[SimulationEngine] = None,
                 logger: Optional[logging.Logger] = None,
                 workers: int = 1,
                 write_outputs: bool = True) -> PipelineResult:
    """
    Run one batch simulation

    Args:
        config: Run configuration (validated here)
        engine: Simulation engine; a SharedMediumEngine if not given
        logger: Run logger passed down to every component
        workers: Threads used to parse trace files
        write_outputs: Write CSV, flowmon report and run config to ``config.output_dir``

    Returns:
        PipelineResult with the aggregated report
    """
    logger = logger or logging.getLogger(__name__)
    config.validate()

    loader = TraceLoader(suffix=config.trace_suffix, workers=workers, logger=logger)
    traces = loader.load(Path(config.trace_dir))

    engine = engine or SharedMediumEngine(logger=logger)
    builder = TopologyBuilder(
        engine,
        channel=channel_config(config),
        network=config.network,
        antenna_height=config.antenna_height,
        logger=logger
    )
    topology = builder.build(traces)

    planner = TrafficPlanner(traffic_config(config), logger=logger)
    plan = planner.plan([ep.id for ep in topology.endpoints])
    planner.install(plan, engine, topology)

    logger.info(f"Starting simulation for {config.sim_time} seconds")
    engine.run(config.sim_time)

    flows = engine.get_flow_stats()
    report = StatsAggregator(logger=logger).aggregate(flows)

    outputs = {}
    if write_outputs:
        output_dir = Path(config.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        outputs['stats_csv'] = write_csv(report, output_dir / config.stats_csv)
        outputs['flowmon'] = output_dir / config.flowmon_xml
        engine.serialize_report(outputs['flowmon'])
        outputs['config'] = output_dir / 'run_config.yaml'
        config.to_yaml(outputs['config'])

        for name, path in outputs.items():
            logger.info(f"Wrote {name}: {path}")

    logger.info("Simulation completed")
    return PipelineResult(
        traces=traces,
        topology=topology,
        plan=plan,
        flows=flows,
        report=report,
        outputs=outputs,
    )
