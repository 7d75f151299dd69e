"""
Tests for configuration loading and validation
"""

import tempfile
from pathlib import Path

import pandas as pd
import pytest
import yaml

from vanetsim.config import SimulationConfig, UINT32_MAX
from vanetsim.engine.fakes import FakeEngine
from vanetsim.errors import ConfigurationError
from vanetsim.topology.topology_builder import MEDIUM_NODE, Topology, TopologyBuilder
from vanetsim.traces.trace_loader import VehicleTrace, Waypoint
from vanetsim.visualization.plots import create_result_report


def test_defaults():
    cfg = SimulationConfig()
    assert cfg.sim_time == 20.0
    assert cfg.packet_size == 1024
    assert cfg.interval == 0.1
    assert cfg.trace_dir == "scratch/vehicle_traces"
    assert cfg.network == "10.1.0.0/16"
    assert cfg.max_packets == UINT32_MAX
    assert cfg.validate() is cfg


def test_bundled_default_file_matches_dataclass():
    path = Path(__file__).resolve().parent.parent / "config" / "default.yaml"
    if not path.exists():
        pytest.skip("config/default.yaml not shipped with this install")
    assert SimulationConfig.from_yaml(path) == SimulationConfig()


def test_yaml_round_trip_and_override():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "run.yaml"
        path.write_text(yaml.safe_dump({'sim_time': 30.0, 'trace_dir': 'traces'}))

        cfg = SimulationConfig.from_yaml(path)
        assert cfg.sim_time == 30.0
        assert cfg.packet_size == 1024

        cfg = cfg.override(packet_size=512, interval=None)
        assert cfg.packet_size == 512
        assert cfg.interval == 0.1

        cfg.to_yaml(path)
        assert SimulationConfig.from_yaml(path) == cfg


def test_unknown_keys_rejected():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "bad.yaml"
        path.write_text("simTime: 10\n")
        with pytest.raises(ConfigurationError, match="simTime"):
            SimulationConfig.from_yaml(path)


def test_malformed_yaml_rejected():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "broken.yaml"
        path.write_text("sim_time: [1,\n")
        with pytest.raises(ConfigurationError, match="not valid YAML"):
            SimulationConfig.from_yaml(path)


@pytest.mark.parametrize("text", [
    "sim_time: twenty\n",
    "packet_size: 10.5\n",
    "queue_packets: true\n",
    "interval:\n",
    "trace_dir: [a, b]\n",
])
def test_wrong_value_types_name_the_key(text):
    key = text.split(':')[0]
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "typed.yaml"
        path.write_text(text)
        with pytest.raises(ConfigurationError, match=key):
            SimulationConfig.from_yaml(path)


def test_values_converted_to_field_types():
    cfg = SimulationConfig.from_dict({
        'sim_time': 30, 'packet_size': 512.0, 'data_rate_bps': '1e8', 'output_dir': 5
    })
    assert cfg.sim_time == 30.0 and isinstance(cfg.sim_time, float)
    assert cfg.packet_size == 512 and isinstance(cfg.packet_size, int)
    assert cfg.data_rate_bps == 1e8
    assert cfg.output_dir == "5"


def test_cli_rejects_bad_config_and_log_level():
    from typer.testing import CliRunner
    from vanetsim.cli import app

    runner = CliRunner()
    with tempfile.TemporaryDirectory() as tmpdir:
        typed = Path(tmpdir) / "typed.yaml"
        typed.write_text("sim_time: twenty\n")
        broken = Path(tmpdir) / "broken.yaml"
        broken.write_text("sim_time: [1,\n")

        for path in (typed, broken):
            result = runner.invoke(app, ["run", "--config", str(path)])
            assert result.exit_code == 1
            assert isinstance(result.exception, SystemExit)
            assert "sim_time" in result.output or "YAML" in result.output

        result = runner.invoke(app, ["run", "--trace-dir", tmpdir, "--log-level", "LOUD"])
        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "Unknown log level" in result.output


def test_missing_config_file():
    with pytest.raises(ConfigurationError):
        SimulationConfig.from_yaml(Path("/nonexistent/run.yaml"))


@pytest.mark.parametrize("changes", [
    {'trace_dir': ''},
    {'sim_time': 0.0},
    {'interval': -0.1},
    {'packet_size': 0},
    {'queue_packets': 0},
    {'data_rate_bps': 0.0},
    {'client_start': 25.0},
    {'network': 'not-a-network'},
    {'port': 70000},
    {'log_level': 'LOUD'},
])
def test_validation_errors(changes):
    with pytest.raises(ConfigurationError):
        SimulationConfig().override(**changes).validate()


def test_result_figures():
    traces = [
        VehicleTrace(vehicle_id=0, waypoints=[Waypoint(0.0, 0.0, 0.0), Waypoint(5.0, 50.0, 0.0)]),
        VehicleTrace(vehicle_id=1, waypoints=[]),
    ]
    stats = pd.DataFrame({
        'FlowID': [1, 2],
        'Throughput(kbps)': [80.0, 75.5],
        'AvgDelay(ms)': [0.2, 0.4],
        'PacketDeliveryRatio(%)': [100.0, 98.0],
        'LostPackets': [0, 2],
    })

    with tempfile.TemporaryDirectory() as tmpdir:
        created = create_result_report(traces, Path(tmpdir), stats)
        assert [p.name for p in created] == ['traces.png', 'flow_metrics.png']
        assert all(p.exists() and p.stat().st_size > 0 for p in created)


def test_trace_map_draws_shared_medium_graph(monkeypatch):
    traces = [
        VehicleTrace(vehicle_id=0, waypoints=[Waypoint(0.0, 0.0, 0.0), Waypoint(5.0, 50.0, 0.0)]),
        VehicleTrace(vehicle_id=1, waypoints=[Waypoint(0.0, 20.0, 10.0)]),
        VehicleTrace(vehicle_id=2, waypoints=[]),
    ]
    topology = TopologyBuilder(FakeEngine()).build(traces)

    graphs = []
    original_graph = Topology.graph

    def recording_graph(self):
        G = original_graph(self)
        graphs.append(G)
        return G

    monkeypatch.setattr(Topology, 'graph', recording_graph)

    with tempfile.TemporaryDirectory() as tmpdir:
        created = create_result_report(traces, Path(tmpdir), topology=topology)
        assert created[0].stat().st_size > 0

    assert len(graphs) == 1
    assert graphs[0].degree(MEDIUM_NODE) == 3
