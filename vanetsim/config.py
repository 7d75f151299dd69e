"""
Run configuration

Holds every tunable of a trace-driven run. Values come from the dataclass
defaults, then an optional YAML file, then CLI overrides.
"""

import ipaddress
from dataclasses import dataclass, asdict, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigurationError


UINT32_MAX = 4294967295
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


def _convert(key: str, field_type: type, value: Any) -> Any:
    """Convert a YAML value to ``field_type``; integral floats are accepted for ints"""
    if isinstance(value, field_type) and not isinstance(value, bool):
        return value

    if field_type is str:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
    elif isinstance(value, bool) or value is None:
        pass
    elif field_type is float:
        try:
            return float(value)
        except (TypeError, ValueError):
            pass
    elif field_type is int:
        try:
            converted = float(value)
        except (TypeError, ValueError):
            converted = None
        if converted is not None and converted.is_integer():
            return int(converted)

    raise ConfigurationError(
        f"Configuration key {key!r} expects {field_type.__name__}, got {value!r}"
    )


@dataclass
class SimulationConfig:
    """Options for a single batch run"""
    sim_time: float = 20.0
    packet_size: int = 1024
    interval: float = 0.1
    trace_dir: str = "scratch/vehicle_traces"
    trace_suffix: str = ".txt"

    # Shared medium
    data_rate_bps: float = 100e6
    channel_delay_s: float = 6560e-9
    queue_packets: int = 50
    network: str = "10.1.0.0/16"

    # Applications
    port: int = 9
    server_start: float = 1.0
    client_start: float = 2.0
    max_packets: int = UINT32_MAX

    antenna_height: float = 1.5

    # Outputs
    output_dir: str = "."
    stats_csv: str = "hc_mac_csma_stats.csv"
    flowmon_xml: str = "hc_mac_csma_results.flowmon"
    log_level: str = "INFO"

    @classmethod
    def from_yaml(cls, path: Path) -> "SimulationConfig":
        """Load a config file; keys must match field names"""
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Configuration file {path} does not exist")

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as err:
            raise ConfigurationError(f"Configuration file {path} is not valid YAML: {err}") from err

        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file {path} must hold a mapping")

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SimulationConfig":
        """
        Build a config from plain values, converting each to its field type

        Raises:
            ConfigurationError: unknown key or a value of the wrong type
        """
        types = {f.name: f.type for f in fields(cls)}
        unknown = sorted(set(data) - set(types))
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**{key: _convert(key, types[key], value) for key, value in data.items()})

    def override(self, **values: Optional[Any]) -> "SimulationConfig":
        """Return a copy with every non-None value applied"""
        changes = {k: v for k, v in values.items() if v is not None}
        return replace(self, **changes)

    def to_yaml(self, path: Path):
        with open(path, 'w') as f:
            yaml.safe_dump(asdict(self), f, sort_keys=False)

    def validate(self) -> "SimulationConfig":
        """
        Check option values before any simulation setup happens

        Raises:
            ConfigurationError: on the first invalid option
        """
        if not self.trace_dir:
            raise ConfigurationError("traceDir is empty; a trace directory is required")
        if self.sim_time <= 0:
            raise ConfigurationError(f"simTime must be positive, got {self.sim_time}")
        if self.interval <= 0:
            raise ConfigurationError(f"interval must be positive, got {self.interval}")
        if self.packet_size <= 0:
            raise ConfigurationError(f"packetSize must be positive, got {self.packet_size}")
        if self.data_rate_bps <= 0:
            raise ConfigurationError(f"data rate must be positive, got {self.data_rate_bps}")
        if self.channel_delay_s < 0:
            raise ConfigurationError(f"channel delay cannot be negative, got {self.channel_delay_s}")
        if self.queue_packets <= 0:
            raise ConfigurationError(f"queue bound must be positive, got {self.queue_packets}")
        if not 0 < self.max_packets <= UINT32_MAX:
            raise ConfigurationError(f"max packets out of range: {self.max_packets}")
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"port out of range: {self.port}")
        if str(self.log_level).upper() not in LOG_LEVELS:
            raise ConfigurationError(
                f"Unknown log level {self.log_level!r}; use one of {', '.join(LOG_LEVELS)}"
            )

        for name in ('server_start', 'client_start'):
            offset = getattr(self, name)
            if offset < 0 or offset > self.sim_time:
                raise ConfigurationError(
                    f"{name}={offset} must lie within [0, simTime={self.sim_time}]"
                )

        try:
            ipaddress.ip_network(self.network)
        except ValueError as err:
            raise ConfigurationError(f"Invalid address block {self.network!r}: {err}") from err

        return self
