"""
Vehicle trace loader

Discovers one trace source per vehicle in a directory and parses each
into an ordered waypoint list. Source format, one waypoint per line::

    # time x y
    0.0 0 0
    5.0 100 0

Vehicle ids follow the sorted file names, never the order the file
system happens to list them in.
"""

import logging
import math
import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

import pandas as pd

from ..errors import ConfigurationError, ParseWarning, EmptyTraceWarning


COMMENT_MARKER = '#'


@dataclass(frozen=True)
class Waypoint:
    """Timestamped 2D position"""
    time: float
    x: float
    y: float


@dataclass
class VehicleTrace:
    """Waypoints of one vehicle, in file order"""
    vehicle_id: int
    waypoints: List[Waypoint] = field(default_factory=list)
    source: Optional[Path] = None

    @property
    def is_empty(self) -> bool:
        return not self.waypoints

    def time_span(self) -> Tuple[float, float]:
        """(first, last) timestamp in file order, (0, 0) for an empty trace"""
        if not self.waypoints:
            return (0.0, 0.0)
        return (self.waypoints[0].time, self.waypoints[-1].time)

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            [(wp.time, wp.x, wp.y) for wp in self.waypoints],
            columns=['time', 'x', 'y']
        )


def parse_line(line: str) -> Optional[Waypoint]:
    """
    Parse one ``time x y`` line

    Returns:
        Waypoint, or None if the line is not exactly three finite numbers
        with a non-negative time
    """
    parts = line.split()
    if len(parts) != 3:
        return None

    try:
        t, x, y = (float(p) for p in parts)
    except ValueError:
        return None

    if not all(math.isfinite(v) for v in (t, x, y)) or t < 0:
        return None

    return Waypoint(time=t, x=x, y=y)


def parse_trace(text: str, name: str = "<trace>") -> List[Waypoint]:
    """
    Parse trace text into waypoints

    Blank lines and comment lines are skipped silently. Malformed lines
    are skipped with a ParseWarning. Order is kept as written, timestamps
    are not checked for monotonicity.
    """
    waypoints = []
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith(COMMENT_MARKER):
            continue

        wp = parse_line(line)
        if wp is None:
            warnings.warn(
                f"Malformed line {lineno} in trace file {name}: {line!r}",
                ParseWarning,
                stacklevel=2
            )
            continue
        waypoints.append(wp)

    return waypoints


class TraceLoader:
    """Discover and parse per-vehicle trace sources"""

    def __init__(self,
                 suffix: str = ".txt",
                 workers: int = 1,
                 logger: Optional[logging.Logger] = None):
        """
        Args:
            suffix: File extension of eligible trace sources
            workers: Threads used for parsing (1 = sequential)
            logger: Run logger
        """
        self.suffix = suffix
        self.workers = max(1, workers)
        self.logger = logger or logging.getLogger(__name__)

    def discover(self, trace_dir: Path) -> List[Path]:
        """
        List eligible sources sorted by file name

        Raises:
            ConfigurationError: directory missing, not a directory, or holding
                no eligible sources
        """
        if not trace_dir or not str(trace_dir).strip():
            raise ConfigurationError("No trace directory given")

        trace_dir = Path(trace_dir)
        if not trace_dir.exists():
            raise ConfigurationError(f"Trace directory {trace_dir} does not exist")
        if not trace_dir.is_dir():
            raise ConfigurationError(f"Trace directory {trace_dir} is not a directory")

        try:
            files = [p for p in trace_dir.iterdir()
                     if p.is_file() and p.suffix == self.suffix]
        except OSError as err:
            raise ConfigurationError(f"Filesystem error in {trace_dir}: {err}") from err

        if not files:
            raise ConfigurationError(
                f"No trace files ({self.suffix}) found in directory {trace_dir}"
            )

        files.sort(key=lambda p: p.name)
        for path in files:
            self.logger.info(f"Found trace file: {path}")
        return files

    def load(self, trace_dir: Path) -> List[VehicleTrace]:
        """
        Load every trace in ``trace_dir``

        Returns:
            One VehicleTrace per source; vehicle_id is the sorted position
        """
        files = self.discover(trace_dir)
        self.logger.info(f"Loading traces for {len(files)} vehicles")

        if self.workers > 1 and len(files) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as executor:
                traces = list(executor.map(self.load_file, range(len(files)), files))
        else:
            traces = [self.load_file(i, path) for i, path in enumerate(files)]

        return traces

    def load_file(self, vehicle_id: int, path: Path) -> VehicleTrace:
        """Parse one source into the trace of ``vehicle_id``"""
        try:
            text = Path(path).read_text()
        except (OSError, UnicodeDecodeError) as err:
            raise ConfigurationError(f"Could not open trace file {path}: {err}") from err

        waypoints = parse_trace(text, name=str(path))
        if not waypoints:
            warnings.warn(
                f"No valid waypoints found for vehicle {vehicle_id} ({path})",
                EmptyTraceWarning,
                stacklevel=2
            )
        else:
            self.logger.debug(f"Read {len(waypoints)} waypoints for vehicle {vehicle_id}")

        return VehicleTrace(vehicle_id=vehicle_id, waypoints=waypoints, source=Path(path))
