"""
Waypoint mobility

Piecewise-linear movement between timestamped waypoints. Before the
first waypoint the vehicle sits at the first position, after the last
one it stays at the last position. A vehicle without waypoints stays at
the default position for the whole run.
"""

from typing import Sequence, Tuple

import numpy as np

from .base import PositionProvider
from ..traces.trace_loader import Waypoint


DEFAULT_POSITION = (0.0, 0.0)


class WaypointPositionProvider(PositionProvider):
    """Interpolate a vehicle position from its waypoint list"""

    def __init__(self, waypoints: Sequence[Waypoint], height: float = 1.5,
                 default: Tuple[float, float] = DEFAULT_POSITION):
        """
        Args:
            waypoints: Trace waypoints in file order
            height: Antenna height used as z
            default: (x, y) used when there are no waypoints
        """
        self.waypoints = list(waypoints)
        self.height = height
        self.default = default

        # np.interp needs ascending sample points; the trace itself is kept as given
        times = np.array([wp.time for wp in self.waypoints], dtype=float)
        order = np.argsort(times, kind='stable')
        self._times = times[order]
        self._xs = np.array([wp.x for wp in self.waypoints], dtype=float)[order]
        self._ys = np.array([wp.y for wp in self.waypoints], dtype=float)[order]

    @property
    def stationary(self) -> bool:
        return len(self.waypoints) == 0

    @property
    def ascending(self) -> bool:
        """Whether the waypoint timestamps were already in order"""
        times = [wp.time for wp in self.waypoints]
        return all(a <= b for a, b in zip(times, times[1:]))

    def position_at(self, t: float) -> Tuple[float, float, float]:
        if self.stationary:
            return (self.default[0], self.default[1], self.height)

        x = float(np.interp(t, self._times, self._xs))
        y = float(np.interp(t, self._times, self._ys))
        return (x, y, self.height)
