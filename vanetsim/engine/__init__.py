"""
Simulation Engine Layer

Capability interfaces the harness depends on, plus:
- mobility: waypoint position provider
- shared_medium: in-process single-bus engine
- fakes: recording test double
"""

from .base import PositionProvider, PacketMedium, SimulationEngine
from .mobility import WaypointPositionProvider
from .shared_medium import SharedMediumEngine

__all__ = [
    'PositionProvider',
    'PacketMedium',
    'SimulationEngine',
    'WaypointPositionProvider',
    'SharedMediumEngine',
]
