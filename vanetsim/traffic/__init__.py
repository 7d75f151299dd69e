"""
Traffic Module

Builds the client/server schedule handed to the simulation engine.
"""

from .traffic_planner import TrafficPlanner, TrafficPlan, TrafficPair, TrafficConfig

__all__ = ['TrafficPlanner', 'TrafficPlan', 'TrafficPair', 'TrafficConfig']
