"""
VANET trace-driven network performance harness

Loads per-vehicle movement traces, maps vehicles onto a shared-medium
network, plans adjacent client/server traffic and reduces the engine's
per-flow counters into throughput, delay, delivery ratio and loss.
"""

__version__ = "1.0.0"
