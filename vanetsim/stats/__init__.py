"""
Statistics Layer

Components:
- stats_aggregator: per-flow metrics and global averages
- report: CSV and console output
- flowmon: FlowMonitor XML read/write
"""

from .stats_aggregator import (
    StatsAggregator, FlowCounters, FlowMetrics, AggregateReport, CSV_COLUMNS
)

__all__ = ['StatsAggregator', 'FlowCounters', 'FlowMetrics', 'AggregateReport', 'CSV_COLUMNS']
