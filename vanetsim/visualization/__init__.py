"""
Visualization Module

Trace maps and per-flow metric charts.
"""

from .plots import ResultVisualizer, create_result_report

__all__ = ['ResultVisualizer', 'create_result_report']
