"""
Trace and flow metric plots

Creates:
- a map of every vehicle trace (stationary vehicles marked at the origin),
  optionally with the shared-medium star from ``Topology.graph()``
- per-flow throughput / delay / delivery ratio bar charts from a stats CSV
"""

from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import matplotlib.pyplot as plt
import networkx as nx
import pandas as pd
import seaborn as sns

from ..engine.mobility import DEFAULT_POSITION
from ..topology.topology_builder import MEDIUM_NODE, Topology
from ..traces.trace_loader import VehicleTrace


class ResultVisualizer:
    """Figures for a trace-driven run"""

    def __init__(self, figsize: Tuple[int, int] = (12, 8), dpi: int = 150):
        self.figsize = figsize
        self.dpi = dpi

    def plot_traces(self, traces: Sequence[VehicleTrace], output_path: Path,
                    max_labels: int = 20, topology: Optional[Topology] = None) -> Path:
        """
        Draw every trace as a polyline in file order

        With a topology, each vehicle's start point is also linked to the
        shared-medium hub, placed at the centroid of the start points.
        """
        fig, ax = plt.subplots(figsize=self.figsize)
        if topology is not None and len(topology):
            self._draw_medium(ax, topology)
        palette = sns.color_palette('husl', max(len(traces), 1))

        stationary = []
        for trace, color in zip(traces, palette):
            if trace.is_empty:
                stationary.append(trace.vehicle_id)
                continue
            xs = [wp.x for wp in trace.waypoints]
            ys = [wp.y for wp in trace.waypoints]
            ax.plot(xs, ys, '-o', color=color, markersize=2, linewidth=1)
            if len(traces) <= max_labels:
                ax.annotate(str(trace.vehicle_id), (xs[0], ys[0]), fontsize=8)

        if stationary:
            ax.scatter([DEFAULT_POSITION[0]], [DEFAULT_POSITION[1]], marker='x',
                       color='black', label=f"{len(stationary)} stationary")
        if stationary or topology is not None:
            ax.legend(loc='best')

        ax.set_xlabel('x (m)')
        ax.set_ylabel('y (m)')
        ax.set_title(f'Vehicle traces (n={len(traces)})')
        ax.set_aspect('equal', adjustable='datalim')
        ax.grid(True, alpha=0.3)

        return self._save(fig, output_path)

    def _draw_medium(self, ax, topology: Topology):
        G = topology.graph()

        pos = {}
        for ep in topology.endpoints:
            if ep.stationary:
                pos[ep.id] = DEFAULT_POSITION[:2]
            else:
                first = ep.trace.waypoints[0]
                pos[ep.id] = (first.x, first.y)
        pos[MEDIUM_NODE] = (
            sum(p[0] for p in pos.values()) / len(pos),
            sum(p[1] for p in pos.values()) / len(pos),
        )

        nx.draw_networkx_edges(G, pos, edge_color='gray', style='dashed',
                               width=0.5, alpha=0.3, ax=ax)
        rate_mbps = G.nodes[MEDIUM_NODE]['data_rate_bps'] / 1e6
        nx.draw_networkx_nodes(
            G, pos, nodelist=[MEDIUM_NODE],
            node_color='#E74C3C', node_size=120, node_shape='s', ax=ax,
            label=f"shared medium ({G.degree(MEDIUM_NODE)} endpoints, {rate_mbps:g} Mbps)"
        )
        # networkx hides the tick labels of the axes it draws on
        ax.tick_params(left=True, bottom=True, labelleft=True, labelbottom=True)

    def plot_flow_metrics(self, stats: pd.DataFrame, output_path: Path) -> Path:
        """Bar charts of the stats CSV columns, one panel per metric"""
        metrics: List[Tuple[str, str]] = [
            ('Throughput(kbps)', 'Throughput (kbps)'),
            ('AvgDelay(ms)', 'Avg delay (ms)'),
            ('PacketDeliveryRatio(%)', 'PDR (%)'),
        ]
        fig, axes = plt.subplots(len(metrics), 1, figsize=self.figsize, sharex=True)

        if stats.empty:
            for ax in axes:
                ax.text(0.5, 0.5, 'No flow data', ha='center', va='center',
                        transform=ax.transAxes)
        else:
            flow_ids = stats['FlowID'].astype(str)
            for ax, (column, label) in zip(axes, metrics):
                sns.barplot(x=flow_ids, y=stats[column], ax=ax, color='#45B7D1')
                ax.set_ylabel(label)
                ax.axhline(stats[column].mean(), color='#E74C3C', linestyle='--',
                           linewidth=1)
            axes[-1].set_xlabel('Flow')
            if len(stats) > 30:
                axes[-1].set_xticks([])

        fig.suptitle('Per-flow metrics')
        return self._save(fig, output_path)

    def _save(self, fig, output_path: Path) -> Path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.tight_layout()
        fig.savefig(output_path, dpi=self.dpi, bbox_inches='tight')
        plt.close(fig)
        return output_path


def create_result_report(traces: Sequence[VehicleTrace], output_dir: Path,
                         stats: Optional[pd.DataFrame] = None,
                         output_format: str = 'png',
                         topology: Optional[Topology] = None) -> List[Path]:
    """Write the trace map and, if stats are given, the metric charts"""
    output_dir = Path(output_dir)
    visualizer = ResultVisualizer()

    created = [visualizer.plot_traces(traces, output_dir / f'traces.{output_format}',
                                      topology=topology)]
    if stats is not None:
        created.append(
            visualizer.plot_flow_metrics(stats, output_dir / f'flow_metrics.{output_format}')
        )
    return created
