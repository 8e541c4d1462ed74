from __future__ import annotations
from typing import Optional
import plotly.graph_objects as go

from kusto_notebooks.exceptions.errors import PlotlyRenderError
from kusto_notebooks.kusto.response import ResultTable
from kusto_notebooks.logging.logger import get_logger
from kusto_notebooks.viz.inference import (
    BarSeries,
    PieSeries,
    TimeSeriesSet,
    VisualizationResult,
)

log = get_logger("viz.plotly_factory")


def _table_figure(table: Optional[ResultTable]) -> go.Figure:
    if table is None:
        return go.Figure()
    df = table.to_frame()
    return go.Figure(
        data=[go.Table(
            header=dict(values=list(df.columns)),
            cells=dict(values=[df[c].tolist() for c in df.columns])
        )]
    )


def build_figure(result: VisualizationResult, table: Optional[ResultTable] = None) -> go.Figure:
    """Draw an inferred chart; without a chart, draw ``table`` as a grid."""
    try:
        if not result.is_chart:
            return _table_figure(table)

        layout = dict(title=result.decision.title, autosize=True)
        series = result.series

        if isinstance(series, PieSeries):
            pie = go.Pie(labels=series.labels, values=series.values, textinfo="label+value", hoverinfo="all")
            if series.sunburst is None:
                return go.Figure(data=[pie], layout=layout)
            sb = series.sunburst
            pie.domain = dict(x=[0.0, 0.48])
            sunburst = go.Sunburst(
                ids=sb.ids,
                labels=sb.labels,
                parents=sb.parents,
                values=sb.values,
                branchvalues=sb.branchvalues,
                hoverinfo="label+value+percent entry",
                domain=dict(x=[0.52, 1.0]),
            )
            return go.Figure(data=[pie, sunburst], layout=layout)

        if isinstance(series, BarSeries):
            bar = go.Bar(x=series.x, y=series.y, orientation=series.orientation, hoverinfo="all")
            return go.Figure(data=[bar], layout=layout)

        if isinstance(series, TimeSeriesSet):
            traces = [go.Scatter(x=s.x, y=s.y, name=s.name) for s in series.series]
            return go.Figure(data=traces, layout=layout)

        raise PlotlyRenderError(f"Unhandled chart kind: {result.decision.kind}")
    except Exception:
        log.exception("Plotly render error")
        raise
