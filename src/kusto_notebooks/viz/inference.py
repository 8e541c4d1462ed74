"""Chart inference for query results.

The engine reads the rendering hint Kusto attaches to a response (the first row of
the ``@ExtendedProperties`` table, e.g. ``[1, "Visualization", "{\\"Visualization\\":
\\"piechart\\", ...}"]``) and derives the series a chart needs from the primary table.
Nothing here raises to the caller: when anything is off the result is ``NoChart`` and
the output is shown as a plain table.
"""
from __future__ import annotations

import json
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from kusto_notebooks.kusto.response import EXTENDED_PROPERTIES, ResultTable, TabularResponse
from kusto_notebooks.logging.logger import get_logger

log = get_logger("viz.inference")

VERTICAL = "v"
HORIZONTAL = "h"

# Column type tags as Kusto reports them
LONG = "long"
STRING = "string"
DATETIME = "datetime"
TIMESPAN = "timespan"
REAL = "real"


@dataclass(frozen=True)
class NoChart:
    kind: str = "none"


@dataclass(frozen=True)
class PieChart:
    title: str = ""
    kind: str = "pie"


@dataclass(frozen=True)
class BarChart:
    title: str = ""
    orientation: str = VERTICAL
    kind: str = "bar"


@dataclass(frozen=True)
class TimeChart:
    title: str = ""
    kind: str = "time"


ChartDecision = Union[NoChart, PieChart, BarChart, TimeChart]

NO_CHART = NoChart()


@dataclass(frozen=True)
class SunburstSeries:
    ids: List[str] = field(default_factory=list)
    labels: List[str] = field(default_factory=list)
    parents: List[str] = field(default_factory=list)
    values: List[Any] = field(default_factory=list)
    branchvalues: str = "total"


@dataclass(frozen=True)
class PieSeries:
    labels: List[Any]
    values: List[Any]
    sunburst: Optional[SunburstSeries] = None


@dataclass(frozen=True)
class BarSeries:
    orientation: str
    x: List[Any]
    y: List[Any]


@dataclass(frozen=True)
class TimeSeries:
    name: Any
    x: List[Any]
    y: List[Any]


@dataclass(frozen=True)
class TimeSeriesSet:
    series: List[TimeSeries]


Series = Union[PieSeries, BarSeries, TimeSeriesSet]


@dataclass(frozen=True)
class VisualizationResult:
    decision: ChartDecision
    series: Optional[Series] = None

    @property
    def is_chart(self) -> bool:
        return not isinstance(self.decision, NoChart)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "decision": asdict(self.decision),
            "series": asdict(self.series) if self.series is not None else None,
        }


# ----------------------------------------------------------------------
# Decision
# ----------------------------------------------------------------------
def _parse_json_object(value: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(value, str):
        return None
    try:
        parsed = json.loads(value)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _visualization_properties(response: TabularResponse) -> Optional[Dict[str, Any]]:
    if not response.tables:
        return None
    props = response.find_table(EXTENDED_PROPERTIES)
    if props is None or not props.rows:
        return None
    row = props.rows[0]
    # Kusto clusters put the JSON at ordinal 2; App Insights puts it at ordinal 0.
    data = _parse_json_object(row[2]) if len(row) > 2 else None
    if data is None and row:
        data = _parse_json_object(row[0])
    return data


def infer_chart(response: TabularResponse) -> ChartDecision:
    data = _visualization_properties(response)
    if not data:
        return NO_CHART
    title = data.get("Title") or ""
    if not isinstance(title, str):
        title = str(title)
    kind = data.get("Visualization")
    if kind == "piechart":
        return PieChart(title=title)
    if kind == "barchart":
        return BarChart(title=title, orientation=HORIZONTAL)
    if kind == "columnchart":
        return BarChart(title=title, orientation=VERTICAL)
    if kind in ("timechart", "linechart"):
        return TimeChart(title=title)
    return NO_CHART


# ----------------------------------------------------------------------
# Series
# ----------------------------------------------------------------------
def _column(table: ResultTable, idx: int) -> List[Any]:
    return [row[idx] if idx < len(row) else None for row in table.rows]


def _first_of_type(table: ResultTable, type_tag: str) -> Optional[int]:
    for c in table.columns:
        if c.type == type_tag:
            return c.ordinal
    return None


def render_pie(table: ResultTable) -> PieSeries:
    value_idx: Optional[int] = None
    if table.columns:
        for c in reversed(table.columns):
            if c.type == LONG:
                value_idx = c.ordinal
                break
    if value_idx is None:
        value_idx = max(table.width - 1, 0)

    sunburst = render_sunburst(table) if len(table.columns) > 2 else None
    return PieSeries(labels=_column(table, 0), values=_column(table, value_idx), sunburst=sunburst)


def render_bar(table: ResultTable, orientation: str = VERTICAL) -> BarSeries:
    categories = _column(table, 0)
    values = _column(table, 1)
    if orientation == VERTICAL:
        return BarSeries(orientation=orientation, x=categories, y=values)
    return BarSeries(orientation=orientation, x=values, y=categories)


def _time_sort_key(frame: pd.DataFrame, table: ResultTable) -> Optional[tuple]:
    """(ordinal, comparable key series) for the first temporal column found."""
    idx = _first_of_type(table, DATETIME)
    if idx is not None:
        return idx, pd.to_datetime(frame.iloc[:, idx], format="ISO8601", errors="coerce", utc=True)
    idx = _first_of_type(table, TIMESPAN)
    if idx is not None:
        return idx, pd.to_timedelta(frame.iloc[:, idx], errors="coerce")
    idx = _first_of_type(table, REAL)
    if idx is not None:
        return idx, pd.to_numeric(frame.iloc[:, idx], errors="coerce")
    return None


def _sorted_rows(table: ResultTable) -> tuple:
    if not table.rows:
        return None, []
    frame = table.to_frame()
    key = _time_sort_key(frame, table)
    if key is None:
        log.warning("No datetime, timespan or real column to order time series by")
        return None, list(table.rows)
    idx, values = key
    order = (
        pd.DataFrame({"key": values.reset_index(drop=True)})
        .sort_values("key", kind="stable", na_position="last")
        .index.tolist()
    )
    return idx, [table.rows[i] for i in order]


def render_time(table: ResultTable) -> TimeSeriesSet:
    key_idx, rows = _sorted_rows(table)

    if len(table.columns) <= 2:
        return TimeSeriesSet(
            series=[TimeSeries(name=None, x=[r[0] for r in rows], y=[r[1] if len(r) > 1 else None for r in rows])]
        )

    name_idx = _first_of_type(table, STRING)
    if name_idx is None:
        name_idx = 1
    last = table.columns[-1]
    if last.type == LONG:
        value_idx = last.ordinal
    else:
        value_idx = next(
            (c.ordinal for c in table.columns if c.type not in (STRING, DATETIME, TIMESPAN, REAL)),
            2,
        )
    x_idx = key_idx if key_idx is not None else 0

    grouped: Dict[str, TimeSeries] = {}
    for r in rows:
        name = r[name_idx] if name_idx < len(r) else None
        # null and the text "None" are different series
        key = json.dumps(name, sort_keys=True, default=str)
        if key not in grouped:
            grouped[key] = TimeSeries(name=name, x=[], y=[])
        grouped[key].x.append(r[x_idx])
        grouped[key].y.append(r[value_idx])
    return TimeSeriesSet(series=list(grouped.values()))


def _level_label(value: Any) -> str:
    """Label text for one hierarchy cell, e.g. ``None`` -> ``"null"``, ``1.0`` -> ``"1"``."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def render_sunburst(table: ResultTable) -> SunburstSeries:
    """Aggregate flat rows into a hierarchy.

    Every column but the last is a level (ordinal 0 is the root); the last column is
    the weight. A node's id is the dash-joined path down to it, its parent the path
    one level up, and its value the sum of the weights of all rows on that path.
    """
    width = len(table.columns)
    if width <= 2 or not table.rows:
        return SunburstSeries()

    frame = table.to_frame()
    weights = pd.to_numeric(frame.iloc[:, width - 1], errors="coerce").fillna(0)
    path = pd.DataFrame(
        [[_level_label(r[i] if i < len(r) else None) for i in range(width - 1)] for r in table.rows]
    )

    out = SunburstSeries()
    parent = pd.Series([""] * len(path), index=path.index)
    for depth in range(width - 1):
        label = path.iloc[:, depth]
        node_id = label if depth == 0 else parent + "-" + label
        nodes = (
            pd.DataFrame({"id": node_id, "label": label, "parent": parent, "value": weights})
            .groupby("id", sort=False, dropna=False)
            .agg(label=("label", "first"), parent=("parent", "first"), value=("value", "sum"))
        )
        out.ids.extend(nodes.index.tolist())
        out.labels.extend(nodes["label"].tolist())
        out.parents.extend(nodes["parent"].tolist())
        out.values.extend(nodes["value"].tolist())
        parent = node_id
    return out


def infer_visualization(response: TabularResponse) -> VisualizationResult:
    """Decision plus derived series; any failure degrades to ``NoChart``."""
    try:
        decision = infer_chart(response)
        if isinstance(decision, NoChart):
            return VisualizationResult(decision=NO_CHART)
        table = response.primary
        if table is None:
            return VisualizationResult(decision=NO_CHART)
        if isinstance(decision, PieChart):
            series: Series = render_pie(table)
        elif isinstance(decision, BarChart):
            series = render_bar(table, decision.orientation)
        else:
            series = render_time(table)
        return VisualizationResult(decision=decision, series=series)
    except Exception:
        log.exception("Chart inference failed; falling back to table")
        return VisualizationResult(decision=NO_CHART)
