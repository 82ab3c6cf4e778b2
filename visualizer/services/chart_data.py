"""Turns a tabular query result plus a VizConfig into chart-ready series."""
import math
from dataclasses import dataclass
from functools import cmp_to_key
from typing import Any, Dict, List, Literal, Optional, Tuple

from visualizer.models.query import VisualizerQueryResult
from visualizer.models.viz import VizConfig, VizType

PALETTE = (
    "#007FFF",
    "#6C63FF",
    "#00D4AA",
    "#FFB347",
    "#FF6B6B",
    "#4ECDC4",
    "#A8E063",
    "#F7B731",
)

# Bar charts switch to horizontal bars when any category label is longer than this
HORIZONTAL_LABEL_THRESHOLD = 12

STACK_GROUP = "total"


@dataclass(frozen=True)
class ChartSeries:
    name: str
    data: Tuple[float, ...]
    color: str
    stack: Optional[str] = None
    area: bool = False


@dataclass(frozen=True)
class ChartSlice:
    name: str
    value: float
    color: str


@dataclass(frozen=True)
class ChartData:
    """
    Renderer-neutral chart description.

    Category charts fill ``categories`` and ``series``; donuts fill
    ``slices``; tables fill neither (see ``sort_rows``).
    """
    type: VizType
    categories: Tuple[str, ...] = ()
    series: Tuple[ChartSeries, ...] = ()
    slices: Tuple[ChartSlice, ...] = ()
    horizontal: bool = False
    show_legend: bool = False
    value_format: Optional[str] = None


def to_number(value: Any) -> float:
    """Numeric value of a cell; missing or non-numeric cells plot as 0."""
    if value is None or value == "":
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(number) else number


def to_label(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def format_value(value: Any, value_format: Optional[str] = None) -> str:
    """Format a cell for tooltips/labels: ``12.5%`` for percent, ``1,234.57`` otherwise."""
    if value is None:
        return ""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return str(value)
    if math.isnan(number):
        return str(value)
    if value_format == "percent":
        return f"{number:.1f}%"
    text = f"{number:,.2f}"
    return text.rstrip("0").rstrip(".")


def _color(index: int) -> str:
    return PALETTE[index % len(PALETTE)]


def _pivot_series(
    rows: Tuple[Dict[str, Any], ...],
    x_field: str,
    y_field: str,
    series_field: str,
    stack: Optional[str],
    area: bool,
) -> Tuple[Tuple[str, ...], Tuple[ChartSeries, ...]]:
    """One series per distinct ``series_field`` value, summed per category."""
    categories: List[str] = []
    series_names: List[str] = []
    values: Dict[Tuple[str, str], float] = {}

    for row in rows:
        category = to_label(row.get(x_field))
        name = to_label(row.get(series_field))
        if category not in categories:
            categories.append(category)
        if name not in series_names:
            series_names.append(name)
        values[(category, name)] = values.get((category, name), 0.0) + to_number(row.get(y_field))

    series = tuple(
        ChartSeries(
            name=name,
            data=tuple(values.get((category, name), 0.0) for category in categories),
            color=_color(index),
            stack=stack,
            area=area,
        )
        for index, name in enumerate(series_names)
    )
    return tuple(categories), series


def build_chart_data(result: VisualizerQueryResult, config: VizConfig) -> ChartData:
    """
    Extract categories and series for the configured chart type.

    - bar / stacked_bar / line / area: x values become categories, each y
      field becomes a series; ``stacked_bar`` puts every series in one stack
    - with a ``series_field`` and a single y field, rows are pivoted into one
      series per distinct series value
    - donut: slices from the label (x) and first y field, falling back to the
      first two result columns
    - table: nothing to extract
    """
    chart_type = config.type
    value_format = config.value_format

    if chart_type == VizType.TABLE:
        return ChartData(type=chart_type, value_format=value_format)

    rows = result.rows

    if chart_type == VizType.DONUT:
        label_key = config.x_field or (result.columns[0] if result.columns else None)
        y_fields = config.y_fields or ()
        value_key = y_fields[0] if y_fields else (result.columns[1] if len(result.columns) > 1 else None)
        slices = tuple(
            ChartSlice(
                name=to_label(row.get(label_key)) if label_key else "",
                value=to_number(row.get(value_key)) if value_key else 0.0,
                color=_color(index),
            )
            for index, row in enumerate(rows)
        )
        return ChartData(type=chart_type, slices=slices, show_legend=True, value_format=value_format)

    stack = STACK_GROUP if chart_type == VizType.STACKED_BAR else None
    area = chart_type == VizType.AREA
    y_fields = tuple(config.y_fields or ())

    if config.series_field and config.x_field and len(y_fields) == 1:
        categories, series = _pivot_series(rows, config.x_field, y_fields[0], config.series_field, stack, area)
    else:
        categories = tuple(to_label(row.get(config.x_field)) for row in rows) if config.x_field else ()
        series = tuple(
            ChartSeries(
                name=y_field,
                data=tuple(to_number(row.get(y_field)) for row in rows),
                color=_color(index),
                stack=stack,
                area=area,
            )
            for index, y_field in enumerate(y_fields)
        )

    horizontal = chart_type in (VizType.BAR, VizType.STACKED_BAR) and any(
        len(category) > HORIZONTAL_LABEL_THRESHOLD for category in categories
    )

    return ChartData(
        type=chart_type,
        categories=categories,
        series=series,
        horizontal=horizontal,
        show_legend=len(series) > 1,
        value_format=value_format,
    )


def sort_rows(
    result: VisualizerQueryResult,
    column: Optional[str],
    direction: Literal["asc", "desc"] = "asc",
) -> List[Dict[str, Any]]:
    """
    Rows sorted for table display. Missing values always sort last; numbers
    compare numerically, everything else as case-insensitive text.
    """
    rows = list(result.rows)
    if not column:
        return rows

    descending = direction == "desc"

    def compare(a: Dict[str, Any], b: Dict[str, Any]) -> int:
        av = a.get(column)
        bv = b.get(column)
        if av is None:
            return 1
        if bv is None:
            return -1
        if _is_number(av) and _is_number(bv):
            diff = (bv - av) if descending else (av - bv)
            return (diff > 0) - (diff < 0)
        a_key = (str(av).casefold(), str(av))
        b_key = (str(bv).casefold(), str(bv))
        if descending:
            a_key, b_key = b_key, a_key
        return (a_key > b_key) - (a_key < b_key)

    return sorted(rows, key=cmp_to_key(compare))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
