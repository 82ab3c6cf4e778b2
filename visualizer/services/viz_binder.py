"""Chart type and axis bindings, with one-shot auto-suggestion."""
import logging
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from visualizer.models.query import AggregationDefinition, VisualizerQueryResult
from visualizer.models.viz import ColorRule, VizConfig, VizType
from visualizer.services.chart_data import ChartData, build_chart_data

logger = logging.getLogger(__name__)


class VisualizationBinder:
    """
    Holds the VizConfig of one builder session.

    ``sync`` proposes an x field (first group-by) and y fields (first
    aggregation alias) while they are unset. Once the user sets a binding,
    even to an empty value, it is never auto-filled again. Setters overwrite
    without cross-validation; degrading odd combinations (e.g. a donut with
    several y fields) is up to the renderer.
    """

    def __init__(self, initial: Optional[VizConfig] = None):
        self._config = initial if initial is not None else VizConfig()
        self._user_set: Set[str] = set()

    @property
    def config(self) -> VizConfig:
        return self._config

    def is_user_set(self, binding: str) -> bool:
        return binding in self._user_set

    def _update(self, **changes) -> bool:
        if all(getattr(self._config, key) == value for key, value in changes.items()):
            return False
        self._config = self._config.model_copy(update=changes)
        return True

    def _user_update(self, binding: str, value) -> bool:
        self._user_set.add(binding)
        return self._update(**{binding: value})

    def sync(self, group_by: Sequence[str], aggregations: Sequence[AggregationDefinition]) -> bool:
        """Auto-suggest unset x/y bindings from the aggregation model."""
        first_group = group_by[0] if group_by else None
        first_alias = aggregations[0].alias if aggregations else None
        if not first_group and not first_alias:
            return False

        changes = {}
        if first_group and not self._config.x_field and "x_field" not in self._user_set:
            changes["x_field"] = first_group
        if first_alias and not self._config.y_fields and "y_fields" not in self._user_set:
            changes["y_fields"] = (first_alias,)

        if not changes:
            return False
        logger.debug(f"Auto-suggested chart bindings: {changes}")
        return self._update(**changes)

    def set_type(self, viz_type: VizType) -> bool:
        try:
            viz_type = VizType(viz_type)
        except ValueError:
            logger.warning(f"Ignoring unknown visualization type {viz_type!r}")
            return False
        return self._update(type=viz_type)

    def set_x_field(self, field: Optional[str]) -> bool:
        return self._user_update("x_field", field)

    def set_y_fields(self, fields: Optional[Iterable[str]]) -> bool:
        return self._user_update("y_fields", tuple(fields) if fields is not None else None)

    def set_series_field(self, field: Optional[str]) -> bool:
        return self._user_update("series_field", field)

    def set_label_field(self, field: Optional[str]) -> bool:
        return self._user_update("label_field", field)

    def set_tooltip_fields(self, fields: Optional[Iterable[str]]) -> bool:
        return self._user_update("tooltip_fields", tuple(fields) if fields is not None else None)

    def set_color_rules(self, rules: Optional[Iterable[ColorRule]]) -> bool:
        return self._user_update("color_rules", tuple(rules) if rules is not None else None)

    def set_value_format(self, value_format: Optional[str]) -> bool:
        if value_format not in (None, "number", "percent"):
            logger.warning(f"Ignoring unknown value format {value_format!r}")
            return False
        return self._update(value_format=value_format)

    def reset(self) -> None:
        """Back to a plain table with no bindings."""
        self._config = VizConfig()
        self._user_set.clear()

    def resolve(self, result: VisualizerQueryResult) -> ChartData:
        """Chart data for ``result`` under the current configuration."""
        return build_chart_data(result, self._config)


def column_options(
    result: Optional[VisualizerQueryResult],
    aggregations: Sequence[AggregationDefinition],
) -> List[Tuple[str, str]]:
    """
    (key, label) choices for axis pickers: the result's columns once a result
    exists, otherwise the aggregation aliases that will become columns.
    """
    if result is not None:
        return [(column, column) for column in result.columns]
    return [(a.alias, a.alias) for a in aggregations]
