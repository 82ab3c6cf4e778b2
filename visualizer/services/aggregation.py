"""Group-by fields and aggregation definitions."""
import logging
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from visualizer.models.query import AggregationDefinition
from visualizer.models.schema import AggFn
from visualizer.services.ids import new_id

logger = logging.getLogger(__name__)


def derive_alias(fn: AggFn, field: str) -> str:
    """Default output column name, e.g. ``sum_call_analysis_v2_duration``."""
    return f"{AggFn(fn).value}_{field.replace('.', '_')}"


@dataclass(frozen=True)
class AggregationModel:
    """Immutable snapshot of the group-by list and aggregation list."""
    group_by: Tuple[str, ...] = ()
    aggregations: Tuple[AggregationDefinition, ...] = ()

    @property
    def has_aggregations(self) -> bool:
        return len(self.aggregations) > 0

    def add_group_by(self, field: str) -> "AggregationModel":
        """Append ``field`` unless already present; order of insertion is output order."""
        if not field or field in self.group_by:
            return self
        return replace(self, group_by=self.group_by + (field,))

    def remove_group_by(self, field: str) -> "AggregationModel":
        if field not in self.group_by:
            return self
        return replace(self, group_by=tuple(f for f in self.group_by if f != field))

    def reorder_group_by(self, from_index: int, to_index: int) -> "AggregationModel":
        """Move the entry at ``from_index`` to ``to_index``. Out-of-range indexes are ignored."""
        size = len(self.group_by)
        if not (0 <= from_index < size and 0 <= to_index < size) or from_index == to_index:
            return self
        fields = list(self.group_by)
        moved = fields.pop(from_index)
        fields.insert(to_index, moved)
        return replace(self, group_by=tuple(fields))

    def add_aggregation(self, fn: AggFn, field: str) -> "AggregationModel":
        """
        Append ``fn(field)`` with a derived alias.

        A second definition for the same (fn, field) pair is rejected, so the
        builder never shows two identical aggregation rows.
        """
        try:
            fn = AggFn(fn)
        except ValueError:
            logger.warning(f"Ignoring unknown aggregation function {fn!r}")
            return self
        if any(a.fn == fn and a.field == field for a in self.aggregations):
            logger.debug(f"Aggregation {fn.value}({field}) already present")
            return self
        definition = AggregationDefinition(
            id=new_id("agg"),
            fn=fn,
            field=field,
            alias=derive_alias(fn, field),
        )
        return replace(self, aggregations=self.aggregations + (definition,))

    def remove_aggregation(self, aggregation_id: str) -> "AggregationModel":
        if not any(a.id == aggregation_id for a in self.aggregations):
            return self
        return replace(self, aggregations=tuple(a for a in self.aggregations if a.id != aggregation_id))

    def update_alias(self, aggregation_id: str, alias: str) -> "AggregationModel":
        """
        Rename an aggregation's output column.

        Duplicate aliases are allowed but logged: two columns with the same
        name cannot both be bound to a chart axis.
        """
        target = next((a for a in self.aggregations if a.id == aggregation_id), None)
        if target is None or target.alias == alias:
            return self
        if any(a.alias == alias for a in self.aggregations if a.id != aggregation_id):
            logger.warning(f"Alias '{alias}' is already used by another aggregation")
        return replace(
            self,
            aggregations=tuple(
                a.model_copy(update={"alias": alias}) if a.id == aggregation_id else a
                for a in self.aggregations
            ),
        )


class AggregationBuilder:
    """Per-session holder of the aggregation model. Methods return True on change."""

    def __init__(self, initial: Optional[AggregationModel] = None):
        self._model = initial if initial is not None else AggregationModel()

    @property
    def model(self) -> AggregationModel:
        return self._model

    @property
    def group_by(self) -> Tuple[str, ...]:
        return self._model.group_by

    @property
    def aggregations(self) -> Tuple[AggregationDefinition, ...]:
        return self._model.aggregations

    @property
    def has_aggregations(self) -> bool:
        return self._model.has_aggregations

    def _install(self, model: AggregationModel) -> bool:
        if model is self._model:
            return False
        self._model = model
        return True

    def add_group_by(self, field: str) -> bool:
        return self._install(self._model.add_group_by(field))

    def remove_group_by(self, field: str) -> bool:
        return self._install(self._model.remove_group_by(field))

    def reorder_group_by(self, from_index: int, to_index: int) -> bool:
        return self._install(self._model.reorder_group_by(from_index, to_index))

    def add_aggregation(self, fn: AggFn, field: str) -> bool:
        return self._install(self._model.add_aggregation(fn, field))

    def remove_aggregation(self, aggregation_id: str) -> bool:
        return self._install(self._model.remove_aggregation(aggregation_id))

    def update_alias(self, aggregation_id: str, alias: str) -> bool:
        return self._install(self._model.update_alias(aggregation_id, alias))

    def reset(self) -> None:
        self._model = AggregationModel()
