"""One query-builder session: schema, filter tree, aggregations, execution and chart bindings."""
import logging
from typing import Any, Iterable, List, Optional, Tuple

from visualizer.models.filters import FilterRule
from visualizer.models.query import SortDef, VisualizerQueryRequest, VisualizerQueryResult
from visualizer.models.schema import AggFn, Operator, VisualizerSchema
from visualizer.services.aggregation import AggregationBuilder
from visualizer.services.cache import QueryResultCache
from visualizer.services.chart_data import ChartData
from visualizer.services.client import VisualizerClient
from visualizer.services.coordinator import QueryExecutionCoordinator, QueryRunner, QueryState
from visualizer.services.filter_tree import FilterBuilder, find_node
from visualizer.services.operators import allowed_operators, operators_selectable
from visualizer.services.request_builder import build_request
from visualizer.services.schema_catalog import SchemaCatalog, SchemaLoadError, get_schema_catalog
from visualizer.services.viz_binder import VisualizationBinder, column_options

logger = logging.getLogger(__name__)


class VisualizerSession:
    """
    Wires the builder models to query execution.

    Every mutation that changes the filter tree or the aggregation model
    rebuilds the request, hands it to the coordinator (which debounces it)
    and lets the binder auto-suggest chart bindings. While the schema is
    unavailable, field-dependent edits are no-ops.
    """

    def __init__(
        self,
        run_query: Optional[QueryRunner] = None,
        catalog: Optional[SchemaCatalog] = None,
        debounce_seconds: Optional[float] = None,
        cache: Optional[QueryResultCache] = None,
        sort: Iterable[SortDef] = (),
        limit: Optional[int] = None,
        include_join_hint: Optional[bool] = None,
    ):
        """
        Args:
            run_query: Query executor; a VisualizerClient is created when omitted
            catalog: Schema catalog (process-wide catalog by default)
            debounce_seconds: Debounce window override
            cache: Result cache override
            sort: Sort instructions sent with every request
            limit: Row limit override
            include_join_hint: Join hint override
        """
        self._client: Optional[VisualizerClient] = None
        if run_query is None:
            self._client = VisualizerClient()
            run_query = self._client.run_query

        self._catalog = catalog or get_schema_catalog()
        self.schema: Optional[VisualizerSchema] = None
        self.schema_error: Optional[str] = None

        self.filters = FilterBuilder()
        self.aggregations = AggregationBuilder()
        self.viz = VisualizationBinder()
        self.coordinator = QueryExecutionCoordinator(run_query, debounce_seconds=debounce_seconds, cache=cache)

        self.sort: Tuple[SortDef, ...] = tuple(sort)
        self.limit = limit
        self.include_join_hint = include_join_hint

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    async def load_schema(self) -> bool:
        """
        Load the schema catalog. On failure the session keeps a blocking
        message in ``schema_error`` and field-dependent controls stay disabled.
        """
        try:
            self.schema = await self._catalog.get()
        except SchemaLoadError as e:
            self.schema = None
            self.schema_error = str(e)
            return False
        self.schema_error = None
        return True

    @property
    def controls_enabled(self) -> bool:
        return self.schema is not None

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    def build_request(self) -> VisualizerQueryRequest:
        return build_request(
            self.filters.root,
            self.aggregations.group_by,
            self.aggregations.aggregations,
            sort=self.sort,
            limit=self.limit,
            include_join_hint=self.include_join_hint,
            schema=self.schema,
        )

    @property
    def state(self) -> QueryState:
        return self.coordinator.state

    @property
    def result(self) -> Optional[VisualizerQueryResult]:
        return self.coordinator.state.data

    def chart_data(self) -> Optional[ChartData]:
        result = self.result
        return self.viz.resolve(result) if result is not None else None

    def column_options(self) -> List[Tuple[str, str]]:
        return column_options(self.result, self.aggregations.aggregations)

    def operator_options(self, rule_id: str) -> Tuple[Tuple[Operator, ...], bool]:
        """Operators to offer for a rule, and whether the choice is enabled."""
        rule = find_node(self.filters.root, rule_id)
        field_key = rule.field if isinstance(rule, FilterRule) else ""
        return allowed_operators(self.schema, field_key), operators_selectable(self.schema, field_key)

    def _changed(self, changed: bool) -> bool:
        if changed:
            self.viz.sync(self.aggregations.group_by, self.aggregations.aggregations)
            self.coordinator.submit(self.build_request())
        return changed

    # ------------------------------------------------------------------
    # Filter tree
    # ------------------------------------------------------------------

    def add_rule(self, group_id: str) -> bool:
        return self._changed(self.filters.add_rule(group_id))

    def add_group(self, group_id: str) -> bool:
        return self._changed(self.filters.add_group(group_id))

    def remove_node(self, node_id: str) -> bool:
        return self._changed(self.filters.remove_node(node_id))

    def toggle_logic(self, group_id: str) -> bool:
        return self._changed(self.filters.toggle_logic(group_id))

    def change_rule_field(self, rule_id: str, field: str) -> bool:
        if not self.controls_enabled:
            return False
        return self._changed(self.filters.change_field(rule_id, field, self.schema))

    def change_rule_operator(self, rule_id: str, operator: Operator) -> bool:
        if not self.controls_enabled:
            return False
        return self._changed(self.filters.change_operator(rule_id, operator))

    def set_rule_value(self, rule_id: str, value: Any) -> bool:
        if not self.controls_enabled:
            return False
        return self._changed(self.filters.set_value(rule_id, value, self.schema))

    # ------------------------------------------------------------------
    # Aggregations
    # ------------------------------------------------------------------

    def add_group_by(self, field: str) -> bool:
        if not self.controls_enabled:
            return False
        field_def = self.schema.get_field(field)
        if field_def is None or not field_def.groupable:
            logger.debug(f"Field '{field}' cannot be grouped by")
            return False
        return self._changed(self.aggregations.add_group_by(field))

    def remove_group_by(self, field: str) -> bool:
        return self._changed(self.aggregations.remove_group_by(field))

    def reorder_group_by(self, from_index: int, to_index: int) -> bool:
        return self._changed(self.aggregations.reorder_group_by(from_index, to_index))

    def add_aggregation(self, fn: AggFn, field: str) -> bool:
        if not self.controls_enabled:
            return False
        if self.schema.aggregation_fns and fn not in self.schema.aggregation_fns:
            logger.debug(f"Aggregation function {fn!r} not offered by the schema")
            return False
        if field == "*":
            if fn != AggFn.COUNT:
                return False
        else:
            field_def = self.schema.get_field(field)
            if field_def is None or not field_def.aggregatable:
                logger.debug(f"Field '{field}' cannot be aggregated")
                return False
        return self._changed(self.aggregations.add_aggregation(fn, field))

    def remove_aggregation(self, aggregation_id: str) -> bool:
        return self._changed(self.aggregations.remove_aggregation(aggregation_id))

    def update_alias(self, aggregation_id: str, alias: str) -> bool:
        return self._changed(self.aggregations.update_alias(aggregation_id, alias))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Clear filters, aggregations and chart bindings."""
        self.filters.reset()
        self.aggregations.reset()
        self.viz.reset()
        self.coordinator.submit(self.build_request())

    async def close(self) -> None:
        await self.coordinator.close()
        if self._client is not None:
            await self._client.close()
