"""Assembles the query request sent to the query service."""
import json
import logging
from typing import Iterable, Optional

from visualizer.core.config import settings
from visualizer.models.filters import FilterGroup
from visualizer.models.query import AggregationDefinition, SortDef, VisualizerQueryRequest
from visualizer.models.schema import VisualizerSchema
from visualizer.services.filter_tree import prune_incomplete

logger = logging.getLogger(__name__)


def build_request(
    filter_root: FilterGroup,
    group_by: Iterable[str],
    aggregations: Iterable[AggregationDefinition],
    sort: Iterable[SortDef] = (),
    limit: Optional[int] = None,
    include_join_hint: Optional[bool] = None,
    schema: Optional[VisualizerSchema] = None,
) -> VisualizerQueryRequest:
    """
    Build a request from the current builder state.

    Incomplete rules (no field) and, when a schema is given, malformed rules
    are dropped from the serialized filters. Whether the request is worth
    sending is decided by the execution coordinator, not here.

    Args:
        filter_root: Editable filter tree
        group_by: Group-by field keys in output order
        aggregations: Aggregation definitions
        sort: Sort instructions
        limit: Row limit (defaults to settings.QUERY_DEFAULT_LIMIT)
        include_join_hint: Ask the service to join tag tables
            (defaults to settings.QUERY_INCLUDE_JOIN_HINT)
        schema: Schema catalog used to drop malformed rules

    Returns:
        VisualizerQueryRequest
    """
    return VisualizerQueryRequest(
        filters=prune_incomplete(filter_root, schema),
        group_by=tuple(group_by),
        aggregations=tuple(aggregations),
        sort=tuple(sort),
        limit=limit if limit is not None else settings.QUERY_DEFAULT_LIMIT,
        include_join_hint=include_join_hint if include_join_hint is not None else settings.QUERY_INCLUDE_JOIN_HINT,
    )


def serialize_request(request: VisualizerQueryRequest) -> str:
    """Stable JSON encoding of a request; identical requests give identical strings."""
    return json.dumps(request.to_wire(), sort_keys=True, separators=(",", ":"), default=str)


def has_filters(request: VisualizerQueryRequest) -> bool:
    """Enable condition: an unconstrained request (no filter rules) is never executed."""
    return len(request.filters.rules) > 0
