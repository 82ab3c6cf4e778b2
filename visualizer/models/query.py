"""Query request/result wire models."""
from typing import Any, Dict, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from visualizer.models.filters import FilterGroup
from visualizer.models.schema import AggFn


class AggregationDefinition(BaseModel):
    """An aggregation column: function applied to a field, exposed under an alias."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    fn: AggFn
    field: str = Field(..., description="Field key, or '*' for count")
    alias: str


class SortDef(BaseModel):
    """Sort instruction for the result set."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    field: str
    direction: Literal["asc", "desc"] = "asc"


class VisualizerQueryRequest(BaseModel):
    """Request body sent to the query endpoint. Derived, never edited directly."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    filters: FilterGroup
    group_by: Tuple[str, ...] = Field(default=(), alias="groupBy")
    aggregations: Tuple[AggregationDefinition, ...] = ()
    sort: Tuple[SortDef, ...] = ()
    limit: int = Field(500, gt=0)
    include_join_hint: Optional[bool] = Field(None, alias="includeTagJoin")

    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready body using the query service's field names."""
        # Only the join hint is optional on the wire; a null rule value is sent as null
        exclude = {"include_join_hint"} if self.include_join_hint is None else None
        return self.model_dump(mode="json", by_alias=True, exclude=exclude)


class VisualizerQueryResult(BaseModel):
    """Tabular query result. Replaced wholesale on every execution."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    columns: Tuple[str, ...] = ()
    rows: Tuple[Dict[str, Any], ...] = ()
    row_count: int = Field(0, alias="rowCount")
    truncated: bool = False
    execution_ms: float = Field(0, alias="executionMs")
