"""Schema catalog models: queryable fields and the operators legal for them."""
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class FieldType(str, Enum):
    """Data types a queryable field can have."""
    TEXT = "text"
    NUMERIC = "numeric"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"
    ENUM = "enum"
    JSONB = "jsonb"


class Operator(str, Enum):
    """Filter operators understood by the query service."""
    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    IN = "in"
    NOT_IN = "not_in"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"
    BETWEEN = "between"
    DATE_PRESET = "date_preset"
    CONTAINS_KEY = "contains_key"


class AggFn(str, Enum):
    """Aggregation functions."""
    COUNT = "count"
    COUNT_DISTINCT = "count_distinct"
    SUM = "sum"
    AVG = "avg"
    MIN = "min"
    MAX = "max"


class DatePreset(str, Enum):
    """Relative date ranges resolved server-side."""
    TODAY = "today"
    YESTERDAY = "yesterday"
    LAST_7_DAYS = "last_7_days"
    LAST_30_DAYS = "last_30_days"
    THIS_MONTH = "this_month"
    THIS_YEAR = "this_year"


SOURCE_LABELS: Dict[str, str] = {
    "call_analysis_v2": "Call Analysis",
    "tag_definitions": "Tag Definitions",
    "call_tags": "Call Tags",
}

AGG_LABELS: Dict[AggFn, str] = {
    AggFn.COUNT: "Count",
    AggFn.COUNT_DISTINCT: "Count Distinct",
    AggFn.SUM: "Sum",
    AggFn.AVG: "Average",
    AggFn.MIN: "Min",
    AggFn.MAX: "Max",
}

OPERATOR_LABELS: Dict[Operator, str] = {
    Operator.EQ: "= equals",
    Operator.NE: "≠ not equals",
    Operator.GT: "> greater than",
    Operator.GTE: "≥ greater or equal",
    Operator.LT: "< less than",
    Operator.LTE: "≤ less or equal",
    Operator.CONTAINS: "contains",
    Operator.NOT_CONTAINS: "does not contain",
    Operator.STARTS_WITH: "starts with",
    Operator.ENDS_WITH: "ends with",
    Operator.IN: "is one of",
    Operator.NOT_IN: "is not one of",
    Operator.IS_NULL: "is empty",
    Operator.IS_NOT_NULL: "is not empty",
    Operator.BETWEEN: "is between",
    Operator.DATE_PRESET: "date preset",
    Operator.CONTAINS_KEY: "has key",
}

DATE_PRESET_LABELS: Dict[str, str] = {
    DatePreset.TODAY.value: "Today",
    DatePreset.YESTERDAY.value: "Yesterday",
    DatePreset.LAST_7_DAYS.value: "Last 7 days",
    DatePreset.LAST_30_DAYS.value: "Last 30 days",
    DatePreset.THIS_MONTH.value: "This month",
    DatePreset.THIS_YEAR.value: "This year",
}


class FieldDefinition(BaseModel):
    """A field that can be filtered, grouped or aggregated."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    key: str = Field(..., description="Unique field key, e.g. 'call_analysis_v2.status'")
    label: str = Field(..., description="Display label")
    source: str = Field(..., description="Source table the field belongs to")
    type: FieldType
    groupable: bool = False
    aggregatable: bool = False
    filterable: bool = False
    enum_values: Optional[Tuple[str, ...]] = Field(None, alias="enumValues")

    @property
    def source_label(self) -> str:
        return SOURCE_LABELS.get(self.source, self.source)


class VisualizerSchema(BaseModel):
    """Static description of the queryable dataset, immutable for the session."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    fields: Tuple[FieldDefinition, ...] = ()
    date_presets: Tuple[str, ...] = Field(default=(), alias="datePresets")
    allowed_operators: Dict[FieldType, Tuple[Operator, ...]] = Field(default_factory=dict, alias="allowedOperators")
    aggregation_fns: Tuple[AggFn, ...] = Field(default=(), alias="aggregationFns")

    def get_field(self, key: str) -> Optional[FieldDefinition]:
        """Look up a field by key."""
        if not key:
            return None
        for field_def in self.fields:
            if field_def.key == key:
                return field_def
        return None

    def has_field(self, key: str) -> bool:
        return self.get_field(key) is not None

    def operators_for_type(self, field_type: FieldType) -> Tuple[Operator, ...]:
        """Operators legal for a field type (empty when the catalog lists none)."""
        return tuple(self.allowed_operators.get(field_type, ()))

    @property
    def filterable_fields(self) -> List[FieldDefinition]:
        return [f for f in self.fields if f.filterable]

    @property
    def groupable_fields(self) -> List[FieldDefinition]:
        return [f for f in self.fields if f.groupable]

    @property
    def aggregatable_fields(self) -> List[FieldDefinition]:
        return [f for f in self.fields if f.aggregatable]
