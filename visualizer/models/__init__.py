"""Visualizer data models."""
from visualizer.models.schema import (
    AggFn,
    DatePreset,
    FieldDefinition,
    FieldType,
    Operator,
    VisualizerSchema,
    AGG_LABELS,
    DATE_PRESET_LABELS,
    OPERATOR_LABELS,
    SOURCE_LABELS,
)
from visualizer.models.filters import FilterGroup, FilterNode, FilterRule
from visualizer.models.query import (
    AggregationDefinition,
    SortDef,
    VisualizerQueryRequest,
    VisualizerQueryResult,
)
from visualizer.models.viz import ColorRule, VizConfig, VizType, VIZ_LABELS

__all__ = [
    "AggFn",
    "DatePreset",
    "FieldDefinition",
    "FieldType",
    "Operator",
    "VisualizerSchema",
    "AGG_LABELS",
    "DATE_PRESET_LABELS",
    "OPERATOR_LABELS",
    "SOURCE_LABELS",
    "FilterGroup",
    "FilterNode",
    "FilterRule",
    "AggregationDefinition",
    "SortDef",
    "VisualizerQueryRequest",
    "VisualizerQueryResult",
    "ColorRule",
    "VizConfig",
    "VizType",
    "VIZ_LABELS",
]
