"""Schema-driven operator rules for filter conditions."""
import logging
from enum import Enum
from typing import Any, Optional, Tuple

from visualizer.models.filters import FilterRule
from visualizer.models.schema import FieldType, Operator, VisualizerSchema

logger = logging.getLogger(__name__)


class ValueKind(str, Enum):
    """Shape of the value an operator takes."""
    NONE = "none"        # is_null / is_not_null
    SCALAR = "scalar"
    RANGE = "range"      # [low, high]
    LIST = "list"        # in / not_in
    PRESET = "preset"    # one of the schema's date presets


NO_VALUE_OPERATORS = frozenset({Operator.IS_NULL, Operator.IS_NOT_NULL})
LIST_OPERATORS = frozenset({Operator.IN, Operator.NOT_IN})

ALL_OPERATORS: Tuple[Operator, ...] = tuple(Operator)


def operator_value_kind(operator: Operator) -> ValueKind:
    """Return the value shape an operator expects."""
    if operator in NO_VALUE_OPERATORS:
        return ValueKind.NONE
    if operator == Operator.BETWEEN:
        return ValueKind.RANGE
    if operator in LIST_OPERATORS:
        return ValueKind.LIST
    if operator == Operator.DATE_PRESET:
        return ValueKind.PRESET
    return ValueKind.SCALAR


def default_value(operator: Operator) -> Any:
    """Empty value for an operator, used when the operator or field changes."""
    kind = operator_value_kind(operator)
    if kind == ValueKind.NONE:
        return None
    if kind == ValueKind.RANGE:
        return ["", ""]
    if kind == ValueKind.LIST:
        return []
    return ""


def allowed_operators(schema: Optional[VisualizerSchema], field_key: str) -> Tuple[Operator, ...]:
    """
    Operators offered for a field.

    When the field is unset (or unknown to the catalog) every operator is
    returned; callers show them disabled until a field is chosen, see
    ``operators_selectable``.

    Args:
        schema: Loaded schema catalog, or None while it is unavailable
        field_key: Currently selected field key ('' when unset)

    Returns:
        Tuple of operators in catalog order
    """
    if schema is None:
        return ALL_OPERATORS
    field_def = schema.get_field(field_key)
    if field_def is None:
        return ALL_OPERATORS
    return schema.operators_for_type(field_def.type)


def operators_selectable(schema: Optional[VisualizerSchema], field_key: str) -> bool:
    """Whether the operator choice is enabled for the rule's field."""
    return schema is not None and schema.get_field(field_key) is not None


def default_operator(schema: Optional[VisualizerSchema], field_key: str) -> Operator:
    """First operator valid for the field's type, ``eq`` when nothing better is known."""
    if schema is None or schema.get_field(field_key) is None:
        return Operator.EQ
    operators = allowed_operators(schema, field_key)
    return operators[0] if operators else Operator.EQ


def is_operator_allowed(schema: VisualizerSchema, field_key: str, operator: Operator) -> bool:
    field_def = schema.get_field(field_key)
    if field_def is None:
        return False
    return operator in schema.operators_for_type(field_def.type)


def coerce_value(operator: Operator, value: Any, field_type: Optional[FieldType] = None) -> Any:
    """
    Normalize editor input to the shape the operator takes.

    - no-value operators drop the value
    - list operators accept a list or comma-separated text
    - ``between`` is padded/truncated to a [low, high] pair
    - boolean fields accept "true"/"false" text
    """
    kind = operator_value_kind(operator)

    if kind == ValueKind.NONE:
        return None

    if kind == ValueKind.LIST:
        if isinstance(value, (list, tuple)):
            return [v for v in value if v not in ("", None)]
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        if value is None:
            return []
        return [value]

    if kind == ValueKind.RANGE:
        if isinstance(value, (list, tuple)):
            low = value[0] if len(value) > 0 else ""
            high = value[1] if len(value) > 1 else ""
            return [low, high]
        if value in ("", None):
            return ["", ""]
        return [value, ""]

    if field_type == FieldType.BOOLEAN and isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False

    return value


def is_rule_complete(rule: FilterRule, schema: Optional[VisualizerSchema] = None) -> bool:
    """
    Whether a rule may be sent to the query service.

    A rule with no field is incomplete. With a schema, a rule whose field is
    gone from the catalog, is not filterable, or carries an operator the
    field's type does not allow is malformed and treated the same way.
    """
    if rule.is_incomplete:
        return False
    if schema is None:
        return True

    field_def = schema.get_field(rule.field)
    if field_def is None:
        logger.debug(f"Rule {rule.id} references unknown field '{rule.field}'")
        return False
    if not field_def.filterable:
        logger.debug(f"Rule {rule.id} references non-filterable field '{rule.field}'")
        return False
    if not is_operator_allowed(schema, rule.field, rule.operator):
        logger.debug(f"Rule {rule.id}: operator '{rule.operator.value}' not allowed for type '{field_def.type.value}'")
        return False
    if rule.operator == Operator.DATE_PRESET and schema.date_presets and rule.value not in schema.date_presets:
        return False
    return True
