"""Filter tree models: rules (leaves) and AND/OR groups (nodes)."""
from typing import Any, Literal, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from visualizer.models.schema import Operator


class FilterRule(BaseModel):
    """
    A single field/operator/value condition.

    A rule whose ``field`` is empty is incomplete: it stays in the editable
    tree but is left out of serialized requests.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    kind: Literal["rule"] = Field("rule", alias="type")
    field: str = ""
    operator: Operator = Operator.EQ
    value: Any = ""

    @property
    def is_incomplete(self) -> bool:
        return self.field == ""


class FilterGroup(BaseModel):
    """An AND/OR group of rules and nested groups."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    kind: Literal["group"] = Field("group", alias="type")
    logic: Literal["AND", "OR"] = "AND"
    rules: Tuple[Union[FilterRule, "FilterGroup"], ...] = ()


FilterNode = Union[FilterRule, FilterGroup]

FilterGroup.model_rebuild()
