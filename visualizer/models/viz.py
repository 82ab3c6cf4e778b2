"""Chart configuration models."""
from enum import Enum
from typing import Any, Dict, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class VizType(str, Enum):
    """Supported visualization types."""
    TABLE = "table"
    BAR = "bar"
    STACKED_BAR = "stacked_bar"
    LINE = "line"
    AREA = "area"
    DONUT = "donut"


VIZ_LABELS: Dict[VizType, str] = {
    VizType.TABLE: "Table",
    VizType.BAR: "Bar Chart",
    VizType.STACKED_BAR: "Stacked Bar",
    VizType.LINE: "Line Chart",
    VizType.AREA: "Area Chart",
    VizType.DONUT: "Donut / Pie",
}

ValueFormat = Literal["number", "percent"]


class ColorRule(BaseModel):
    """Fixed colour for rows where ``field`` equals ``value``."""

    model_config = ConfigDict(frozen=True)

    field: str
    value: Any
    color: str


class VizConfig(BaseModel):
    """Chart type plus axis/series bindings."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: VizType = VizType.TABLE
    x_field: Optional[str] = Field(None, alias="xField")
    y_fields: Optional[Tuple[str, ...]] = Field(None, alias="yFields")
    series_field: Optional[str] = Field(None, alias="seriesField")
    label_field: Optional[str] = Field(None, alias="labelField")
    tooltip_fields: Optional[Tuple[str, ...]] = Field(None, alias="tooltipFields")
    color_rules: Optional[Tuple[ColorRule, ...]] = Field(None, alias="colorRules")
    value_format: Optional[ValueFormat] = Field(None, alias="valueFormat")
