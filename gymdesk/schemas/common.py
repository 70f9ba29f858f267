"""
Shared Pydantic Schemas.
"""

from enum import Enum
from typing import Annotated, Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


def lenient_enum(enum_cls: type[Enum]) -> Any:
    """
    Field type for backend enums that may hold values the dashboard does not
    know yet (the columns are plain varchars). Known values parse to the enum;
    anything else is kept as the raw string, which ranks 0 when sorting.
    """
    return Annotated[Union[enum_cls, str], Field(union_mode="left_to_right")]


class Location(BaseModel):
    """Gym location used to populate filter dropdowns."""

    model_config = ConfigDict(extra="ignore")

    id: int
    name: str


class ChartData(BaseModel):
    """Labels/values series returned by the chart endpoints."""

    model_config = ConfigDict(extra="ignore")

    labels: list[str] = Field(default_factory=list)
    values: list[Union[int, float]] = Field(default_factory=list)
    colors: Optional[list[str]] = None

    @model_validator(mode="after")
    def series_aligned(self) -> "ChartData":
        if len(self.labels) != len(self.values):
            raise ValueError("Chart labels and values must have the same length")
        return self

    @property
    def is_empty(self) -> bool:
        return not self.values or sum(self.values) == 0

    def as_rows(self) -> list[dict]:
        """Rows suitable for a pandas DataFrame."""
        return [
            {"label": label, "value": value}
            for label, value in zip(self.labels, self.values)
        ]
