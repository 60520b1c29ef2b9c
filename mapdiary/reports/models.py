"""Stored period report."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ReportType(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class ReportDoc(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, extra="ignore")

    id: str
    type: ReportType
    period_id: str = Field(alias="periodId")
    period_display: str = Field(default="", alias="periodDisplay")
    chronological: str = ""
    thematic: str = ""
    summary: str = ""
    emotion: str = ""
    created_at: Any = Field(default=None, alias="createdAt")

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> ReportDoc:
        return cls.model_validate(record)

    @property
    def in_progress(self) -> bool:
        return self.period_id.endswith("-IP")
