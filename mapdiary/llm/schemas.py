"""Schemas for structured LLM responses."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FinancialType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class FinancialItem(BaseModel):
    """One money movement mentioned in a diary."""

    model_config = ConfigDict(use_enum_values=True)

    type: FinancialType
    label: str = ""
    amount: float = Field(ge=0.0)

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v):
        # Models sometimes answer "12,000" or "-3000" for expenses.
        if isinstance(v, str):
            v = v.replace(",", "").strip()
        return abs(float(v))


class DiarySummary(BaseModel):
    """Schema for summarize-diary responses."""

    summary: str
    emotion: str
    financials: list[FinancialItem] = Field(default_factory=list)


class ReportContent(BaseModel):
    """Schema for generate-report responses."""

    chronological: str
    thematic: str
    summary: str
    emotion: str
