"""
Map document model and helpers shared by the map and report services.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from mapdiary.config import UNTITLED_LABEL
from mapdiary.llm.schemas import FinancialItem, FinancialType
from mapdiary.utils.dates import (
    EPOCH,
    extract_date_from_title,
    format_date_key,
    timestamp_or_epoch,
    to_datetime,
)

PAGE_SENTINEL = "<!-- page -->"
DAILY_TITLE_MARKER = "일의 기록"


class MapType(str, Enum):
    BLANK = "blank"
    DAILY = "daily"
    NOTE = "note"


class MapDoc(BaseModel):
    """A stored map. Timestamps stay in their stored form; use the accessors."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, extra="ignore")

    id: str
    title: str = ""
    type: MapType = MapType.BLANK
    content: str | None = None
    summary: str | None = None
    emotion: str | None = None
    financials: list[FinancialItem] = Field(default_factory=list)
    summarized_at: Any = Field(default=None, alias="summarizedAt")
    created_at: Any = Field(default=None, alias="createdAt")
    updated_at: Any = Field(default=None, alias="updatedAt")

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> MapDoc:
        data = dict(record)
        if data.get("type") is None:
            data.pop("type", None)
        if data.get("financials") is None:
            data.pop("financials", None)
        return cls.model_validate(data)

    @property
    def display_title(self) -> str:
        return self.title or UNTITLED_LABEL

    @property
    def is_note(self) -> bool:
        return self.type == MapType.NOTE

    @property
    def is_daily(self) -> bool:
        return self.type == MapType.DAILY or DAILY_TITLE_MARKER in (self.title or "")

    def created(self) -> datetime | None:
        return to_datetime(self.created_at)

    def updated(self) -> datetime | None:
        return to_datetime(self.updated_at)

    def last_touched(self) -> datetime:
        """updatedAt, then createdAt, then epoch."""
        return self.updated() or self.created() or EPOCH

    def needs_summary(self) -> bool:
        """True when the map changed after its last summary (missing values count as epoch)."""
        return timestamp_or_epoch(self.updated_at) > timestamp_or_epoch(self.summarized_at)

    def note_pages(self) -> tuple[str, str] | None:
        """(left, right) page text for note maps; None for graph maps."""
        if self.type != MapType.NOTE:
            return None
        return split_pages(self.content)

    def date_key(self) -> str | None:
        """YYYY-MM-DD from createdAt, then updatedAt, then a date in the title."""
        stamp = self.created() or self.updated()
        if stamp is not None:
            return format_date_key(stamp)
        title_date = extract_date_from_title(self.title)
        return format_date_key(title_date) if title_date else None


def split_pages(content: str | None) -> tuple[str, str]:
    """Split note content at the first page sentinel into (left, right)."""
    if not content:
        return "", ""
    left, sep, right = content.partition(PAGE_SENTINEL)
    if not sep:
        return content, ""
    return left.rstrip("\n"), right.lstrip("\n")


def join_pages(left: str, right: str) -> str:
    if not right:
        return left
    return f"{left}\n{PAGE_SENTINEL}\n{right}"


@dataclass(frozen=True)
class ExpenseShare:
    label: str
    amount: float
    percentage: float


@dataclass(frozen=True)
class FinancialSummary:
    total_income: float
    total_expense: float
    net: float
    expense_shares: tuple[ExpenseShare, ...]

    @classmethod
    def from_items(cls, items: list[FinancialItem]) -> FinancialSummary:
        income = sum(i.amount for i in items if i.type == FinancialType.INCOME.value)
        expense_items = [i for i in items if i.type == FinancialType.EXPENSE.value]
        expense = sum(i.amount for i in expense_items)
        shares = tuple(
            ExpenseShare(
                label=i.label,
                amount=i.amount,
                percentage=(i.amount / expense) * 100 if expense > 0 else 0.0,
            )
            for i in expense_items
        )
        return cls(
            total_income=income,
            total_expense=expense,
            net=income - expense,
            expense_shares=shares,
        )
