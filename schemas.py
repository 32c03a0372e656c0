import datetime as dt
import re
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models import IntervalUnit


REPEATING_SPACES_RE = re.compile(r"\s+")


def sanitize_string(value: Optional[str]) -> str:
    """Replace unreadable characters with spaces and collapse whitespace."""
    if not value:
        return ""
    sanitized = "".join(
        ch if ch.isalnum() or ch.isspace() or ch in ".,-'_!\"" else " " for ch in value
    )
    sanitized = REPEATING_SPACES_RE.sub(" ", sanitized)
    return sanitized.strip()


def clean_tags(tags: Optional[list[str]]) -> list[str]:
    cleaned = []
    for tag in tags or []:
        sanitized = sanitize_string(tag)
        if sanitized:
            cleaned.append(sanitized)
    return cleaned


def _required_text(value: str, field: str) -> str:
    sanitized = sanitize_string(value)
    if not sanitized:
        raise ValueError(f"{field} cannot be empty or contain only invalid characters")
    return sanitized


class ExpenseIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., max_length=255)
    category: str = Field(..., max_length=255)
    amount_cents: int
    currency: Optional[str] = Field(default=None, max_length=3)
    date: dt.date
    tags: list[str] = Field(default_factory=list)
    source: Optional[str] = Field(default=None, max_length=50)
    card: Optional[str] = Field(default=None, max_length=100)
    recurring_id: Optional[str] = Field(default=None, max_length=36)

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        return _required_text(value, "Expense name")

    @field_validator("category")
    @classmethod
    def _category(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Expense category cannot be empty")
        return value.strip()

    @field_validator("amount_cents")
    @classmethod
    def _amount(cls, value: int) -> int:
        if value == 0:
            raise ValueError("Expense amount cannot be 0")
        return value

    @field_validator("currency", mode="before")
    @classmethod
    def _currency(cls, value: object) -> Optional[str]:
        if value is None or not str(value).strip():
            return None
        return str(value).strip().lower()

    @field_validator("tags")
    @classmethod
    def _tags(cls, value: list[str]) -> list[str]:
        return clean_tags(value)

    @field_validator("source", "card")
    @classmethod
    def _optional_text(cls, value: Optional[str]) -> Optional[str]:
        return sanitize_string(value) or None


class RecurringRuleIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., max_length=255)
    category: str = Field(..., max_length=255)
    amount_cents: int
    currency: Optional[str] = Field(default=None, max_length=3)
    tags: list[str] = Field(default_factory=list)
    start_date: date
    interval: IntervalUnit
    # Recurrence is always bounded.
    occurrences: int = Field(..., ge=2)

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        return _required_text(value, "Recurring expense name")

    @field_validator("category")
    @classmethod
    def _category(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Recurring expense category cannot be empty")
        return value.strip()

    @field_validator("currency", mode="before")
    @classmethod
    def _currency(cls, value: object) -> Optional[str]:
        if value is None or not str(value).strip():
            return None
        return str(value).strip().lower()

    @field_validator("tags")
    @classmethod
    def _tags(cls, value: list[str]) -> list[str]:
        return clean_tags(value)


class RecurringRuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    amount_cents: int
    currency: str
    category: str
    tags: list[str]
    start_date: date
    interval: IntervalUnit
    occurrences: int


class TenantConfigOut(BaseModel):
    categories: list[str]
    currency: str
    start_day: int
    recurring_rules: list[RecurringRuleOut]
