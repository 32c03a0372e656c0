import json
import uuid
from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


def new_id() -> str:
    return str(uuid.uuid4())


class IntervalUnit(str, Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"


INTERVAL_UNIT_ENUM = SAEnum(
    IntervalUnit,
    name="intervalunit",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
    validate_strings=True,
)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class TagsMixin:
    tags_json: Mapped[Optional[str]] = mapped_column(Text)

    @property
    def tags(self) -> list[str]:
        if not self.tags_json:
            return []
        return list(json.loads(self.tags_json))

    @tags.setter
    def tags(self, value: Optional[list[str]]) -> None:
        self.tags_json = json.dumps(list(value or []))


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(36), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_category_tenant_name"),
        Index("ix_categories_tenant_position", "tenant_id", "position"),
        CheckConstraint("position > 0", name="ck_category_position_positive"),
    )


class TenantConfig(Base, TimestampMixin):
    __tablename__ = "tenant_config"

    tenant_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    start_day: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint(
            "start_day >= 1 AND start_day <= 31", name="ck_tenant_config_start_day"
        ),
    )


class RecurringRule(Base, TagsMixin, TimestampMixin):
    __tablename__ = "recurring_rules"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(String(36), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    category: Mapped[str] = mapped_column(String(255), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    interval: Mapped[IntervalUnit] = mapped_column(INTERVAL_UNIT_ENUM, nullable=False)
    occurrences: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        Index("ix_recurring_rules_tenant", "tenant_id"),
        CheckConstraint("occurrences >= 2", name="ck_rule_occurrences_min"),
    )


class Expense(Base, TagsMixin, TimestampMixin):
    __tablename__ = "expenses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(String(36), nullable=False)
    # Weak reference: the rule may be gone while its past instances remain.
    recurring_id: Mapped[Optional[str]] = mapped_column(String(36))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(255), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    source: Mapped[Optional[str]] = mapped_column(String(50))
    card: Mapped[Optional[str]] = mapped_column(String(100))

    __table_args__ = (
        Index("ix_expenses_tenant_date", "tenant_id", "date"),
        Index("ix_expenses_tenant_recurring", "tenant_id", "recurring_id"),
    )
