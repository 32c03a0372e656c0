from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings
from models import Expense, IntervalUnit, RecurringRule, new_id


class GenerationMode(str, Enum):
    full = "full"
    future_only = "future_only"


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def _add_months(base: date, months: int) -> date:
    total_months = base.month - 1 + months
    year = base.year + total_months // 12
    month = total_months % 12 + 1
    # Snap to the last day when the anchor day does not exist in the target month.
    day = min(base.day, days_in_month(year, month))
    return date(year, month, day)


def occurrence_date(start: date, interval: IntervalUnit, index: int) -> date:
    """Date of the ``index``-th occurrence (0-based) counted from ``start``.

    Monthly and yearly steps are anchored on the start date, so a rule
    starting on the 31st lands on the last day of shorter months and goes
    back to the 31st afterwards.
    """
    if interval == IntervalUnit.daily:
        return start + timedelta(days=index)
    if interval == IntervalUnit.weekly:
        return start + timedelta(weeks=index)
    if interval == IntervalUnit.monthly:
        return _add_months(start, index)
    if interval == IntervalUnit.yearly:
        return _add_months(start, 12 * index)
    raise ValueError(f"Invalid interval: {interval!r}")


class RecurringEngine:
    """Turns a rule into the expense rows it implies.

    Pure: nothing is read from or written to the database. The rule's
    currency must already be resolved by the caller.
    """

    def generate(
        self,
        rule: RecurringRule,
        mode: GenerationMode = GenerationMode.full,
        today: Optional[date] = None,
    ) -> list[Expense]:
        interval = IntervalUnit(rule.interval)
        budget = rule.occurrences
        index = 0

        if mode == GenerationMode.future_only:
            today = today or local_today()
            # Occurrences on or before today belong to the preserved history
            # and still count against the budget.
            while (
                budget > 0
                and occurrence_date(rule.start_date, interval, index) <= today
            ):
                index += 1
                budget -= 1

        expenses = []
        for offset in range(budget):
            on_date = occurrence_date(rule.start_date, interval, index + offset)
            expenses.append(self._instance(rule, on_date))
        return expenses

    @staticmethod
    def _instance(rule: RecurringRule, on_date: date) -> Expense:
        return Expense(
            id=new_id(),
            tenant_id=rule.tenant_id,
            recurring_id=rule.id,
            name=rule.name,
            category=rule.category,
            amount_cents=rule.amount_cents,
            currency=rule.currency,
            date=on_date,
            tags=rule.tags,
        )
