from __future__ import annotations

import json
import logging
from datetime import date
from typing import Optional, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from config import Catalog
from database import dialect_insert
from errors import NotFoundError, ValidationError
from models import Expense, RecurringRule, TenantConfig
from recurrence import GenerationMode, RecurringEngine, local_today
from schemas import ExpenseIn, RecurringRuleIn


logger = logging.getLogger(__name__)


def require_tenant(tenant_id: str) -> str:
    if not isinstance(tenant_id, str) or not tenant_id.strip():
        raise ValidationError("Tenant identifier is required")
    return tenant_id


def check_currency(catalog: Catalog, currency: Optional[str]) -> None:
    if currency is not None and currency not in catalog.supported_currencies:
        raise ValidationError(f"Invalid currency: {currency}")


class TenantConfigService:
    def __init__(self, session: Session, tenant_id: str, catalog: Catalog) -> None:
        self.session = session
        self.tenant_id = tenant_id
        self.catalog = catalog

    def get(self) -> TenantConfig:
        config = self.session.get(TenantConfig, self.tenant_id)
        if config:
            return config
        # Insert-or-ignore so concurrent first reads do not conflict.
        insert = dialect_insert(self.session)
        self.session.execute(
            insert(TenantConfig)
            .values(
                tenant_id=self.tenant_id,
                currency=self.catalog.default_currency,
                start_day=self.catalog.default_start_day,
            )
            .on_conflict_do_nothing(index_elements=["tenant_id"])
        )
        return self.session.get(TenantConfig, self.tenant_id)

    def resolve_currency(self, currency: Optional[str]) -> str:
        return currency or self.get().currency

    def update_currency(self, currency: str) -> None:
        currency = (currency or "").strip().lower()
        if currency not in self.catalog.supported_currencies:
            raise ValidationError(f"Invalid currency: {currency}")
        self.get().currency = currency
        self.session.flush()

    def update_start_day(self, start_day: int) -> None:
        if start_day < 1 or start_day > 31:
            raise ValidationError(f"Invalid start date: {start_day}")
        self.get().start_day = start_day
        self.session.flush()


class ExpenseService:
    def __init__(self, session: Session, tenant_id: str, catalog: Catalog) -> None:
        self.session = session
        self.tenant_id = tenant_id
        self.catalog = catalog
        self.config = TenantConfigService(session, tenant_id, catalog)

    def list_all(self) -> list[Expense]:
        stmt = (
            select(Expense)
            .where(Expense.tenant_id == self.tenant_id)
            .order_by(Expense.date.desc(), Expense.created_at.desc(), Expense.id)
        )
        return list(self.session.scalars(stmt).all())

    def get(self, expense_id: str) -> Expense:
        stmt = select(Expense).where(
            Expense.tenant_id == self.tenant_id, Expense.id == expense_id
        )
        expense = self.session.scalar(stmt)
        if not expense:
            raise NotFoundError(f"Expense with ID {expense_id} not found")
        return expense

    def add(self, data: ExpenseIn) -> Expense:
        return self.add_many([data])[0]

    def add_many(self, items: Sequence[ExpenseIn]) -> list[Expense]:
        for data in items:
            check_currency(self.catalog, data.currency)
        expenses = [
            Expense(
                tenant_id=self.tenant_id,
                recurring_id=data.recurring_id,
                name=data.name,
                category=data.category,
                amount_cents=data.amount_cents,
                currency=self.config.resolve_currency(data.currency),
                date=data.date,
                tags=data.tags,
                source=data.source,
                card=data.card,
            )
            for data in items
        ]
        self.session.add_all(expenses)
        self.session.flush()
        return expenses

    def update(self, expense_id: str, data: ExpenseIn) -> None:
        check_currency(self.catalog, data.currency)
        values = {
            "name": data.name,
            "category": data.category,
            "amount_cents": data.amount_cents,
            "currency": self.config.resolve_currency(data.currency),
            "date": data.date,
            "tags_json": json.dumps(data.tags),
            "source": data.source,
            "card": data.card,
        }
        # An edited instance stays attached to its rule unless relinked.
        if data.recurring_id is not None:
            values["recurring_id"] = data.recurring_id
        result = self.session.execute(
            update(Expense)
            .where(Expense.tenant_id == self.tenant_id, Expense.id == expense_id)
            .values(**values)
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Expense with ID {expense_id} not found")

    def remove(self, expense_id: str) -> None:
        result = self.session.execute(
            delete(Expense).where(
                Expense.tenant_id == self.tenant_id, Expense.id == expense_id
            )
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Expense with ID {expense_id} not found")

    def remove_many(self, expense_ids: Sequence[str]) -> int:
        if not expense_ids:
            return 0
        result = self.session.execute(
            delete(Expense).where(
                Expense.tenant_id == self.tenant_id, Expense.id.in_(list(expense_ids))
            )
        )
        return result.rowcount


class MaterializationCoordinator:
    """Keeps a recurring rule and its generated expenses in step.

    Every method runs inside the caller's unit of work, so a rule is never
    visible without its instances and a partial deletion never commits.
    """

    def __init__(
        self,
        session: Session,
        tenant_id: str,
        catalog: Catalog,
        engine: Optional[RecurringEngine] = None,
    ) -> None:
        self.session = session
        self.tenant_id = tenant_id
        self.catalog = catalog
        self.engine = engine or RecurringEngine()
        self.config = TenantConfigService(session, tenant_id, catalog)

    def list(self) -> list[RecurringRule]:
        stmt = (
            select(RecurringRule)
            .where(RecurringRule.tenant_id == self.tenant_id)
            .order_by(RecurringRule.start_date, RecurringRule.name)
        )
        return list(self.session.scalars(stmt).all())

    def get(self, rule_id: str) -> RecurringRule:
        stmt = select(RecurringRule).where(
            RecurringRule.tenant_id == self.tenant_id, RecurringRule.id == rule_id
        )
        rule = self.session.scalar(stmt)
        if not rule:
            raise NotFoundError(f"Recurring expense with ID {rule_id} not found")
        return rule

    def create(self, data: RecurringRuleIn) -> RecurringRule:
        check_currency(self.catalog, data.currency)
        rule = self._build_rule(data)
        self.session.add(rule)
        self.session.flush()

        expenses = self.engine.generate(rule, GenerationMode.full)
        self._insert_instances(expenses)
        logger.info(
            f"recurring_create: tenant={self.tenant_id} rule={rule.id} "
            f"instances={len(expenses)}"
        )
        return rule

    def update(
        self,
        rule_id: str,
        data: RecurringRuleIn,
        update_all: bool,
        today: Optional[date] = None,
    ) -> None:
        check_currency(self.catalog, data.currency)
        today = today or local_today()
        rule = self._build_rule(data, rule_id=rule_id)
        result = self.session.execute(
            update(RecurringRule)
            .where(
                RecurringRule.tenant_id == self.tenant_id,
                RecurringRule.id == rule_id,
            )
            .values(
                name=rule.name,
                amount_cents=rule.amount_cents,
                currency=rule.currency,
                category=rule.category,
                start_date=rule.start_date,
                interval=rule.interval,
                occurrences=rule.occurrences,
                tags_json=rule.tags_json,
            )
        )
        if result.rowcount == 0:
            raise NotFoundError(
                f"Recurring expense with ID {rule_id} not found to update"
            )

        removed = self._delete_instances(
            rule_id, only_future=not update_all, today=today
        )
        mode = GenerationMode.full if update_all else GenerationMode.future_only
        expenses = self.engine.generate(rule, mode, today=today)
        self._insert_instances(expenses)
        logger.info(
            f"recurring_update: tenant={self.tenant_id} rule={rule_id} "
            f"update_all={update_all} removed={removed} instances={len(expenses)}"
        )

    def delete(
        self, rule_id: str, remove_all: bool, today: Optional[date] = None
    ) -> None:
        today = today or local_today()
        result = self.session.execute(
            delete(RecurringRule).where(
                RecurringRule.tenant_id == self.tenant_id,
                RecurringRule.id == rule_id,
            )
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Recurring expense with ID {rule_id} not found")
        removed = self._delete_instances(
            rule_id, only_future=not remove_all, today=today
        )
        logger.info(
            f"recurring_delete: tenant={self.tenant_id} rule={rule_id} "
            f"remove_all={remove_all} removed={removed}"
        )

    def _build_rule(
        self, data: RecurringRuleIn, rule_id: Optional[str] = None
    ) -> RecurringRule:
        rule = RecurringRule(
            tenant_id=self.tenant_id,
            name=data.name,
            amount_cents=data.amount_cents,
            currency=self.config.resolve_currency(data.currency),
            category=data.category,
            start_date=data.start_date,
            interval=data.interval,
            occurrences=data.occurrences,
            tags=data.tags,
        )
        if rule_id is not None:
            rule.id = rule_id
        return rule

    def _delete_instances(self, rule_id: str, only_future: bool, today: date) -> int:
        stmt = delete(Expense).where(
            Expense.tenant_id == self.tenant_id, Expense.recurring_id == rule_id
        )
        if only_future:
            stmt = stmt.where(Expense.date > today)
        return self.session.execute(stmt).rowcount

    def _insert_instances(self, expenses: list[Expense]) -> None:
        if not expenses:
            return
        self.session.add_all(expenses)
        self.session.flush()
