"""Tenant-scoped entry point to expenses, recurring rules and categories.

Every public method takes the tenant id first and runs as one unit of work.
The tenant id is trusted as given; authenticating it is the caller's job.
"""

import logging
from datetime import date
from typing import Any, Mapping, Optional, Sequence, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session, sessionmaker

from categories import CategoryReconciler
from config import Catalog, Settings, configure_logging, get_settings
from database import create_db_engine, create_session_factory, session_scope
from errors import ValidationError
from models import Expense, RecurringRule
from schemas import ExpenseIn, RecurringRuleIn, RecurringRuleOut, TenantConfigOut
from services import (
    ExpenseService,
    MaterializationCoordinator,
    TenantConfigService,
    require_tenant,
)


logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _coerce(model: type[ModelT], data: Union[ModelT, Mapping[str, Any]]) -> ModelT:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(str(exc)) from exc


class TenantStore:
    def __init__(
        self, session_factory: sessionmaker[Session], catalog: Optional[Catalog] = None
    ) -> None:
        self.session_factory = session_factory
        self.catalog = catalog or Catalog()

    # Recurring rules

    def create_recurring_rule(
        self, tenant_id: str, data: Union[RecurringRuleIn, Mapping[str, Any]]
    ) -> RecurringRule:
        require_tenant(tenant_id)
        data = _coerce(RecurringRuleIn, data)
        with session_scope(self.session_factory) as session:
            return self._coordinator(session, tenant_id).create(data)

    def update_recurring_rule(
        self,
        tenant_id: str,
        rule_id: str,
        data: Union[RecurringRuleIn, Mapping[str, Any]],
        update_all: bool,
        *,
        today: Optional[date] = None,
    ) -> None:
        require_tenant(tenant_id)
        data = _coerce(RecurringRuleIn, data)
        with session_scope(self.session_factory) as session:
            self._coordinator(session, tenant_id).update(
                rule_id, data, update_all, today=today
            )

    def delete_recurring_rule(
        self,
        tenant_id: str,
        rule_id: str,
        remove_all: bool,
        *,
        today: Optional[date] = None,
    ) -> None:
        require_tenant(tenant_id)
        with session_scope(self.session_factory) as session:
            self._coordinator(session, tenant_id).delete(
                rule_id, remove_all, today=today
            )

    def list_recurring_rules(self, tenant_id: str) -> list[RecurringRule]:
        require_tenant(tenant_id)
        with session_scope(self.session_factory) as session:
            return self._coordinator(session, tenant_id).list()

    def get_recurring_rule(self, tenant_id: str, rule_id: str) -> RecurringRule:
        require_tenant(tenant_id)
        with session_scope(self.session_factory) as session:
            return self._coordinator(session, tenant_id).get(rule_id)

    # Expenses

    def list_expenses(self, tenant_id: str) -> list[Expense]:
        require_tenant(tenant_id)
        with session_scope(self.session_factory) as session:
            return self._expenses(session, tenant_id).list_all()

    def get_expense(self, tenant_id: str, expense_id: str) -> Expense:
        require_tenant(tenant_id)
        with session_scope(self.session_factory) as session:
            return self._expenses(session, tenant_id).get(expense_id)

    def add_expense(
        self, tenant_id: str, data: Union[ExpenseIn, Mapping[str, Any]]
    ) -> Expense:
        require_tenant(tenant_id)
        data = _coerce(ExpenseIn, data)
        with session_scope(self.session_factory) as session:
            return self._expenses(session, tenant_id).add(data)

    def add_expenses(
        self, tenant_id: str, items: Sequence[Union[ExpenseIn, Mapping[str, Any]]]
    ) -> list[Expense]:
        require_tenant(tenant_id)
        expenses = [_coerce(ExpenseIn, item) for item in items]
        if not expenses:
            return []
        with session_scope(self.session_factory) as session:
            return self._expenses(session, tenant_id).add_many(expenses)

    def update_expense(
        self,
        tenant_id: str,
        expense_id: str,
        data: Union[ExpenseIn, Mapping[str, Any]],
    ) -> None:
        require_tenant(tenant_id)
        data = _coerce(ExpenseIn, data)
        with session_scope(self.session_factory) as session:
            self._expenses(session, tenant_id).update(expense_id, data)

    def remove_expense(self, tenant_id: str, expense_id: str) -> None:
        require_tenant(tenant_id)
        with session_scope(self.session_factory) as session:
            self._expenses(session, tenant_id).remove(expense_id)

    def remove_expenses(self, tenant_id: str, expense_ids: Sequence[str]) -> int:
        require_tenant(tenant_id)
        if not expense_ids:
            return 0
        with session_scope(self.session_factory) as session:
            return self._expenses(session, tenant_id).remove_many(expense_ids)

    # Categories

    def get_categories(self, tenant_id: str) -> list[str]:
        require_tenant(tenant_id)
        with session_scope(self.session_factory) as session:
            return self._categories(session, tenant_id).ensure_seeded()

    def reconcile_categories(self, tenant_id: str, names: Sequence[str]) -> None:
        require_tenant(tenant_id)
        with session_scope(self.session_factory) as session:
            ordered = self._categories(session, tenant_id).reconcile(names)
        logger.info(f"category_reconcile: tenant={tenant_id} count={len(ordered)}")

    # Tenant configuration

    def get_config(self, tenant_id: str) -> TenantConfigOut:
        require_tenant(tenant_id)
        with session_scope(self.session_factory) as session:
            config = self._config(session, tenant_id).get()
            categories = self._categories(session, tenant_id).ensure_seeded()
            rules = self._coordinator(session, tenant_id).list()
            return TenantConfigOut(
                categories=categories,
                currency=config.currency,
                start_day=config.start_day,
                recurring_rules=[RecurringRuleOut.model_validate(r) for r in rules],
            )

    def get_currency(self, tenant_id: str) -> str:
        require_tenant(tenant_id)
        with session_scope(self.session_factory) as session:
            return self._config(session, tenant_id).get().currency

    def update_currency(self, tenant_id: str, currency: str) -> None:
        require_tenant(tenant_id)
        with session_scope(self.session_factory) as session:
            self._config(session, tenant_id).update_currency(currency)

    def get_start_day(self, tenant_id: str) -> int:
        require_tenant(tenant_id)
        with session_scope(self.session_factory) as session:
            return self._config(session, tenant_id).get().start_day

    def update_start_day(self, tenant_id: str, start_day: int) -> None:
        require_tenant(tenant_id)
        with session_scope(self.session_factory) as session:
            self._config(session, tenant_id).update_start_day(start_day)

    def _coordinator(
        self, session: Session, tenant_id: str
    ) -> MaterializationCoordinator:
        return MaterializationCoordinator(session, tenant_id, self.catalog)

    def _expenses(self, session: Session, tenant_id: str) -> ExpenseService:
        return ExpenseService(session, tenant_id, self.catalog)

    def _categories(self, session: Session, tenant_id: str) -> CategoryReconciler:
        return CategoryReconciler(session, tenant_id, self.catalog)

    def _config(self, session: Session, tenant_id: str) -> TenantConfigService:
        return TenantConfigService(session, tenant_id, self.catalog)


def open_store(settings: Optional[Settings] = None) -> TenantStore:
    settings = settings or get_settings()
    configure_logging(settings)
    engine = create_db_engine(settings.database_url)
    logger.info(f"store_open: backend={engine.dialect.name}")
    return TenantStore(create_session_factory(engine), settings.catalog)
