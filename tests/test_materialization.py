from datetime import date

import pytest
from sqlalchemy import create_engine

from database import Base, create_session_factory
from errors import NotFoundError, ValidationError
from store import TenantStore


TODAY = date(2026, 3, 15)


def _store() -> TenantStore:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return TenantStore(create_session_factory(engine))


def _rule_spec(**overrides) -> dict:
    spec = {
        "name": "Rent",
        "category": "Rent",
        "amount_cents": -100000,
        "currency": "usd",
        "tags": ["home"],
        "start_date": date(2026, 1, 1),
        "interval": "monthly",
        "occurrences": 6,
    }
    spec.update(overrides)
    return spec


def _instances(store: TenantStore, tenant: str, rule_id: str):
    return sorted(
        (e for e in store.list_expenses(tenant) if e.recurring_id == rule_id),
        key=lambda e: e.date,
    )


def test_create_materializes_every_occurrence() -> None:
    store = _store()
    rule = store.create_recurring_rule("tenant-a", _rule_spec())

    instances = _instances(store, "tenant-a", rule.id)
    assert len(instances) == 6
    dates = [e.date for e in instances]
    assert dates == sorted(set(dates))
    assert dates[0] == date(2026, 1, 1)
    assert dates[-1] == date(2026, 6, 1)
    assert all(e.amount_cents == -100000 for e in instances)


def test_create_without_currency_uses_tenant_currency() -> None:
    store = _store()
    store.update_currency("tenant-a", "ars")
    rule = store.create_recurring_rule("tenant-a", _rule_spec(currency=None))

    assert rule.currency == "ars"
    assert {e.currency for e in _instances(store, "tenant-a", rule.id)} == {"ars"}


@pytest.mark.parametrize(
    "overrides",
    [
        {"occurrences": 1},
        {"interval": "hourly"},
        {"currency": "gbp"},
        {"name": "@@@"},
        {"start_date": None},
    ],
)
def test_invalid_rule_is_rejected_before_any_write(overrides) -> None:
    store = _store()
    with pytest.raises(ValidationError):
        store.create_recurring_rule("tenant-a", _rule_spec(**overrides))

    assert store.list_recurring_rules("tenant-a") == []
    assert store.list_expenses("tenant-a") == []


def test_create_rolls_back_rule_when_generation_fails(monkeypatch) -> None:
    def boom(self, rule, mode, today=None):
        raise RuntimeError("generation failed")

    monkeypatch.setattr("recurrence.RecurringEngine.generate", boom)
    store = _store()

    with pytest.raises(RuntimeError):
        store.create_recurring_rule("tenant-a", _rule_spec())

    assert store.list_recurring_rules("tenant-a") == []
    assert store.list_expenses("tenant-a") == []


def test_update_all_replaces_every_instance() -> None:
    store = _store()
    rule = store.create_recurring_rule("tenant-a", _rule_spec())
    old_ids = {e.id for e in _instances(store, "tenant-a", rule.id)}

    store.update_recurring_rule(
        "tenant-a",
        rule.id,
        _rule_spec(amount_cents=-120000, occurrences=4, interval="weekly"),
        update_all=True,
        today=TODAY,
    )

    instances = _instances(store, "tenant-a", rule.id)
    assert len(instances) == 4
    assert not old_ids & {e.id for e in instances}
    assert [e.date for e in instances] == [
        date(2026, 1, 1),
        date(2026, 1, 8),
        date(2026, 1, 15),
        date(2026, 1, 22),
    ]
    assert all(e.amount_cents == -120000 for e in instances)

    stored = store.get_recurring_rule("tenant-a", rule.id)
    assert stored.occurrences == 4
    assert stored.amount_cents == -120000


def test_update_future_only_preserves_history() -> None:
    store = _store()
    rule = store.create_recurring_rule("tenant-a", _rule_spec())
    before = _instances(store, "tenant-a", rule.id)
    past = [e for e in before if e.date <= TODAY]
    assert len(past) == 3

    store.update_recurring_rule(
        "tenant-a",
        rule.id,
        _rule_spec(amount_cents=-110000),
        update_all=False,
        today=TODAY,
    )

    after = _instances(store, "tenant-a", rule.id)
    preserved = [e for e in after if e.date <= TODAY]
    future = [e for e in after if e.date > TODAY]
    assert [(e.id, e.amount_cents) for e in preserved] == [
        (e.id, e.amount_cents) for e in past
    ]
    assert [e.date for e in future] == [
        date(2026, 4, 1),
        date(2026, 5, 1),
        date(2026, 6, 1),
    ]
    assert all(e.amount_cents == -110000 for e in future)
    assert len(after) == len(preserved) + len(future)


def test_update_future_only_with_spent_budget_keeps_only_history() -> None:
    store = _store()
    rule = store.create_recurring_rule("tenant-a", _rule_spec())

    store.update_recurring_rule(
        "tenant-a", rule.id, _rule_spec(occurrences=2), update_all=False, today=TODAY
    )

    instances = _instances(store, "tenant-a", rule.id)
    assert [e.date for e in instances] == [
        date(2026, 1, 1),
        date(2026, 2, 1),
        date(2026, 3, 1),
    ]


def test_update_unknown_rule_is_not_found_and_writes_nothing() -> None:
    store = _store()
    rule = store.create_recurring_rule("tenant-a", _rule_spec())

    with pytest.raises(NotFoundError):
        store.update_recurring_rule(
            "tenant-a", "missing", _rule_spec(), update_all=True, today=TODAY
        )

    assert len(_instances(store, "tenant-a", rule.id)) == 6


def test_delete_future_only_leaves_orphaned_history() -> None:
    store = _store()
    rule = store.create_recurring_rule("tenant-a", _rule_spec())

    store.delete_recurring_rule("tenant-a", rule.id, remove_all=False, today=TODAY)

    with pytest.raises(NotFoundError):
        store.get_recurring_rule("tenant-a", rule.id)
    remaining = _instances(store, "tenant-a", rule.id)
    assert [e.date for e in remaining] == [
        date(2026, 1, 1),
        date(2026, 2, 1),
        date(2026, 3, 1),
    ]
    assert all(e.recurring_id == rule.id for e in remaining)


def test_delete_all_removes_every_instance() -> None:
    store = _store()
    rule = store.create_recurring_rule("tenant-a", _rule_spec())
    standalone = store.add_expense(
        "tenant-a",
        {"name": "Coffee", "category": "Food", "amount_cents": -350, "date": TODAY},
    )

    store.delete_recurring_rule("tenant-a", rule.id, remove_all=True, today=TODAY)

    assert [e.id for e in store.list_expenses("tenant-a")] == [standalone.id]


def test_delete_unknown_rule_is_not_found() -> None:
    store = _store()
    with pytest.raises(NotFoundError):
        store.delete_recurring_rule(
            "tenant-a", "missing", remove_all=True, today=TODAY
        )


def test_edited_instance_keeps_rule_link() -> None:
    store = _store()
    rule = store.create_recurring_rule("tenant-a", _rule_spec())
    last = _instances(store, "tenant-a", rule.id)[-1]

    store.update_expense(
        "tenant-a",
        last.id,
        {
            "name": "Rent - late",
            "category": "Rent",
            "amount_cents": -105000,
            "date": last.date,
        },
    )

    edited = store.get_expense("tenant-a", last.id)
    assert edited.recurring_id == rule.id
    assert edited.name == "Rent - late"


def test_update_all_rolls_back_when_regeneration_fails(monkeypatch) -> None:
    store = _store()
    rule = store.create_recurring_rule("tenant-a", _rule_spec())
    before = [
        (e.id, e.date, e.amount_cents) for e in _instances(store, "tenant-a", rule.id)
    ]

    def boom(self, rule, mode, today=None):
        raise RuntimeError("generation failed")

    monkeypatch.setattr("recurrence.RecurringEngine.generate", boom)

    with pytest.raises(RuntimeError):
        store.update_recurring_rule(
            "tenant-a",
            rule.id,
            _rule_spec(amount_cents=-5000, occurrences=2),
            update_all=True,
            today=TODAY,
        )

    stored = store.get_recurring_rule("tenant-a", rule.id)
    assert stored.amount_cents == -100000
    assert stored.occurrences == 6
    after = [
        (e.id, e.date, e.amount_cents) for e in _instances(store, "tenant-a", rule.id)
    ]
    assert after == before
