"""Tests for Supabase adapter implementations."""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime

import pytest

from diet_practice.adapters.supabase_audit_repository import SupabaseAuditRepository
from diet_practice.adapters.supabase_auth_provider import SupabaseAuthProvider
from diet_practice.adapters.supabase_meal_plan_repository import (
    SupabaseMealPlanRepository,
)
from diet_practice.adapters.supabase_purchase_repository import (
    SupabasePurchaseRepository,
)
from diet_practice.domain.meal_plans import FreezeDay, MealDay, RecoveryMarker
from diet_practice.services.audit import AuditEvent
from diet_practice.services.freeze import StaleMealPlanError


@dataclass
class FakeResponse:
    data: list[dict[str, object]] | None


@dataclass
class FakeTable:
    name: str
    response_queue: dict[str, list[list[dict[str, object]]]] = field(
        default_factory=lambda: {"select": [], "insert": [], "update": []}
    )
    last_payload: object | None = None
    last_filters: list[tuple[str, object]] = field(default_factory=list)

    def queue(self, action: str, data: list[dict[str, object]]) -> None:
        self.response_queue[action].append(data)

    def select(self, *_args) -> "FakeTable":
        self._action = "select"
        return self

    def insert(self, payload) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "insert"
        self.last_payload = payload
        return self

    def update(self, payload) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "update"
        self.last_payload = payload
        return self

    def eq(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append((column, value))
        return self

    def limit(self, _count: int) -> "FakeTable":
        return self

    def order(self, _column: str, desc: bool = False) -> "FakeTable":
        return self

    def execute(self) -> FakeResponse:
        action = getattr(self, "_action", "select")
        queue = self.response_queue.get(action, [])
        data = queue.pop(0) if queue else []
        return FakeResponse(data=data)


@dataclass
class FakeUser:
    id: str
    app_metadata: dict[str, object] = field(default_factory=dict)
    user_metadata: dict[str, object] = field(default_factory=dict)


@dataclass
class FakeUserResponse:
    user: FakeUser | None


@dataclass
class FakeAuth:
    users: dict[str, FakeUser] = field(default_factory=dict)

    def get_user(self, token: str) -> FakeUserResponse:
        return FakeUserResponse(user=self.users.get(token))


@dataclass
class FakeSupabaseClient:
    tables: dict[str, FakeTable] = field(default_factory=dict)
    auth: FakeAuth = field(default_factory=FakeAuth)

    def table(self, name: str) -> FakeTable:
        if name not in self.tables:
            self.tables[name] = FakeTable(name=name)
        return self.tables[name]


def _plan_row(**overrides: object) -> dict[str, object]:
    row: dict[str, object] = {
        "id": "plan-1",
        "client_id": "client-1",
        "purchase_id": "purchase-1",
        "name": "Phase 1",
        "start_date": "2026-03-01T00:00:00+00:00",
        "end_date": "2026-03-30",
        "status": "active",
        "meals": [
            {
                "id": "day-0",
                "day": "1 - Day 1 - Sunday",
                "date": "2026-03-01",
                "meals": {"breakfast": {"items": []}},
            },
            {
                "id": "day-30",
                "day": "31 - Day 31 - Tuesday",
                "date": "2026-03-31",
                "meals": {"breakfast": {"items": []}},
                "isFreezeRecovery": True,
                "originalFreezeDate": "2026-03-01",
                "originalFreezeDateLabel": "1 - Day 1 - Sunday",
            },
        ],
        "freezed_days": [
            {
                "date": "2026-03-01",
                "addedDate": "2026-03-31",
                "createdAt": "2026-02-27T09:30:00+00:00",
            }
        ],
        "total_freeze_count": 1,
        "version": 4,
    }
    row.update(overrides)
    return row


def test_supabase_meal_plan_repository_get_plan() -> None:
    client = FakeSupabaseClient()
    plans_table = client.table("client_meal_plans")
    plans_table.queue("select", [_plan_row()])
    plans_table.queue("select", [])

    repository = SupabaseMealPlanRepository(client)
    plan = repository.get_plan("plan-1")
    missing = repository.get_plan("missing")

    assert plan is not None
    assert plan.start_date == date(2026, 3, 1)
    assert plan.end_date == date(2026, 3, 30)
    assert plan.version == 4
    assert plan.total_freeze_count == 1
    assert plan.freezed_days[0].added_date == date(2026, 3, 31)
    assert plan.meals[1].recovery == RecoveryMarker(
        original_date=date(2026, 3, 1), original_label="1 - Day 1 - Sunday"
    )
    assert plan.meals[0].content == {"meals": {"breakfast": {"items": []}}}
    assert missing is None
    assert ("id", "plan-1") in plans_table.last_filters


def test_supabase_meal_plan_repository_lists_by_purchase() -> None:
    client = FakeSupabaseClient()
    plans_table = client.table("client_meal_plans")
    plans_table.queue(
        "select",
        [
            _plan_row(),
            _plan_row(
                id="plan-2",
                start_date="2026-03-31",
                end_date="2026-04-29",
                meals=None,
                freezed_days=None,
                total_freeze_count=None,
                version=None,
            ),
        ],
    )

    repository = SupabaseMealPlanRepository(client)
    plans = repository.list_plans_by_purchase("purchase-1")

    assert [plan.id for plan in plans] == ["plan-1", "plan-2"]
    assert plans[1].meals == []
    assert plans[1].freezed_days == []
    assert plans[1].total_freeze_count == 0
    assert plans[1].version == 0
    assert ("purchase_id", "purchase-1") in plans_table.last_filters


def test_supabase_meal_plan_repository_save_plan() -> None:
    client = FakeSupabaseClient()
    plans_table = client.table("client_meal_plans")
    plans_table.queue("select", [_plan_row()])
    plans_table.queue("update", [{"id": "plan-1"}])

    repository = SupabaseMealPlanRepository(client)
    plan = repository.get_plan("plan-1")
    assert plan is not None
    plan.freezed_days.append(
        FreezeDay(
            date=date(2026, 3, 2),
            added_date=None,
            created_at=datetime(2026, 2, 28, tzinfo=UTC),
        )
    )
    plan.meals.append(
        MealDay(
            date=date(2026, 4, 1),
            day_id="day-31",
            day_label="1 - Day 32 - Wednesday",
            content={},
        )
    )
    saved = repository.save_plan(plan)

    payload = plans_table.last_payload
    assert isinstance(payload, dict)
    assert payload["end_date"] == "2026-03-30"
    assert payload["version"] == 5
    assert payload["total_freeze_count"] == 1
    assert payload["freezed_days"][1] == {
        "date": "2026-03-02",
        "addedDate": None,
        "createdAt": "2026-02-28T00:00:00+00:00",
    }
    assert payload["meals"][1]["isFreezeRecovery"] is True
    assert payload["meals"][2]["date"] == "2026-04-01"
    assert ("version", 4) in plans_table.last_filters
    assert saved.version == 5


def test_supabase_meal_plan_repository_detects_stale_write() -> None:
    client = FakeSupabaseClient()
    plans_table = client.table("client_meal_plans")
    plans_table.queue("select", [_plan_row()])

    repository = SupabaseMealPlanRepository(client)
    plan = repository.get_plan("plan-1")
    assert plan is not None

    with pytest.raises(StaleMealPlanError):
        repository.save_plan(plan)


def test_supabase_purchase_repository() -> None:
    client = FakeSupabaseClient()
    purchases_table = client.table("client_purchases")
    purchases_table.queue(
        "select",
        [
            {
                "id": "purchase-1",
                "meal_plan_id": "plan-1",
                "end_date": "2026-03-30",
                "expected_end_date": None,
            }
        ],
    )

    repository = SupabasePurchaseRepository(client)
    purchase = repository.get_purchase("purchase-1")
    assert purchase is not None
    assert purchase.meal_plan_id == "plan-1"
    assert purchase.end_date == date(2026, 3, 30)
    assert purchase.expected_end_date is None
    assert repository.get_purchase("missing") is None

    repository.set_end_date_for_meal_plan("plan-1", date(2026, 4, 2))
    assert purchases_table.last_payload == {"end_date": "2026-04-02"}
    assert ("meal_plan_id", "plan-1") in purchases_table.last_filters

    repository.update_purchase_dates(
        "purchase-1", date(2026, 4, 3), date(2026, 4, 5)
    )
    assert purchases_table.last_payload == {
        "end_date": "2026-04-03",
        "expected_end_date": "2026-04-05",
    }


def test_supabase_audit_repository() -> None:
    client = FakeSupabaseClient()
    audits_table = client.table("audit_events")

    repository = SupabaseAuditRepository(client)
    repository.create_event(
        AuditEvent(
            actor_id="dietitian-1",
            entity_type="client_meal_plan",
            entity_id="plan-1",
            event_type="freeze",
            before={"total_freeze_count": 0},
            after={"total_freeze_count": 2},
        )
    )

    assert audits_table.last_payload == {
        "user_id": "dietitian-1",
        "entity_type": "client_meal_plan",
        "entity_id": "plan-1",
        "event_type": "freeze",
        "before_json": {"total_freeze_count": 0},
        "after_json": {"total_freeze_count": 2},
    }


def test_supabase_auth_provider() -> None:
    client = FakeSupabaseClient()
    client.auth.users["dietitian-token"] = FakeUser(
        id="user-1", app_metadata={"role": "dietitian"}
    )
    client.auth.users["client-token"] = FakeUser(id="user-2")

    provider = SupabaseAuthProvider(client)
    dietitian = provider.resolve("dietitian-token")
    regular = provider.resolve("client-token")

    assert dietitian is not None
    assert dietitian.user_id == "user-1"
    assert dietitian.role == "dietitian"
    assert regular is not None
    assert regular.role == "client"
    assert provider.resolve("unknown-token") is None


def test_supabase_meal_plan_repository_keeps_stored_freeze_timestamps() -> None:
    client = FakeSupabaseClient()
    plans_table = client.table("client_meal_plans")
    plans_table.queue(
        "select",
        [
            _plan_row(
                freezed_days=[
                    {"date": "2026-03-01", "addedDate": "2026-03-31"},
                    {
                        "date": "2026-03-02",
                        "addedDate": None,
                        "createdAt": "2026-02-27T09:30:00.000Z",
                    },
                ]
            )
        ],
    )
    plans_table.queue("update", [{"id": "plan-1"}])

    repository = SupabaseMealPlanRepository(client)
    plan = repository.get_plan("plan-1")
    assert plan is not None
    repository.save_plan(plan)

    assert plan.freezed_days[0].created_at is None
    assert plan.freezed_days[1].created_at == datetime(
        2026, 2, 27, 9, 30, tzinfo=UTC
    )
    payload = plans_table.last_payload
    assert isinstance(payload, dict)
    assert payload["freezed_days"][0]["createdAt"] is None
    assert payload["freezed_days"][1]["createdAt"] == "2026-02-27T09:30:00+00:00"
