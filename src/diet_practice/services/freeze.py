"""Meal-plan freeze accounting.

A care provider can freeze days of a client's meal plan. Meals on a frozen
day stay in place (flagged as frozen) and are copied onto recovery days
appended after the last planned day, and the plan end date moves forward by
one day per frozen day. Each frozen day consumes allowance: ten days per
started month of plan duration. Plans linked to the same purchase share one
allowance. Unfreezing drops the recovery copies and pulls the end date back,
but consumed allowance is never refunded.
"""

import copy
import logging
import math
from dataclasses import dataclass, replace
from datetime import UTC, date, datetime
from typing import Protocol
from zoneinfo import ZoneInfo

from diet_practice.dates import (
    add_days,
    day_label,
    days_between,
    format_day,
    parse_day,
)
from diet_practice.domain.auth import AuthContext
from diet_practice.domain.freeze import (
    AllowanceContext,
    DayStatus,
    FreezeInfo,
    FreezeResult,
    LedgerEntry,
    SharedLedger,
    UnfreezeResult,
)
from diet_practice.domain.meal_plans import (
    FreezeDay,
    MealDay,
    MealPlan,
    Purchase,
    RecoveryMarker,
)
from diet_practice.services.audit import AuditService

logger = logging.getLogger(__name__)

DAYS_PER_MONTH = 30
FREEZE_DAYS_PER_MONTH = 10
MEAL_PLAN_ENTITY = "client_meal_plan"


class FreezeError(Exception):
    """Base error for freeze operations."""


class MealPlanNotFoundError(FreezeError):
    """Raised when the requested meal plan does not exist."""

    def __init__(self, plan_id: str) -> None:
        super().__init__("Meal plan not found")
        self.plan_id = plan_id


class FreezeValidationError(FreezeError):
    """Raised when a freeze or unfreeze request is rejected."""

    def __init__(self, message: str, details: dict[str, object] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class StaleMealPlanError(FreezeError):
    """Raised when a plan was modified by another request before saving."""

    def __init__(self, plan_id: str) -> None:
        super().__init__("Meal plan was modified concurrently, please retry")
        self.plan_id = plan_id


class MealPlanRepository(Protocol):
    """Persistence interface for client meal plans."""

    def get_plan(self, plan_id: str) -> MealPlan | None:
        """Return a meal plan by id, if present."""

    def list_plans_by_purchase(self, purchase_id: str) -> list[MealPlan]:
        """Return every plan linked to a purchase."""

    def save_plan(self, plan: MealPlan) -> MealPlan:
        """Persist meals, freeze ledger and end date.

        Raises StaleMealPlanError when the stored version no longer matches.
        """


class PurchaseRepository(Protocol):
    """Persistence interface for client purchases."""

    def get_purchase(self, purchase_id: str) -> Purchase | None:
        """Return a purchase by id, if present."""

    def set_end_date_for_meal_plan(self, meal_plan_id: str, end_date: date) -> None:
        """Set the end date of the purchase that references a meal plan."""

    def update_purchase_dates(
        self, purchase_id: str, end_date: date, expected_end_date: date
    ) -> None:
        """Update end and expected end dates of a purchase."""


def calculate_allowed_freeze_days(duration_days: int) -> int:
    """Return the freeze allowance for a plan duration."""
    return math.ceil(duration_days / DAYS_PER_MONTH) * FREEZE_DAYS_PER_MONTH


def plan_duration_days(start_date: date, end_date: date) -> int:
    """Return the plan span in days, counting both endpoints."""
    return days_between(start_date, end_date) + 1


def resolve_allowance(plan: MealPlan, ledger: SharedLedger) -> AllowanceContext:
    """Pick the shared ledger when several plans share a purchase."""
    linked_plan_count = len(ledger.linked_plan_ids)
    if linked_plan_count > 1:
        return AllowanceContext(
            is_shared=True,
            duration_days=ledger.total_duration_days,
            allowed_freeze_days=calculate_allowed_freeze_days(
                ledger.total_duration_days
            ),
            total_freeze_count=ledger.total_freeze_count,
            frozen_dates=frozenset(entry.date for entry in ledger.all_freezed_days),
            frozen_days=list(ledger.all_freezed_days),
            linked_plan_count=linked_plan_count,
            purchase_id=plan.purchase_id,
        )
    duration_days = plan_duration_days(plan.start_date, plan.end_date)
    entries = [_ledger_entry(plan, freeze_day) for freeze_day in plan.freezed_days]
    return AllowanceContext(
        is_shared=False,
        duration_days=duration_days,
        allowed_freeze_days=calculate_allowed_freeze_days(duration_days),
        total_freeze_count=plan.total_freeze_count,
        frozen_dates=frozenset(entry.date for entry in entries),
        frozen_days=entries,
        linked_plan_count=max(1, linked_plan_count),
        purchase_id=plan.purchase_id,
    )


@dataclass
class FreezeService:
    """Applies and reverses meal-plan freezes."""

    plan_repository: MealPlanRepository
    purchase_repository: PurchaseRepository
    audit_service: AuditService
    timezone_name: str = "UTC"

    def today(self) -> date:
        """Return the current calendar day in the plan timezone."""
        return datetime.now(tz=ZoneInfo(self.timezone_name)).date()

    def build_shared_ledger(self, purchase_id: str | None) -> SharedLedger:
        """Merge freeze accounting of every plan linked to a purchase."""
        if not purchase_id:
            return SharedLedger()
        total_freeze_count = 0
        all_freezed_days: list[LedgerEntry] = []
        linked_plan_ids: list[str] = []
        total_duration_days = 0
        for plan in self.plan_repository.list_plans_by_purchase(purchase_id):
            total_freeze_count += plan.total_freeze_count
            all_freezed_days.extend(
                _ledger_entry(plan, freeze_day) for freeze_day in plan.freezed_days
            )
            linked_plan_ids.append(plan.id)
            total_duration_days += plan_duration_days(plan.start_date, plan.end_date)
        return SharedLedger(
            total_freeze_count=total_freeze_count,
            all_freezed_days=all_freezed_days,
            linked_plan_ids=linked_plan_ids,
            total_duration_days=total_duration_days,
        )

    def get_freeze_info(self, plan_id: str) -> FreezeInfo:
        """Return allowance and frozen days for a plan."""
        plan = self._require_plan(plan_id)
        allowance = resolve_allowance(plan, self.build_shared_ledger(plan.purchase_id))
        return FreezeInfo(
            plan_id=plan.id,
            plan_name=plan.name,
            start_date=plan.start_date,
            end_date=plan.end_date,
            allowance=allowance,
        )

    def freeze(
        self,
        plan_id: str,
        freeze_dates: list[str] | None,
        actor: AuthContext | None = None,
    ) -> FreezeResult:
        """Freeze days of a plan and append recovery days for their meals."""
        if not freeze_dates:
            raise FreezeValidationError("freezeDates array is required")
        plan = self._require_plan(plan_id)
        allowance = resolve_allowance(plan, self.build_shared_ledger(plan.purchase_id))
        valid_dates = _validate_freeze_dates(plan, allowance, freeze_dates, self.today())

        requested = len(valid_dates)
        if allowance.total_freeze_count + requested > allowance.allowed_freeze_days:
            remaining = allowance.allowed_freeze_days - allowance.total_freeze_count
            raise FreezeValidationError(
                f"Cannot freeze {requested} days. Only {remaining} days remaining.",
                details={
                    "allowedFreezeDays": allowance.allowed_freeze_days,
                    "currentFreezeCount": allowance.total_freeze_count,
                    "requestedDays": requested,
                },
            )

        updated, added_dates, copied_meals = _apply_freeze(
            plan, valid_dates, created_at=datetime.now(tz=UTC)
        )
        saved = self.plan_repository.save_plan(updated)
        self._sync_purchase_after_freeze(saved, requested)

        result = FreezeResult(
            plan_id=saved.id,
            original_end_date=plan.end_date,
            new_end_date=saved.end_date,
            total_freeze_count=allowance.total_freeze_count + requested,
            this_plan_freeze_count=saved.total_freeze_count,
            allowed_freeze_days=allowance.allowed_freeze_days,
            frozen_dates=valid_dates,
            added_meal_dates=added_dates,
            copied_meals=copied_meals,
            is_shared=allowance.is_shared,
        )
        self._record_audit(
            actor,
            "freeze",
            before=plan,
            after=saved,
            dates={
                "frozen_dates": [format_day(day) for day in valid_dates],
                "added_meal_dates": [format_day(day) for day in added_dates],
            },
        )
        logger.info(
            "Froze meal plan days",
            extra={
                "plan_id": saved.id,
                "frozen_dates": [format_day(day) for day in valid_dates],
                "shared": allowance.is_shared,
            },
        )
        return result

    def unfreeze(
        self,
        plan_id: str,
        unfreeze_dates: list[str] | None,
        actor: AuthContext | None = None,
    ) -> UnfreezeResult:
        """Unfreeze days of a plan, removing their recovery days.

        Consumed allowance is kept: ``total_freeze_count`` is not reduced.
        """
        if not unfreeze_dates:
            raise FreezeValidationError("unfreezeDates array is required")
        plan = self._require_plan(plan_id)
        requested = {_parse_requested_day(raw) for raw in unfreeze_dates}
        matched = [entry for entry in plan.freezed_days if entry.date in requested]
        if not matched:
            raise FreezeValidationError("No matching frozen dates found")

        updated, unfrozen_dates, removed_dates = _apply_unfreeze(plan, matched)
        saved = self.plan_repository.save_plan(updated)
        self.purchase_repository.set_end_date_for_meal_plan(saved.id, saved.end_date)
        # Report against the restored end date.
        allowance = resolve_allowance(
            saved, self.build_shared_ledger(saved.purchase_id)
        )

        self._record_audit(
            actor,
            "unfreeze",
            before=plan,
            after=saved,
            dates={
                "unfrozen_dates": [format_day(day) for day in unfrozen_dates],
                "removed_meal_dates": [format_day(day) for day in removed_dates],
            },
        )
        logger.info(
            "Unfroze meal plan days",
            extra={
                "plan_id": saved.id,
                "unfrozen_dates": [format_day(day) for day in unfrozen_dates],
            },
        )
        return UnfreezeResult(
            plan_id=saved.id,
            previous_end_date=plan.end_date,
            new_end_date=saved.end_date,
            total_freeze_count=allowance.total_freeze_count,
            allowed_freeze_days=allowance.allowed_freeze_days,
            unfrozen_dates=unfrozen_dates,
            removed_meal_dates=removed_dates,
        )

    def get_day_status(self, plan_id: str, raw_day: str) -> DayStatus:
        """Return whether a plan day is frozen or a recovery day."""
        day = _parse_requested_day(raw_day)
        plan = self._require_plan(plan_id)
        entry = next(
            (freeze_day for freeze_day in plan.freezed_days if freeze_day.date == day),
            None,
        )
        meal = next((meal for meal in plan.meals if meal.date == day), None)
        return DayStatus(
            plan_id=plan.id,
            date=day,
            is_frozen=entry is not None or bool(meal and meal.is_frozen),
            freeze_entry=_ledger_entry(plan, entry) if entry else None,
            meal=meal,
        )

    def _require_plan(self, plan_id: str) -> MealPlan:
        plan = self.plan_repository.get_plan(plan_id)
        if plan is None:
            raise MealPlanNotFoundError(plan_id)
        return plan

    def _record_audit(  # noqa: PLR0913
        self,
        actor: AuthContext | None,
        event_type: str,
        before: MealPlan,
        after: MealPlan,
        dates: dict[str, object],
    ) -> None:
        # The plan is already committed; a lost audit row must not fail it.
        try:
            self.audit_service.record_event(
                actor=actor,
                entity_type=MEAL_PLAN_ENTITY,
                entity_id=after.id,
                event_type=event_type,
                before=_audit_snapshot(before),
                after={**_audit_snapshot(after), **dates},
            )
        except Exception:
            logger.exception(
                "Failed to record audit event",
                extra={"plan_id": after.id, "event_type": event_type},
            )

    def _sync_purchase_after_freeze(self, plan: MealPlan, frozen_count: int) -> None:
        purchase = (
            self.purchase_repository.get_purchase(plan.purchase_id)
            if plan.purchase_id
            else None
        )
        self.purchase_repository.set_end_date_for_meal_plan(plan.id, plan.end_date)
        if purchase is None or purchase.expected_end_date is None:
            return
        # Shift from the values read before the plan sync above.
        base_end_date = purchase.end_date or purchase.expected_end_date
        self.purchase_repository.update_purchase_dates(
            purchase.id,
            end_date=add_days(base_end_date, frozen_count),
            expected_end_date=add_days(purchase.expected_end_date, frozen_count),
        )


def _parse_requested_day(raw: object) -> date:
    try:
        return parse_day(raw)
    except ValueError as exc:
        raise FreezeValidationError(f"Invalid date: {raw}") from exc


def _validate_freeze_dates(
    plan: MealPlan,
    allowance: AllowanceContext,
    freeze_dates: list[str],
    today: date,
) -> list[date]:
    seen = set(allowance.frozen_dates)
    valid: list[date] = []
    skipped: list[str] = []
    for raw in freeze_dates:
        day = _parse_requested_day(raw)
        if day in seen:
            skipped.append(format_day(day))
            continue
        if day < plan.start_date or day > plan.end_date:
            raise FreezeValidationError(
                f"Date {format_day(day)} is outside the plan range "
                f"({format_day(plan.start_date)} to {format_day(plan.end_date)})"
            )
        if day < today:
            raise FreezeValidationError(f"Cannot freeze past date: {format_day(day)}")
        seen.add(day)
        valid.append(day)

    if skipped:
        logger.info(
            "Skipping already frozen dates",
            extra={"plan_id": plan.id, "skipped_dates": skipped},
        )
    if not valid:
        raise FreezeValidationError(
            "No valid dates to freeze. All dates may already be frozen."
        )
    return sorted(valid)


def _apply_freeze(
    plan: MealPlan, freeze_dates: list[date], created_at: datetime
) -> tuple[MealPlan, list[date], int]:
    freeze_set = set(freeze_dates)
    to_copy = sorted(
        (meal for meal in plan.meals if meal.date in freeze_set),
        key=lambda meal: meal.date,
    )

    # Meal lists can already run past the nominal end date.
    anchor = max([plan.end_date, *(meal.date for meal in plan.meals)])
    positions: dict[date, int] = {}
    for index, meal in enumerate(plan.meals, start=1):
        positions.setdefault(meal.date, index)

    recovery_meals: list[MealDay] = []
    added_by_source: dict[date, date] = {}
    for offset, meal in enumerate(to_copy, start=1):
        new_date = add_days(anchor, offset)
        day_number = days_between(plan.start_date, new_date)
        recovery_meals.append(
            MealDay(
                date=new_date,
                day_id=f"day-{day_number}",
                day_label=day_label(new_date, day_number + 1),
                content=copy.deepcopy(meal.content),
                recovery=RecoveryMarker(
                    original_date=meal.date,
                    original_label=day_label(meal.date, positions[meal.date]),
                ),
            )
        )
        added_by_source.setdefault(meal.date, new_date)

    marked = [
        replace(meal, is_frozen=True) if meal.date in freeze_set else meal
        for meal in plan.meals
    ]
    new_entries = [
        FreezeDay(
            date=day,
            added_date=added_by_source.get(day),
            created_at=created_at,
        )
        for day in freeze_dates
    ]
    updated = replace(
        plan,
        meals=sorted([*marked, *recovery_meals], key=lambda meal: meal.date),
        freezed_days=[*plan.freezed_days, *new_entries],
        total_freeze_count=plan.total_freeze_count + len(freeze_dates),
        end_date=add_days(plan.end_date, len(freeze_dates)),
    )
    return updated, [meal.date for meal in recovery_meals], len(to_copy)


def _apply_unfreeze(
    plan: MealPlan, matched: list[FreezeDay]
) -> tuple[MealPlan, list[date], list[date]]:
    unfrozen = {entry.date for entry in matched}
    removed = {entry.added_date for entry in matched if entry.added_date}
    meals = [
        replace(meal, is_frozen=False) if meal.date in unfrozen else meal
        for meal in plan.meals
        if meal.date not in removed
    ]
    updated = replace(
        plan,
        meals=sorted(meals, key=lambda meal: meal.date),
        freezed_days=[
            entry for entry in plan.freezed_days if entry.date not in unfrozen
        ],
        end_date=add_days(plan.end_date, -len(unfrozen)),
    )
    return updated, sorted(unfrozen), sorted(removed)


def _ledger_entry(plan: MealPlan, freeze_day: FreezeDay) -> LedgerEntry:
    return LedgerEntry(
        plan_id=plan.id,
        plan_name=plan.name,
        date=freeze_day.date,
        added_date=freeze_day.added_date,
        created_at=freeze_day.created_at,
    )


def _audit_snapshot(plan: MealPlan) -> dict[str, object]:
    return {
        "end_date": format_day(plan.end_date),
        "total_freeze_count": plan.total_freeze_count,
    }
