"""Domain models for freeze accounting."""

from dataclasses import dataclass, field
from datetime import date, datetime

from diet_practice.domain.meal_plans import MealDay


@dataclass(frozen=True)
class LedgerEntry:
    """A frozen day annotated with the plan that owns it."""

    plan_id: str
    plan_name: str
    date: date
    added_date: date | None
    created_at: datetime | None


@dataclass(frozen=True)
class SharedLedger:
    """Freeze accounting merged across plans sharing a purchase."""

    total_freeze_count: int = 0
    all_freezed_days: list[LedgerEntry] = field(default_factory=list)
    linked_plan_ids: list[str] = field(default_factory=list)
    total_duration_days: int = 0


@dataclass(frozen=True)
class AllowanceContext:
    """Allowance resolved once per request, shared or plan-local."""

    is_shared: bool
    duration_days: int
    allowed_freeze_days: int
    total_freeze_count: int
    frozen_dates: frozenset[date]
    frozen_days: list[LedgerEntry]
    linked_plan_count: int
    purchase_id: str | None

    @property
    def remaining_freeze_days(self) -> int:
        return max(0, self.allowed_freeze_days - self.total_freeze_count)


@dataclass(frozen=True)
class FreezeInfo:
    """Freeze overview for a plan."""

    plan_id: str
    plan_name: str
    start_date: date
    end_date: date
    allowance: AllowanceContext

    @property
    def can_freeze(self) -> bool:
        return self.allowance.remaining_freeze_days > 0


@dataclass(frozen=True)
class FreezeResult:
    """Outcome of a successful freeze."""

    plan_id: str
    original_end_date: date
    new_end_date: date
    total_freeze_count: int
    this_plan_freeze_count: int
    allowed_freeze_days: int
    frozen_dates: list[date]
    added_meal_dates: list[date]
    copied_meals: int
    is_shared: bool

    @property
    def remaining_freeze_days(self) -> int:
        return self.allowed_freeze_days - self.total_freeze_count


@dataclass(frozen=True)
class UnfreezeResult:
    """Outcome of a successful unfreeze."""

    plan_id: str
    previous_end_date: date
    new_end_date: date
    total_freeze_count: int
    allowed_freeze_days: int
    unfrozen_dates: list[date]
    removed_meal_dates: list[date]

    @property
    def remaining_freeze_days(self) -> int:
        return max(0, self.allowed_freeze_days - self.total_freeze_count)


@dataclass(frozen=True)
class DayStatus:
    """Freeze state of a single plan day."""

    plan_id: str
    date: date
    is_frozen: bool
    freeze_entry: LedgerEntry | None
    meal: MealDay | None
