"""Domain models for client meal plans."""

import copy
from dataclasses import dataclass, field
from datetime import date, datetime

from diet_practice.dates import format_day, parse_day

_MARKER_KEYS = {
    "date",
    "id",
    "day",
    "isFrozen",
    "isFreezeRecovery",
    "originalFreezeDate",
    "originalFreezeDateLabel",
}


@dataclass(frozen=True)
class RecoveryMarker:
    """Points a recovery day back at the frozen day it replaces."""

    original_date: date
    original_label: str


@dataclass(frozen=True)
class MealDay:
    """One day of a meal plan with its meal slots."""

    date: date
    day_id: str | None = None
    day_label: str | None = None
    content: dict[str, object] = field(default_factory=dict)
    is_frozen: bool = False
    recovery: RecoveryMarker | None = None

    @property
    def is_freeze_recovery(self) -> bool:
        return self.recovery is not None

    @classmethod
    def from_document(cls, document: dict[str, object]) -> "MealDay":
        """Build a meal day from its stored JSON document."""
        day = parse_day(document["date"])
        recovery = None
        if document.get("isFreezeRecovery"):
            original = document.get("originalFreezeDate")
            recovery = RecoveryMarker(
                original_date=parse_day(original) if original else day,
                original_label=str(document.get("originalFreezeDateLabel") or ""),
            )
        return cls(
            date=day,
            day_id=str(document["id"]) if document.get("id") is not None else None,
            day_label=str(document["day"]) if document.get("day") is not None else None,
            content={
                key: value
                for key, value in document.items()
                if key not in _MARKER_KEYS
            },
            is_frozen=bool(document.get("isFrozen")),
            recovery=recovery,
        )

    def to_document(self) -> dict[str, object]:
        """Return the JSON document stored for this day."""
        document: dict[str, object] = copy.deepcopy(self.content)
        if self.day_id is not None:
            document["id"] = self.day_id
        if self.day_label is not None:
            document["day"] = self.day_label
        document["date"] = format_day(self.date)
        if self.is_frozen:
            document["isFrozen"] = True
        if self.recovery is not None:
            document["isFreezeRecovery"] = True
            document["originalFreezeDate"] = format_day(self.recovery.original_date)
            document["originalFreezeDateLabel"] = self.recovery.original_label
        return document


@dataclass(frozen=True)
class FreezeDay:
    """A calendar day frozen by a care provider."""

    date: date
    added_date: date | None
    created_at: datetime | None


@dataclass(frozen=True)
class MealPlan:
    """A client meal plan phase."""

    id: str
    client_id: str | None
    purchase_id: str | None
    name: str
    start_date: date
    end_date: date
    status: str
    meals: list[MealDay] = field(default_factory=list)
    freezed_days: list[FreezeDay] = field(default_factory=list)
    total_freeze_count: int = 0
    version: int = 0


@dataclass(frozen=True)
class Purchase:
    """Billing record that one or more plan phases belong to."""

    id: str
    meal_plan_id: str | None
    end_date: date | None
    expected_end_date: date | None
