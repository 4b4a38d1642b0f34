"""Supabase repository for client meal plans."""

from dataclasses import dataclass, replace
from datetime import UTC, datetime

from supabase import Client

from diet_practice.dates import format_day, parse_day
from diet_practice.domain.meal_plans import FreezeDay, MealDay, MealPlan
from diet_practice.services.freeze import MealPlanRepository, StaleMealPlanError

_PLAN_COLUMNS = (
    "id, client_id, purchase_id, name, start_date, end_date, status, meals, "
    "freezed_days, total_freeze_count, version"
)


@dataclass
class SupabaseMealPlanRepository(MealPlanRepository):
    """Supabase implementation for meal plans.

    Meals and frozen days live in JSON columns, one row per plan phase.
    """

    client: Client

    def get_plan(self, plan_id: str) -> MealPlan | None:
        """Return a meal plan by id."""
        response = (
            self.client.table("client_meal_plans")
            .select(_PLAN_COLUMNS)
            .eq("id", plan_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_plan(response.data[0])

    def list_plans_by_purchase(self, purchase_id: str) -> list[MealPlan]:
        """Return all plan phases linked to a purchase."""
        response = (
            self.client.table("client_meal_plans")
            .select(_PLAN_COLUMNS)
            .eq("purchase_id", purchase_id)
            .order("start_date", desc=False)
            .execute()
        )
        return [_parse_plan(row) for row in response.data or []]

    def save_plan(self, plan: MealPlan) -> MealPlan:
        """Write freeze fields if the stored version still matches."""
        response = (
            self.client.table("client_meal_plans")
            .update(
                {
                    "meals": [meal.to_document() for meal in plan.meals],
                    "freezed_days": [
                        _dump_freeze_day(entry) for entry in plan.freezed_days
                    ],
                    "total_freeze_count": plan.total_freeze_count,
                    "end_date": format_day(plan.end_date),
                    "version": plan.version + 1,
                    "updated_at": datetime.now(tz=UTC).isoformat(),
                }
            )
            .eq("id", plan.id)
            .eq("version", plan.version)
            .execute()
        )
        if not response.data:
            raise StaleMealPlanError(plan.id)
        return replace(plan, version=plan.version + 1)


def _parse_plan(row: dict[str, object]) -> MealPlan:
    return MealPlan(
        id=str(row["id"]),
        client_id=str(row["client_id"]) if row.get("client_id") else None,
        purchase_id=str(row["purchase_id"]) if row.get("purchase_id") else None,
        name=str(row.get("name") or ""),
        start_date=parse_day(row["start_date"]),
        end_date=parse_day(row["end_date"]),
        status=str(row.get("status") or "active"),
        meals=[MealDay.from_document(meal) for meal in row.get("meals") or []],
        freezed_days=[
            _parse_freeze_day(entry) for entry in row.get("freezed_days") or []
        ],
        total_freeze_count=int(row.get("total_freeze_count") or 0),
        version=int(row.get("version") or 0),
    )


def _parse_freeze_day(entry: dict[str, object]) -> FreezeDay:
    return FreezeDay(
        date=parse_day(entry["date"]),
        added_date=parse_day(entry["addedDate"]) if entry.get("addedDate") else None,
        created_at=_parse_timestamp(entry.get("createdAt")),
    )


def _parse_timestamp(value: object) -> datetime | None:
    # Entries written before timestamps were tracked keep no value.
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value)
    return None


def _dump_freeze_day(entry: FreezeDay) -> dict[str, object]:
    return {
        "date": format_day(entry.date),
        "addedDate": format_day(entry.added_date) if entry.added_date else None,
        "createdAt": entry.created_at.isoformat() if entry.created_at else None,
    }
