"""Supabase repository for client purchases."""

from dataclasses import dataclass
from datetime import date

from supabase import Client

from diet_practice.dates import format_day, parse_day
from diet_practice.domain.meal_plans import Purchase
from diet_practice.services.freeze import PurchaseRepository


@dataclass
class SupabasePurchaseRepository(PurchaseRepository):
    """Supabase implementation for purchase date bookkeeping."""

    client: Client

    def get_purchase(self, purchase_id: str) -> Purchase | None:
        """Return a purchase by id."""
        response = (
            self.client.table("client_purchases")
            .select("id, meal_plan_id, end_date, expected_end_date")
            .eq("id", purchase_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        return Purchase(
            id=str(row["id"]),
            meal_plan_id=str(row["meal_plan_id"]) if row.get("meal_plan_id") else None,
            end_date=parse_day(row["end_date"]) if row.get("end_date") else None,
            expected_end_date=(
                parse_day(row["expected_end_date"])
                if row.get("expected_end_date")
                else None
            ),
        )

    def set_end_date_for_meal_plan(self, meal_plan_id: str, end_date: date) -> None:
        """Sync the end date of the purchase pointing at a meal plan."""
        self.client.table("client_purchases").update(
            {"end_date": format_day(end_date)}
        ).eq("meal_plan_id", meal_plan_id).execute()

    def update_purchase_dates(
        self, purchase_id: str, end_date: date, expected_end_date: date
    ) -> None:
        """Update end and expected end dates of a purchase."""
        self.client.table("client_purchases").update(
            {
                "end_date": format_day(end_date),
                "expected_end_date": format_day(expected_end_date),
            }
        ).eq("id", purchase_id).execute()
