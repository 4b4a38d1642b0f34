"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from diet_practice.api.meal_plans import serialize_ledger_entry
from diet_practice.services.freeze import calculate_allowed_freeze_days

if TYPE_CHECKING:
    from diet_practice.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/health", dependencies=[Depends(require_admin)])
async def admin_health() -> dict[str, str]:
    """Admin health check endpoint."""
    return {"status": "ok"}


@router.get(
    "/purchases/{purchase_id}/freeze-ledger", dependencies=[Depends(require_admin)]
)
async def purchase_freeze_ledger(
    purchase_id: str, request: Request
) -> dict[str, object]:
    """Return freeze accounting merged across a purchase's plan phases."""
    container: AppContainer = request.app.state.container
    ledger = container.freeze_service.build_shared_ledger(purchase_id)
    return {
        "purchaseId": purchase_id,
        "totalFreezeCount": ledger.total_freeze_count,
        "totalDurationDays": ledger.total_duration_days,
        "allowedFreezeDays": calculate_allowed_freeze_days(
            ledger.total_duration_days
        ),
        "linkedPlanIds": ledger.linked_plan_ids,
        "allFreezedDays": [
            serialize_ledger_entry(entry) for entry in ledger.all_freezed_days
        ],
    }
