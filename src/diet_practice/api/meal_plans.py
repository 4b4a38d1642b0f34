"""Meal-plan freeze endpoints."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from diet_practice.api.freeze_models import FreezeRequest, UnfreezeRequest
from diet_practice.dates import format_day
from diet_practice.domain.auth import AuthContext
from diet_practice.services.freeze import FreezeError

if TYPE_CHECKING:
    from diet_practice.containers import AppContainer
    from diet_practice.domain.freeze import (
        DayStatus,
        FreezeInfo,
        FreezeResult,
        LedgerEntry,
        UnfreezeResult,
    )

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/meal-plan", tags=["meal-plans"])

_BEARER_PREFIX = "bearer "


async def require_session(
    request: Request,
    authorization: str | None = Header(default=None),
) -> AuthContext:
    """Resolve the bearer token into the calling user."""
    container: AppContainer = request.app.state.container
    token = _bearer_token(authorization)
    auth = container.auth_provider.resolve(token) if token else None
    if auth is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    return auth


@router.get("/{plan_id}/freeze")
async def freeze_info(
    plan_id: str,
    request: Request,
    _auth: AuthContext = Depends(require_session),
) -> dict[str, object]:
    """Return freeze allowance and frozen days for a plan."""
    container: AppContainer = request.app.state.container
    try:
        info = container.freeze_service.get_freeze_info(plan_id)
    except FreezeError:
        raise
    except Exception as exc:
        logger.exception("Failed to get freeze info", extra={"plan_id": plan_id})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get freeze information",
        ) from exc
    return {"success": True, "data": _serialize_info(info)}


@router.post("/{plan_id}/freeze")
async def freeze_days(
    plan_id: str,
    request: Request,
    body: FreezeRequest | None = None,
    auth: AuthContext = Depends(require_session),
) -> dict[str, object]:
    """Freeze the requested days of a plan."""
    container: AppContainer = request.app.state.container
    try:
        result = container.freeze_service.freeze(
            plan_id, body.freeze_dates if body else None, auth
        )
    except FreezeError:
        raise
    except Exception as exc:
        logger.exception("Failed to freeze dates", extra={"plan_id": plan_id})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to freeze dates",
        ) from exc
    return {
        "success": True,
        "message": (
            f"Successfully froze {len(result.frozen_dates)} days. "
            "Meals copied to new days. "
            f"End date extended to {format_day(result.new_end_date)}."
        ),
        "data": _serialize_freeze_result(result),
    }


@router.delete("/{plan_id}/freeze")
async def unfreeze_days(
    plan_id: str,
    request: Request,
    body: UnfreezeRequest | None = None,
    auth: AuthContext = Depends(require_session),
) -> dict[str, object]:
    """Unfreeze previously frozen days of a plan."""
    container: AppContainer = request.app.state.container
    try:
        result = container.freeze_service.unfreeze(
            plan_id, body.unfreeze_dates if body else None, auth
        )
    except FreezeError:
        raise
    except Exception as exc:
        logger.exception("Failed to unfreeze dates", extra={"plan_id": plan_id})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to unfreeze dates",
        ) from exc
    return {
        "success": True,
        "message": (
            f"Successfully unfroze {len(result.unfrozen_dates)} days. "
            f"End date moved back to {format_day(result.new_end_date)}."
        ),
        "data": _serialize_unfreeze_result(result),
    }


@router.get("/{plan_id}/days/{day}")
async def day_status(
    plan_id: str,
    day: str,
    request: Request,
    _auth: AuthContext = Depends(require_session),
) -> dict[str, object]:
    """Return the freeze state and meals of a single plan day."""
    container: AppContainer = request.app.state.container
    try:
        day_state = container.freeze_service.get_day_status(plan_id, day)
    except FreezeError:
        raise
    except Exception as exc:
        logger.exception("Failed to get day status", extra={"plan_id": plan_id})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get day status",
        ) from exc
    return {"success": True, "data": _serialize_day_status(day_state)}


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    if not authorization.lower().startswith(_BEARER_PREFIX):
        return None
    token = authorization[len(_BEARER_PREFIX) :].strip()
    return token or None


def serialize_ledger_entry(entry: LedgerEntry) -> dict[str, object]:
    return {
        "date": format_day(entry.date),
        "addedDate": format_day(entry.added_date) if entry.added_date else None,
        "createdAt": entry.created_at.isoformat() if entry.created_at else None,
        "planId": entry.plan_id,
        "planName": entry.plan_name,
    }


def _serialize_info(info: FreezeInfo) -> dict[str, object]:
    allowance = info.allowance
    return {
        "planId": info.plan_id,
        "planName": info.plan_name,
        "startDate": format_day(info.start_date),
        "endDate": format_day(info.end_date),
        "durationDays": allowance.duration_days,
        "allowedFreezeDays": allowance.allowed_freeze_days,
        "totalFreezeCount": allowance.total_freeze_count,
        "remainingFreezeDays": allowance.remaining_freeze_days,
        "freezedDays": [
            serialize_ledger_entry(entry) for entry in allowance.frozen_days
        ],
        "canFreeze": info.can_freeze,
        "isSharedFreeze": allowance.is_shared,
        "linkedPlanCount": allowance.linked_plan_count,
        "purchaseId": allowance.purchase_id,
    }


def _serialize_freeze_result(result: FreezeResult) -> dict[str, object]:
    return {
        "planId": result.plan_id,
        "originalEndDate": format_day(result.original_end_date),
        "newEndDate": format_day(result.new_end_date),
        "totalFreezeCount": result.total_freeze_count,
        "thisPlanFreezeCount": result.this_plan_freeze_count,
        "allowedFreezeDays": result.allowed_freeze_days,
        "remainingFreezeDays": result.remaining_freeze_days,
        "frozenDates": [format_day(day) for day in result.frozen_dates],
        "addedMealDates": [format_day(day) for day in result.added_meal_dates],
        "copiedMeals": result.copied_meals,
        "isSharedFreeze": result.is_shared,
    }


def _serialize_unfreeze_result(result: UnfreezeResult) -> dict[str, object]:
    return {
        "planId": result.plan_id,
        "previousEndDate": format_day(result.previous_end_date),
        "newEndDate": format_day(result.new_end_date),
        "totalFreezeCount": result.total_freeze_count,
        "allowedFreezeDays": result.allowed_freeze_days,
        "remainingFreezeDays": result.remaining_freeze_days,
        "unfrozenDates": [format_day(day) for day in result.unfrozen_dates],
        "removedMealDates": [format_day(day) for day in result.removed_meal_dates],
    }


def _serialize_day_status(day_state: DayStatus) -> dict[str, object]:
    meal = day_state.meal
    recovery = meal.recovery if meal else None
    return {
        "planId": day_state.plan_id,
        "date": format_day(day_state.date),
        "isFrozen": day_state.is_frozen,
        "freezeInfo": (
            {
                "date": format_day(day_state.freeze_entry.date),
                "addedDate": format_day(day_state.freeze_entry.added_date)
                if day_state.freeze_entry.added_date
                else None,
                "frozenAt": day_state.freeze_entry.created_at.isoformat()
                if day_state.freeze_entry.created_at
                else None,
            }
            if day_state.freeze_entry
            else None
        ),
        "isFreezeRecovery": recovery is not None,
        "originalFreezeDate": format_day(recovery.original_date) if recovery else None,
        "originalFreezeDateLabel": recovery.original_label if recovery else None,
        "meals": meal.to_document() if meal and not day_state.is_frozen else None,
    }
