"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from diet_practice.adapters.supabase_audit_repository import SupabaseAuditRepository
from diet_practice.adapters.supabase_auth_provider import SupabaseAuthProvider
from diet_practice.adapters.supabase_meal_plan_repository import (
    SupabaseMealPlanRepository,
)
from diet_practice.adapters.supabase_purchase_repository import (
    SupabasePurchaseRepository,
)
from diet_practice.config import Settings
from diet_practice.services.audit import AuditService
from diet_practice.services.auth import AuthProvider
from diet_practice.services.freeze import FreezeService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    auth_provider: AuthProvider
    audit_service: AuditService
    freeze_service: FreezeService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    audit_service = AuditService(SupabaseAuditRepository(supabase_client))
    freeze_service = FreezeService(
        plan_repository=SupabaseMealPlanRepository(supabase_client),
        purchase_repository=SupabasePurchaseRepository(supabase_client),
        audit_service=audit_service,
        timezone_name=resolved_settings.plan_timezone,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=resolved_settings,
        auth_provider=SupabaseAuthProvider(supabase_client),
        audit_service=audit_service,
        freeze_service=freeze_service,
        close_resources=close_resources,
    )
