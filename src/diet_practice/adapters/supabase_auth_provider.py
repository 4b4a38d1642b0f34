"""Supabase Auth session lookup."""

import logging
from dataclasses import dataclass

from supabase import AuthError, Client

from diet_practice.domain.auth import AuthContext
from diet_practice.services.auth import AuthProvider

logger = logging.getLogger(__name__)

DEFAULT_ROLE = "client"


@dataclass
class SupabaseAuthProvider(AuthProvider):
    """Resolves Supabase access tokens into an auth context."""

    client: Client

    def resolve(self, token: str) -> AuthContext | None:
        """Return the user behind an access token."""
        try:
            response = self.client.auth.get_user(token)
        except AuthError as exc:
            logger.info("Rejected session token", extra={"reason": str(exc)})
            return None
        if response is None or response.user is None:
            return None
        user = response.user
        app_metadata = user.app_metadata or {}
        user_metadata = user.user_metadata or {}
        role = app_metadata.get("role") or user_metadata.get("role") or DEFAULT_ROLE
        return AuthContext(user_id=str(user.id), role=str(role))
