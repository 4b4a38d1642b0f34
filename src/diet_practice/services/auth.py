"""Session authentication interface."""

from typing import Protocol

from diet_practice.domain.auth import AuthContext


class AuthProvider(Protocol):
    """Resolves session tokens to authenticated callers."""

    def resolve(self, token: str) -> AuthContext | None:
        """Return the caller for a token, or None when it is not valid."""
