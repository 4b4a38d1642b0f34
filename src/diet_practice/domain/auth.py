"""Authentication domain models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class AuthContext:
    """Authenticated caller resolved from a session token."""

    user_id: str
    role: str
