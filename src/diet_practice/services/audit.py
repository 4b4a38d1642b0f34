"""Audit trail for meal-plan changes."""

from dataclasses import dataclass
from typing import Protocol

from diet_practice.domain.auth import AuthContext


@dataclass(frozen=True)
class AuditEvent:
    """A recorded change to a tracked entity."""

    actor_id: str | None
    entity_type: str
    entity_id: str
    event_type: str
    before: dict[str, object] | None
    after: dict[str, object] | None


class AuditRepository(Protocol):
    """Persistence interface for audit events."""

    def create_event(self, event: AuditEvent) -> None:
        """Store an audit event."""


@dataclass
class AuditService:
    """Records who changed what."""

    repository: AuditRepository

    def record_event(  # noqa: PLR0913
        self,
        actor: AuthContext | None,
        entity_type: str,
        entity_id: str,
        event_type: str,
        before: dict[str, object] | None,
        after: dict[str, object] | None,
    ) -> AuditEvent:
        """Persist an audit event; system changes have no actor."""
        event = AuditEvent(
            actor_id=actor.user_id if actor else None,
            entity_type=entity_type,
            entity_id=entity_id,
            event_type=event_type,
            before=before,
            after=after,
        )
        self.repository.create_event(event)
        return event
