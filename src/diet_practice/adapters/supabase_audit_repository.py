"""Supabase repository for audit events."""

from dataclasses import dataclass

from supabase import Client

from diet_practice.services.audit import AuditEvent, AuditRepository


@dataclass
class SupabaseAuditRepository(AuditRepository):
    """Supabase-backed audit repository."""

    client: Client

    def create_event(self, event: AuditEvent) -> None:
        """Insert an audit event row."""
        self.client.table("audit_events").insert(
            {
                "user_id": event.actor_id,
                "entity_type": event.entity_type,
                "entity_id": event.entity_id,
                "event_type": event.event_type,
                "before_json": event.before,
                "after_json": event.after,
            }
        ).execute()
