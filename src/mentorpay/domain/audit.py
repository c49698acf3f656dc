"""Audit trail service."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional

from mentorpay.database.base import Database
from mentorpay.domain.entities import AuditLogEntry, EntityType, FieldChange
from mentorpay.domain.money import Money


def _plain(value: Any) -> Any:
    """Reduce a field value to something JSON can hold."""
    if isinstance(value, Money):
        return {"minor": value.minor, "currency": value.currency}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def diff_fields(before: Mapping[str, Any], after: Mapping[str, Any]) -> list[FieldChange]:
    """Return a FieldChange for every key of after whose value differs from before."""
    changes = []
    for name, new in after.items():
        old = before.get(name)
        if _plain(old) != _plain(new):
            changes.append(FieldChange(field=name, old=_plain(old), new=_plain(new)))
    return changes


class AuditLogService:
    """Append-only history of mentors, sessions, receipts and payouts.

    Callers write entries inside the unit of work of the change they
    describe. If the append fails the unit of work fails with it.
    """

    def __init__(self, db: Database):
        """Initialize audit log service.

        Args:
            db: Database instance
        """
        self.db = db

    def record(
        self,
        entity_type: EntityType,
        entity_id: int,
        action: str,
        actor_id: int,
        changes: Optional[list[FieldChange]] = None,
        description: Optional[str] = None,
    ) -> int:
        """Append one entry. Returns entry ID."""
        payload = None
        if changes:
            payload = [{"field": c.field, "old": c.old, "new": c.new} for c in changes]
        return self.db.append_audit_entry(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            changes=payload,
            description=description,
        )

    def history(self, entity_type: EntityType, entity_id: int) -> list[AuditLogEntry]:
        """Return entries for one entity, oldest first."""
        return self.db.list_audit_entries(entity_type=EntityType(entity_type), entity_id=entity_id)

    def by_actor(self, actor_id: int) -> list[AuditLogEntry]:
        """Return every entry written by one actor, oldest first."""
        return self.db.list_audit_entries(actor_id=actor_id)
