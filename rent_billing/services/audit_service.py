"""Audit trail for billing events.

Rows are added to the caller's session and committed with the operation that
produced them, so a rolled-back allocation leaves no audit entry behind.
"""

from typing import Iterable

from sqlalchemy.orm import Session

from rent_billing.models.audit_log import AuditLog
from rent_billing.services.reconciliation_service import StatusChange


class AuditService:
    """Writes and reads audit rows for leases, periods, payments and invoices."""

    @staticmethod
    def log(
        db: Session,
        entity_type: str,
        entity_id: int | None,
        action: str,
        actor_id: str | None = None,
        changes: dict | None = None,
    ) -> AuditLog:
        """Add one audit row.

        Args:
            db: Database session (not committed here)
            entity_type: "lease", "period", "payment" or "invoice"
            entity_id: Primary key of the entity
            action: "generate", "update", "allocate", "reverse", "status_change", ...
            actor_id: Acting user; None for system actions such as scans
            changes: JSON snapshot of what changed
        """
        audit = AuditLog(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            changes=changes,
        )
        db.add(audit)
        return audit

    @classmethod
    def log_status_changes(
        cls,
        db: Session,
        changes: Iterable[StatusChange],
        actor_id: str | None = None,
    ) -> list[AuditLog]:
        """One ``status_change`` row per transition applied by the reconciler."""
        return [
            cls.log(db, change.entity_type, change.entity_id, "status_change", actor_id, change.as_audit_changes())
            for change in changes
        ]

    @staticmethod
    def history(db: Session, entity_type: str, entity_id: int) -> list[AuditLog]:
        """Audit rows of one entity, oldest first."""
        return (
            db.query(AuditLog)
            .filter(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
            .order_by(AuditLog.id)
            .all()
        )


__all__ = ["AuditService"]
