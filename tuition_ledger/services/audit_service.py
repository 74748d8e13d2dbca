"""Audit service for logging master actions."""

from sqlalchemy.orm import Session

from tuition_ledger.models.audit_log import AuditLog


class AuditService:
    """Service for audit log operations.

    Provides static method to create minimal audit log entries.
    """

    @staticmethod
    def log(
        db: Session,
        entity_type: str,
        entity_id: int,
        action: str,
        actor: str | None = None,
        changes: dict | None = None,
    ) -> AuditLog:
        """Create audit log entry (one-liner).

        The entry is added to the session and committed with the action it
        describes.

        Args:
            db: Database session
            entity_type: Type of entity ("debt_record", "batch", etc.)
            entity_id: Primary key of the entity
            action: Action performed ("approve", "adjust", etc.)
            actor: Master who performed the action (optional)
            changes: Optional JSON snapshot of changed fields

        Returns:
            Created AuditLog object
        """
        audit = AuditLog(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor=actor,
            changes=changes,
        )
        db.add(audit)
        return audit


__all__ = ["AuditService"]
