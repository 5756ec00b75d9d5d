from typing import Optional, Dict, Any
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.models.audit_log import AuditLog


class AuditService:
    """
    Audit service for logging workflow state changes.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[uuid.UUID] = None,
        user_id: Optional[uuid.UUID] = None,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        description: Optional[str] = None,
    ) -> AuditLog:
        """
        Create an audit log entry.

        Args:
            action: The action performed (ALLOCATE, COUNT_RECORDED, etc.)
            entity_type: Type of entity (ORDER, CYCLE_COUNT_TASK, etc.)
            entity_id: ID of the affected entity
            user_id: ID of the user performing the action
            old_values: Previous values
            new_values: New values
            description: Human-readable description

        Returns:
            The created AuditLog entry
        """
        audit_log = AuditLog(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            old_values=old_values,
            new_values=new_values,
            description=description,
        )
        self.db.add(audit_log)
        return audit_log

    async def log_status_change(
        self,
        entity_type: str,
        entity_id: uuid.UUID,
        old_status: Optional[str],
        new_status: str,
        user_id: Optional[uuid.UUID] = None,
        description: Optional[str] = None,
    ) -> AuditLog:
        """Log a status transition."""
        return await self.log(
            action="STATUS_CHANGE",
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            old_values={"status": old_status},
            new_values={"status": new_status},
            description=description or f"{entity_type} status changed from {old_status} to {new_status}",
        )
