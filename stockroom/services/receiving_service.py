"""Purchase order receiving: count on the dock, submit, supervisor posts stock."""
import logging
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.core.enum_utils import is_status
from stockroom.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from stockroom.core.state_machine import transition
from stockroom.models.inventory import TransactionType, ReferenceType
from stockroom.models.location import Location, LocationType
from stockroom.models.notification import NotificationType
from stockroom.models.product import ProductVariant
from stockroom.models.receiving import ReceivingSession, ReceivingLineItem, ReceivingStatus
from stockroom.models.user import User
from stockroom.services.audit_service import AuditService
from stockroom.services.inventory_service import InventoryService
from stockroom.services.notification_service import NotificationService


logger = logging.getLogger(__name__)


class ReceivingService:

    def __init__(self, db: AsyncSession, notifications: Optional[NotificationService] = None):
        self.db = db
        self.inventory = InventoryService(db)
        self.audit = AuditService(db)
        self.notifications = notifications or NotificationService(db)

    async def get_session(self, session_id: uuid.UUID) -> ReceivingSession:
        session = await self.db.get(ReceivingSession, session_id)
        if session is None:
            raise NotFoundError("Receiving session not found")
        return session

    async def create_session(
        self,
        po_id: str,
        items: List[Dict[str, Any]],
        user_id: uuid.UUID,
        location_id: Optional[uuid.UUID] = None,
        po_reference: Optional[str] = None,
        vendor: Optional[str] = None,
    ) -> ReceivingSession:
        """
        items: [{"variant_id": UUID, "quantity_expected": int}, ...]
        """
        if not items:
            raise ValidationError("At least one line item is required")

        if location_id:
            location = await self.db.get(Location, location_id)
            if location is None:
                raise NotFoundError("Location not found")
            if not is_status(location.type, LocationType.RECEIVING):
                raise ValidationError(f"Location {location.name} is not a receiving location")
        else:
            location = await self.inventory.first_location_of_type(LocationType.RECEIVING)
            if location is None:
                raise ConflictError("No RECEIVING location configured")

        session = ReceivingSession(
            po_id=po_id,
            po_reference=po_reference,
            vendor=vendor,
            location_id=location.id,
            status=ReceivingStatus.PENDING.value,
            counted_by=user_id,
        )
        for line in items:
            variant = await self.db.get(ProductVariant, line["variant_id"])
            if variant is None:
                raise NotFoundError(f"Product variant {line['variant_id']} not found")
            expected = int(line.get("quantity_expected") or 0)
            if expected < 0:
                raise ValidationError("Expected quantity cannot be negative")
            session.line_items.append(ReceivingLineItem(
                variant_id=variant.id,
                sku=variant.sku,
                quantity_expected=expected,
                quantity_counted=0,
            ))

        self.db.add(session)
        await self.db.flush()
        await self.audit.log(
            action="CREATE",
            entity_type="RECEIVING",
            entity_id=session.id,
            user_id=user_id,
            new_values={"po_id": po_id, "lines": len(items)},
        )
        return session

    async def record_counts(
        self,
        session_id: uuid.UUID,
        counts: List[Dict[str, Any]],
        user_id: uuid.UUID,
    ) -> ReceivingSession:
        """counts: [{"line_item_id": UUID, "quantity_counted": int}, ...]"""
        session = await self.get_session(session_id)
        if not is_status(session.status, ReceivingStatus.PENDING):
            raise ConflictError(f"Cannot record counts on a {session.status} session")

        lines = {line.id: line for line in await session.awaitable_attrs.line_items}
        for count in counts:
            line = lines.get(count["line_item_id"])
            if line is None:
                raise NotFoundError(f"Line item {count['line_item_id']} not found")
            quantity = int(count["quantity_counted"])
            if quantity < 0:
                raise ValidationError("Counted quantity cannot be negative")
            line.quantity_counted = quantity

        session.counted_by = user_id
        return session

    async def submit(self, session_id: uuid.UUID, user_id: uuid.UUID) -> ReceivingSession:
        session = await self.get_session(session_id)
        previous = transition(session, ReceivingStatus, ReceivingStatus.SUBMITTED, entity="Receiving session")
        session.submitted_at = datetime.now(timezone.utc)
        await self.audit.log_status_change("RECEIVING", session.id, previous, session.status, user_id)
        return session

    async def approve(self, session_id: uuid.UUID, approver: User) -> ReceivingSession:
        if not approver.is_supervisor:
            raise ForbiddenError("Only managers can approve receiving")

        session = await self.get_session(session_id)
        if not is_status(session.status, ReceivingStatus.SUBMITTED):
            raise ConflictError(f"Cannot approve a {session.status} session")

        received = 0
        for line in await session.awaitable_attrs.line_items:
            if line.quantity_counted <= 0:
                continue
            inventory = await self.inventory.get_or_create(line.variant_id, session.location_id)
            self.inventory.adjust_on_hand(
                inventory,
                line.quantity_counted,
                TransactionType.RECEIPT,
                ReferenceType.RECEIVING,
                session.id,
                approver.id,
                f"Received against PO {session.po_id}",
                {"expected": line.quantity_expected, "variance": line.variance},
            )
            received += line.quantity_counted

        previous = transition(session, ReceivingStatus, ReceivingStatus.APPROVED, entity="Receiving session")
        session.approved_by = approver.id
        session.processed_at = datetime.now(timezone.utc)
        await self.audit.log_status_change("RECEIVING", session.id, previous, session.status, approver.id)
        await self._notify_counter(session, f"PO {session.po_id} received: {received} unit(s) put away")

        logger.info(f"Receiving session {session.id} approved, {received} unit(s) posted")
        return session

    async def reject(self, session_id: uuid.UUID, approver: User, reason: Optional[str]) -> ReceivingSession:
        if not approver.is_supervisor:
            raise ForbiddenError("Only managers can reject receiving")
        if not reason or not reason.strip():
            raise ValidationError("Rejection reason is required")

        session = await self.get_session(session_id)
        if not is_status(session.status, ReceivingStatus.SUBMITTED):
            raise ConflictError(f"Cannot reject a {session.status} session")

        previous = transition(session, ReceivingStatus, ReceivingStatus.REJECTED, entity="Receiving session")
        session.approved_by = approver.id
        session.rejection_reason = reason
        session.processed_at = datetime.now(timezone.utc)
        await self.audit.log_status_change("RECEIVING", session.id, previous, session.status, approver.id, reason)
        await self._notify_counter(session, f"PO {session.po_id} receiving rejected: {reason}")
        return session

    async def _notify_counter(self, session: ReceivingSession, message: str) -> None:
        if not session.counted_by:
            return
        await self.notifications.notify(
            session.counted_by,
            NotificationType.RECEIVING_PROCESSED,
            title="Receiving processed",
            message=message,
            link=f"/inventory/receiving/{session.id}",
            data={"session_id": str(session.id), "status": session.status},
        )
