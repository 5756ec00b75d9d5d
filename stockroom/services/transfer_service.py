"""
Inventory Transfer Service

Moves stock between two locations in two steps: staff request a transfer,
a supervisor approves it. Nothing moves until approval, and availability is
re-checked against the locked source row at that point.
"""
import logging
from datetime import datetime, timezone
from typing import Optional, List
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.core.enum_utils import is_status
from stockroom.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from stockroom.core.state_machine import transition
from stockroom.models.inventory import InventoryTransfer, TransferStatus, TransactionType, ReferenceType
from stockroom.models.location import Location
from stockroom.models.notification import NotificationType
from stockroom.models.product import ProductVariant
from stockroom.models.user import User
from stockroom.services.audit_service import AuditService
from stockroom.services.inventory_service import InventoryService
from stockroom.services.notification_service import NotificationService


logger = logging.getLogger(__name__)


class TransferService:

    def __init__(self, db: AsyncSession, notifications: Optional[NotificationService] = None):
        self.db = db
        self.inventory = InventoryService(db)
        self.audit = AuditService(db)
        self.notifications = notifications or NotificationService(db)

    async def get_transfer(self, transfer_id: uuid.UUID, lock: bool = False) -> InventoryTransfer:
        stmt = select(InventoryTransfer).where(InventoryTransfer.id == transfer_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        transfer = (await self.db.execute(stmt)).scalar_one_or_none()
        if transfer is None:
            raise NotFoundError("Transfer not found")
        return transfer

    async def list_pending(self, limit: int = 100) -> List[InventoryTransfer]:
        stmt = (
            select(InventoryTransfer)
            .where(InventoryTransfer.status == TransferStatus.PENDING.value)
            .order_by(InventoryTransfer.created_at)
            .limit(limit)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def request_transfer(
        self,
        variant_id: uuid.UUID,
        from_location_id: uuid.UUID,
        to_location_id: uuid.UUID,
        quantity: int,
        user_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> InventoryTransfer:
        if from_location_id == to_location_id:
            raise ValidationError("Source and destination locations must differ")
        if quantity is None or quantity <= 0:
            raise ValidationError("Transfer quantity must be positive")
        if await self.db.get(ProductVariant, variant_id) is None:
            raise NotFoundError("Product variant not found")
        for location_id in (from_location_id, to_location_id):
            if await self.db.get(Location, location_id) is None:
                raise NotFoundError(f"Location {location_id} not found")

        source = await self.inventory.find(variant_id, from_location_id, lock=False)
        available = source.quantity_available if source else 0
        if available < quantity:
            raise ValidationError(f"Only {available} units available at source location")

        transfer = InventoryTransfer(
            variant_id=variant_id,
            from_location_id=from_location_id,
            to_location_id=to_location_id,
            quantity=quantity,
            reason=reason,
            status=TransferStatus.PENDING.value,
            requested_by=user_id,
        )
        self.db.add(transfer)
        await self.db.flush()
        await self.audit.log(
            action="TRANSFER_REQUESTED",
            entity_type="TRANSFER",
            entity_id=transfer.id,
            user_id=user_id,
            new_values={"quantity": quantity, "from": str(from_location_id), "to": str(to_location_id)},
        )
        return transfer

    async def approve(self, transfer_id: uuid.UUID, approver: User) -> InventoryTransfer:
        if not approver.is_supervisor:
            raise ForbiddenError("Only managers can approve transfers")

        transfer = await self.get_transfer(transfer_id, lock=True)
        if not is_status(transfer.status, TransferStatus.PENDING):
            raise ConflictError("Transfer already processed")

        source = await self.inventory.find(transfer.variant_id, transfer.from_location_id)
        if source is None or source.quantity_available < transfer.quantity:
            available = source.quantity_available if source else 0
            raise ConflictError(f"Insufficient stock at source location: {available} available")
        destination = await self.inventory.get_or_create(transfer.variant_id, transfer.to_location_id)

        notes = f"Transfer {transfer.id}"
        self.inventory.adjust_on_hand(
            source, -transfer.quantity, TransactionType.TRANSFER,
            ReferenceType.TRANSFER, transfer.id, approver.id, notes,
        )
        self.inventory.adjust_on_hand(
            destination, transfer.quantity, TransactionType.TRANSFER,
            ReferenceType.TRANSFER, transfer.id, approver.id, notes,
        )

        previous = transition(transfer, TransferStatus, TransferStatus.APPROVED, entity="Transfer")
        transfer.confirmed_by = approver.id
        transfer.processed_at = datetime.now(timezone.utc)
        await self.audit.log_status_change("TRANSFER", transfer.id, previous, transfer.status, approver.id)

        if transfer.requested_by:
            await self.notifications.notify(
                transfer.requested_by,
                NotificationType.TRANSFER_APPROVED,
                title="Transfer approved",
                message=f"Your transfer of {transfer.quantity} unit(s) was approved",
                link=f"/inventory/transfers/{transfer.id}",
                data={"transfer_id": str(transfer.id)},
            )
        logger.info(f"Transfer {transfer.id} approved: {transfer.quantity} unit(s) moved")
        return transfer

    async def reject(self, transfer_id: uuid.UUID, approver: User, reason: Optional[str]) -> InventoryTransfer:
        if not approver.is_supervisor:
            raise ForbiddenError("Only managers can reject transfers")
        if not reason or not reason.strip():
            raise ValidationError("Rejection reason is required")

        transfer = await self.get_transfer(transfer_id, lock=True)
        if not is_status(transfer.status, TransferStatus.PENDING):
            raise ConflictError("Transfer already processed")

        previous = transition(transfer, TransferStatus, TransferStatus.REJECTED, entity="Transfer")
        transfer.confirmed_by = approver.id
        transfer.rejection_reason = reason
        transfer.processed_at = datetime.now(timezone.utc)
        await self.audit.log_status_change("TRANSFER", transfer.id, previous, transfer.status, approver.id, reason)

        if transfer.requested_by:
            await self.notifications.notify(
                transfer.requested_by,
                NotificationType.TRANSFER_REJECTED,
                title="Transfer rejected",
                message=f"Your transfer was rejected: {reason}",
                link=f"/inventory/transfers/{transfer.id}",
                data={"transfer_id": str(transfer.id), "reason": reason},
            )
        return transfer
