"""
Order Service

Entry point for POST /orders/actions. Each action runs in its own unit of
work; bulk actions run one unit of work per order so a failing order never
rolls back the others.
"""
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any, Sequence
import uuid

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.core.enum_utils import is_status, status_in
from stockroom.core.exceptions import ConflictError, NotFoundError, ValidationError, WarehouseError
from stockroom.core.state_machine import transition
from stockroom.database import unit_of_work
from stockroom.models.inventory import (
    Inventory, InventoryReservation, BackOrder,
    ReservationStatus, BackOrderStatus, ReferenceType,
)
from stockroom.models.order import Order, OrderStatus
from stockroom.models.product import ProductVariant
from stockroom.services.allocation_service import AllocationService, AllocationMode
from stockroom.services.fulfillment_platform_service import FulfillmentSyncService, FulfillmentPlatformService
from stockroom.services.inventory_service import InventoryService
from stockroom.services.notification_service import NotificationService
from stockroom.services.order_status_service import OrderStatusService
from stockroom.services.picklist_service import PicklistService


logger = logging.getLogger(__name__)


class OrderAction(str, Enum):
    ALLOCATE = "ALLOCATE"
    ALLOCATE_WITH_BACKORDER = "ALLOCATE_WITH_BACKORDER"
    ALLOCATE_WITH_COUNT = "ALLOCATE_WITH_COUNT"
    BULK_ALLOCATE = "BULK_ALLOCATE"
    MARK_FULFILLED = "MARK_FULFILLED"
    GENERATE_SINGLE_PICK = "GENERATE_SINGLE_PICK"
    BULK_GENERATE_PICKS = "BULK_GENERATE_PICKS"


ALLOCATION_MODES = {
    OrderAction.ALLOCATE: AllocationMode.STRICT,
    OrderAction.ALLOCATE_WITH_BACKORDER: AllocationMode.BACKORDER,
    OrderAction.ALLOCATE_WITH_COUNT: AllocationMode.COUNT,
}


class OrderService:

    def __init__(
        self,
        db: AsyncSession,
        notifications: Optional[NotificationService] = None,
        platform: Optional[FulfillmentPlatformService] = None,
    ):
        self.db = db
        self.notifications = notifications or NotificationService(db)
        self.platform = platform
        self.inventory = InventoryService(db)
        self.order_status = OrderStatusService(db)

    async def get_order(self, order_id: uuid.UUID) -> Order:
        order = await self.db.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    # ==================== ACTIONS ====================

    async def execute_action(
        self,
        action: OrderAction,
        user_id: uuid.UUID,
        order_id: Optional[uuid.UUID] = None,
        order_ids: Optional[Sequence[uuid.UUID]] = None,
    ) -> Dict[str, Any]:
        try:
            action = OrderAction(action)
        except ValueError:
            raise ValidationError("Invalid action")

        if action == OrderAction.BULK_ALLOCATE:
            if not order_ids:
                raise ValidationError("orderIds array is required for bulk allocation")
            return await self.bulk_allocate(order_ids, user_id)

        if action == OrderAction.BULK_GENERATE_PICKS:
            if not order_ids:
                raise ValidationError("orderIds array is required for bulk pick generation")
            return await self.generate_picks(order_ids, user_id)

        if not order_id:
            raise ValidationError("orderId is required")

        if action in ALLOCATION_MODES:
            async with unit_of_work(self.db, self.notifications):
                result = await AllocationService(self.db).allocate_order(
                    order_id, ALLOCATION_MODES[action], user_id
                )
            return {"message": f"{action.value} completed successfully", **result.to_dict()}

        if action == OrderAction.MARK_FULFILLED:
            return await self.mark_fulfilled(order_id, user_id)

        # GENERATE_SINGLE_PICK
        return await self.generate_picks([order_id], user_id, auto_start=True)

    async def bulk_allocate(
        self,
        order_ids: Sequence[uuid.UUID],
        user_id: uuid.UUID,
        mode: AllocationMode = AllocationMode.STRICT,
    ) -> Dict[str, Any]:
        successful = 0
        errors: List[Dict[str, str]] = []

        for order_id in order_ids:
            try:
                async with unit_of_work(self.db, self.notifications):
                    await AllocationService(self.db).allocate_order(order_id, mode, user_id)
                successful += 1
            except WarehouseError as e:
                logger.warning(f"Bulk allocation failed for order {order_id}: {e.message}")
                errors.append({"order_id": str(order_id), "error": e.message})

        failed = len(errors)
        return {
            "message": f"Bulk allocation completed: {successful} successful, {failed} failed",
            "successful": successful,
            "failed": failed,
            "errors": errors,
        }

    async def mark_fulfilled(self, order_id: uuid.UUID, user_id: uuid.UUID) -> Dict[str, Any]:
        """
        Mark a shipped order delivered, then push the fulfillment to the
        platform. A platform failure leaves a PENDING sync row behind.
        """
        async with unit_of_work(self.db, self.notifications):
            order = await self.get_order(order_id)
            if not is_status(order.status, OrderStatus.SHIPPED):
                raise ConflictError("Order must be shipped before marking as fulfilled")
            await self.order_status.change_status(
                order, OrderStatus.DELIVERED, user_id, "Order marked as fulfilled"
            )

        async with unit_of_work(self.db):
            pending = await FulfillmentSyncService(self.db, self.platform).sync_fulfillment(order)

        return {
            "message": "MARK_FULFILLED completed successfully",
            "order_id": str(order.id),
            "status": order.status,
            "sync_pending": pending is not None,
        }

    async def generate_picks(
        self,
        order_ids: Sequence[uuid.UUID],
        user_id: uuid.UUID,
        auto_start: bool = False,
    ) -> Dict[str, Any]:
        async with unit_of_work(self.db, self.notifications):
            pick_list = await PicklistService(self.db, self.notifications).generate_pick_list(
                order_ids,
                user_id=user_id,
                assigned_to=user_id if auto_start else None,
                auto_start=auto_start,
            )
        logger.info(f"Generated pick list {pick_list.batch_number} for {len(order_ids)} order(s)")
        return {
            "message": f"Pick list {pick_list.batch_number} generated",
            "pick_list_id": str(pick_list.id),
            "batch_number": pick_list.batch_number,
            "status": pick_list.status,
            "total_items": pick_list.total_items,
        }

    # ==================== CANCELLATION ====================

    async def cancel_order(self, order_id: uuid.UUID, user_id: uuid.UUID, reason: Optional[str] = None) -> Order:
        """Cancel an order before picking finishes and give its reserved stock back."""
        order = await self.get_order(order_id)
        if not status_in(order.status, OrderStatus.PENDING, OrderStatus.ALLOCATED, OrderStatus.PICKING):
            raise ConflictError(f"Cannot cancel order with status {order.status}")

        stmt = select(InventoryReservation).where(
            InventoryReservation.order_id == order.id,
            InventoryReservation.status == ReservationStatus.ACTIVE.value,
        )
        released = 0
        for reservation in (await self.db.execute(stmt)).scalars().all():
            inventory = await self.inventory.get_locked(reservation.inventory_id)
            outstanding = reservation.quantity - (reservation.quantity_picked or 0)
            self.inventory.release(
                inventory,
                outstanding,
                ReferenceType.ORDER,
                order.id,
                user_id,
                f"Released for cancelled order {order.order_number}",
            )
            transition(reservation, ReservationStatus, ReservationStatus.RELEASED, entity="Reservation")
            reservation.released_at = datetime.now(timezone.utc)
            released += outstanding

        backorders = await self.db.execute(
            select(BackOrder).where(
                BackOrder.order_id == order.id,
                BackOrder.status == BackOrderStatus.OPEN.value,
            )
        )
        for backorder in backorders.scalars().all():
            transition(backorder, BackOrderStatus, BackOrderStatus.CANCELLED, entity="Back order")

        note = reason or "Order cancelled"
        if released:
            note = f"{note} - {released} unit(s) released"
        await self.order_status.change_status(order, OrderStatus.CANCELLED, user_id, note)
        await PicklistService(self.db, self.notifications).skip_items_for_order(
            order.id, user_id, f"Order {order.order_number} cancelled"
        )
        return order

    # ==================== BACKORDERS ====================

    async def grouped_backorders(self) -> List[Dict[str, Any]]:
        """Open backorders grouped by order, with what is available to fill them now."""
        rows = (await self.db.execute(
            select(BackOrder)
            .where(BackOrder.status == BackOrderStatus.OPEN.value)
            .order_by(BackOrder.created_at)
        )).scalars().all()
        if not rows:
            return []

        variant_ids = {row.variant_id for row in rows}
        available_stmt = (
            select(
                Inventory.variant_id,
                func.sum(Inventory.quantity_on_hand - Inventory.quantity_reserved),
            )
            .where(Inventory.variant_id.in_(variant_ids))
            .group_by(Inventory.variant_id)
        )
        available = {
            variant_id: max(int(total or 0), 0)
            for variant_id, total in (await self.db.execute(available_stmt)).all()
        }

        groups: Dict[uuid.UUID, Dict[str, Any]] = {}
        for backorder in rows:
            group = groups.get(backorder.order_id)
            if group is None:
                order = await self.db.get(Order, backorder.order_id)
                group = {
                    "order_id": str(backorder.order_id),
                    "order_number": order.order_number if order else None,
                    "order_status": order.status if order else None,
                    "total_backordered": 0,
                    "can_fulfill": True,
                    "items": [],
                }
                groups[backorder.order_id] = group

            variant = await self.db.get(ProductVariant, backorder.variant_id)
            on_shelf = available.get(backorder.variant_id, 0)
            group["items"].append({
                "back_order_id": str(backorder.id),
                "variant_id": str(backorder.variant_id),
                "sku": variant.sku if variant else None,
                "quantity_backordered": backorder.quantity_backordered,
                "quantity_available": on_shelf,
                "reason": backorder.reason,
                "can_fulfill": on_shelf >= backorder.quantity_backordered,
            })
            group["total_backordered"] += backorder.quantity_backordered
            group["can_fulfill"] = group["can_fulfill"] and on_shelf >= backorder.quantity_backordered

        return list(groups.values())
