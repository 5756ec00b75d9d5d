"""Service for generating pick lists and recording warehouse picks."""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Iterable, Sequence
import uuid

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.core.enum_utils import is_status, status_in
from stockroom.core.exceptions import ConflictError, NotFoundError, ValidationError
from stockroom.core.state_machine import transition, is_terminal
from stockroom.models.inventory import (
    Inventory, BackOrder, BackOrderStatus, InventoryReservation, ReservationStatus, ReferenceType,
)
from stockroom.models.location import Location
from stockroom.models.notification import NotificationType
from stockroom.models.order import Order, OrderStatus
from stockroom.models.product import ProductVariant
from stockroom.models.picklist import (
    PickList, PickListItem, PickEvent, PickListStatus, PickItemStatus, PickEventType,
)
from stockroom.services.audit_service import AuditService
from stockroom.services.inventory_service import InventoryService
from stockroom.services.notification_service import NotificationService
from stockroom.services.order_status_service import OrderStatusService
from stockroom.services.user_service import UserService


logger = logging.getLogger(__name__)

PICKED_ITEM_STATUSES = (PickItemStatus.COMPLETED, PickItemStatus.SHORT_PICK)


@dataclass
class PickProgress:
    total_items: int
    picked_items: int
    open_items: int

    @property
    def is_complete(self) -> bool:
        return self.total_items > 0 and self.open_items == 0


def compute_pick_progress(items: Iterable[PickListItem]) -> PickProgress:
    """Counters of a pick list derived from its items."""
    total = picked = open_ = 0
    for item in items:
        total += 1
        if status_in(item.status, *PICKED_ITEM_STATUSES):
            picked += 1
        if not is_terminal(PickItemStatus, item.status):
            open_ += 1
    return PickProgress(total_items=total, picked_items=picked, open_items=open_)


class PicklistService:
    """Service for pick list management and picking operations."""

    def __init__(self, db: AsyncSession, notifications: Optional[NotificationService] = None):
        self.db = db
        self.inventory = InventoryService(db)
        self.audit = AuditService(db)
        self.order_status = OrderStatusService(db)
        self.notifications = notifications or NotificationService(db)
        self.users = UserService(db)

    # ==================== BATCH NUMBER GENERATION ====================

    async def generate_batch_number(self) -> str:
        """Generate unique batch number: PICK-YYYYMMDD-XXXX"""
        today = datetime.now(timezone.utc).strftime("%Y%m%d")
        prefix = f"PICK-{today}-"

        stmt = select(func.count(PickList.id)).where(
            PickList.batch_number.like(f"{prefix}%")
        )
        count = (await self.db.execute(stmt)).scalar() or 0

        return f"{prefix}{(count + 1):04d}"

    # ==================== LOOKUPS ====================

    async def get_pick_list(self, pick_list_id: uuid.UUID) -> PickList:
        pick_list = await self.db.get(PickList, pick_list_id)
        if pick_list is None:
            raise NotFoundError("Pick list not found")
        return pick_list

    async def get_item(self, pick_list: PickList, item_id: uuid.UUID) -> PickListItem:
        for item in await pick_list.awaitable_attrs.items:
            if item.id == item_id:
                return item
        raise NotFoundError("Pick list item not found")

    async def _event(
        self,
        pick_list: PickList,
        event_type: PickEventType,
        user_id: Optional[uuid.UUID],
        item: Optional[PickListItem] = None,
        data: Optional[dict] = None,
    ) -> None:
        (await pick_list.awaitable_attrs.events).append(PickEvent(
            item_id=item.id if item is not None else None,
            event_type=event_type.value,
            user_id=user_id,
            data=data or {},
        ))

    # ==================== GENERATION ====================

    async def generate_pick_list(
        self,
        order_ids: Sequence[uuid.UUID],
        user_id: Optional[uuid.UUID] = None,
        assigned_to: Optional[uuid.UUID] = None,
        priority: int = 5,
        notes: Optional[str] = None,
        auto_start: bool = False,
    ) -> PickList:
        """
        Build one pick list from the ACTIVE reservations of ALLOCATED orders.

        Items are sequenced along the pick path (location pick_sequence,
        then location name) and every order moves to PICKING.
        """
        if not order_ids:
            raise ValidationError("At least one order is required")

        orders = (await self.db.execute(
            select(Order).where(Order.id.in_(list(order_ids))).with_for_update()
        )).scalars().all()
        found = {order.id for order in orders}
        missing = [str(order_id) for order_id in order_ids if order_id not in found]
        if missing:
            raise NotFoundError(f"Order(s) not found: {', '.join(missing)}")
        for order in orders:
            if not is_status(order.status, OrderStatus.ALLOCATED):
                raise ConflictError(
                    f"Order {order.order_number} is {order.status}; only ALLOCATED orders can be picked"
                )

        reservations = (await self.db.execute(
            select(InventoryReservation).where(
                InventoryReservation.order_id.in_(list(found)),
                InventoryReservation.status == ReservationStatus.ACTIVE.value,
            )
        )).scalars().all()
        reservations = [r for r in reservations if r.quantity_outstanding > 0]
        if not reservations:
            raise ConflictError("No reserved inventory to pick for the selected orders")

        if assigned_to:
            await self.users.get_assignable(assigned_to)

        stops = {}
        for reservation in reservations:
            inventory = await self.db.get(Inventory, reservation.inventory_id)
            location = await self.db.get(Location, inventory.location_id)
            stops[reservation.id] = (inventory, location)
        reservations.sort(key=lambda r: (
            stops[r.id][1].pick_sequence,
            stops[r.id][1].name,
            str(r.order_id),
        ))

        pick_list = PickList(
            batch_number=await self.generate_batch_number(),
            status=PickListStatus.PENDING.value,
            priority=priority,
            created_by=user_id,
            notes=notes,
        )
        self.db.add(pick_list)

        for sequence, reservation in enumerate(reservations, start=1):
            pick_list.items.append(PickListItem(
                order_id=reservation.order_id,
                order_item_id=reservation.order_item_id,
                reservation_id=reservation.id,
                variant_id=stops[reservation.id][0].variant_id,
                location_id=stops[reservation.id][0].location_id,
                quantity_to_pick=reservation.quantity_outstanding,
                quantity_picked=0,
                sequence=sequence,
                status=PickItemStatus.PENDING.value,
            ))

        progress = compute_pick_progress(pick_list.items)
        pick_list.total_items = progress.total_items
        pick_list.picked_items = progress.picked_items
        await self.db.flush()

        await self._event(pick_list, PickEventType.PICK_LIST_CREATED, user_id, data={
            "orders": [str(order.id) for order in orders],
            "items": progress.total_items,
        })
        for order in orders:
            await self.order_status.change_status(
                order, OrderStatus.PICKING, user_id, f"Pick list {pick_list.batch_number} generated"
            )

        if assigned_to:
            await self._assign(pick_list, assigned_to, user_id)
        if auto_start:
            await self._start(pick_list, user_id)

        await self.audit.log(
            action="CREATE",
            entity_type="PICK_LIST",
            entity_id=pick_list.id,
            user_id=user_id,
            new_values={"batch_number": pick_list.batch_number, "items": progress.total_items},
        )
        await self.db.flush()
        logger.info(
            f"Generated pick list {pick_list.batch_number} with {progress.total_items} item(s) "
            f"for {len(orders)} order(s)"
        )
        return pick_list

    # ==================== LIFECYCLE ====================

    async def _assign(self, pick_list: PickList, assignee_id: uuid.UUID, user_id: Optional[uuid.UUID]) -> None:
        previous_assignee = pick_list.assigned_to
        pick_list.assigned_to = assignee_id
        if not is_status(pick_list.status, PickListStatus.IN_PROGRESS):
            transition(pick_list, PickListStatus, PickListStatus.ASSIGNED, entity="Pick list")

        await self._event(pick_list, PickEventType.PICK_REASSIGNED, user_id, data={
            "from": str(previous_assignee) if previous_assignee else None,
            "to": str(assignee_id),
        })
        await self.notifications.notify(
            assignee_id,
            NotificationType.PICK_LIST_ASSIGNED,
            title="Pick list assigned",
            message=f"Pick list {pick_list.batch_number} has been assigned to you",
            link=f"/pick-lists/{pick_list.id}",
            data={"pick_list_id": str(pick_list.id)},
        )

    async def _start(self, pick_list: PickList, user_id: Optional[uuid.UUID]) -> None:
        transition(pick_list, PickListStatus, PickListStatus.IN_PROGRESS, entity="Pick list")
        if pick_list.assigned_to is None:
            pick_list.assigned_to = user_id
        if pick_list.started_at is None:
            pick_list.started_at = datetime.now(timezone.utc)
        await self._event(pick_list, PickEventType.PICK_STARTED, user_id)

    async def start_picking(self, pick_list_id: uuid.UUID, user_id: uuid.UUID) -> PickList:
        pick_list = await self.get_pick_list(pick_list_id)
        await self._start(pick_list, user_id)
        return pick_list

    async def pause_picking(
        self,
        pick_list_id: uuid.UUID,
        user_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> PickList:
        pick_list = await self.get_pick_list(pick_list_id)
        transition(pick_list, PickListStatus, PickListStatus.PAUSED, entity="Pick list")
        await self._event(pick_list, PickEventType.PICK_PAUSED, user_id, data={"reason": reason})
        return pick_list

    async def reassign(
        self,
        pick_list_id: uuid.UUID,
        assignee_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> PickList:
        pick_list = await self.get_pick_list(pick_list_id)
        if is_terminal(PickListStatus, pick_list.status):
            raise ConflictError(f"Pick list {pick_list.batch_number} is {pick_list.status}")
        await self.users.get_assignable(assignee_id)
        await self._assign(pick_list, assignee_id, user_id)
        return pick_list

    # ==================== PICKING OPERATIONS ====================

    async def _ensure_pickable(self, pick_list: PickList, item: PickListItem, user_id: uuid.UUID) -> None:
        if status_in(pick_list.status, PickListStatus.PENDING, PickListStatus.ASSIGNED):
            await self._start(pick_list, user_id)
        elif not is_status(pick_list.status, PickListStatus.IN_PROGRESS):
            raise ConflictError(f"Pick list {pick_list.batch_number} is {pick_list.status}")

        if not is_status(item.status, PickItemStatus.PENDING):
            raise ConflictError(f"Item already processed ({item.status})")

    async def pick_item(
        self,
        pick_list_id: uuid.UUID,
        item_id: uuid.UUID,
        quantity_picked: int,
        scanned_code: Optional[str],
        user_id: uuid.UUID,
        notes: Optional[str] = None,
    ) -> PickListItem:
        """
        Record a pick. The scanned code must identify the item's product
        (sku, upc or barcode) or its location barcode.

        Picking fewer units than required closes the item as SHORT_PICK: the
        remainder is released from the reservation and backordered.
        """
        pick_list = await self.get_pick_list(pick_list_id)
        item = await self.get_item(pick_list, item_id)

        variant = await self.db.get(ProductVariant, item.variant_id)
        location = await self.db.get(Location, item.location_id)
        code = (scanned_code or "").strip()
        location_barcode = location.barcode if location else None
        if not code or not (variant.matches_code(code) or code == location_barcode):
            raise ValidationError("Invalid scan - code does not match product or location")
        if quantity_picked is None or quantity_picked <= 0:
            raise ValidationError("quantityPicked must be greater than zero")
        if quantity_picked > item.quantity_to_pick:
            raise ValidationError(
                f"Cannot pick {quantity_picked}, only {item.quantity_to_pick} required"
            )

        await self._ensure_pickable(pick_list, item, user_id)

        reservation = None
        if item.reservation_id:
            reservation = await self.db.get(InventoryReservation, item.reservation_id)
        if reservation is not None:
            inventory = await self.inventory.get_locked(reservation.inventory_id)
        else:
            inventory = await self.inventory.find(item.variant_id, item.location_id)
            if inventory is None:
                raise ConflictError("No inventory record at the pick location")

        self.inventory.consume(
            inventory,
            quantity_picked,
            ReferenceType.PICK_LIST,
            pick_list.id,
            user_id,
            f"Picked for pick list {pick_list.batch_number}",
            {"item_id": str(item.id), "order_id": str(item.order_id)},
        )

        shortfall = item.quantity_to_pick - quantity_picked
        item.quantity_picked = quantity_picked
        item.picked_by = user_id
        item.picked_at = datetime.now(timezone.utc)
        if notes:
            item.notes = notes

        if reservation is not None:
            reservation.quantity_picked = (reservation.quantity_picked or 0) + quantity_picked

        if shortfall > 0:
            self._close_short(pick_list, item, inventory, reservation, shortfall, user_id)
            transition(item, PickItemStatus, PickItemStatus.SHORT_PICK, entity="Pick item")
            event_type = PickEventType.ITEM_SHORT_PICKED
        else:
            transition(item, PickItemStatus, PickItemStatus.COMPLETED, entity="Pick item")
            event_type = PickEventType.ITEM_PICKED
        if reservation is not None:
            transition(reservation, ReservationStatus, ReservationStatus.PICKED, entity="Reservation")

        await self._event(pick_list, event_type, user_id, item, {
            "quantity_picked": quantity_picked,
            "quantity_required": item.quantity_to_pick,
            "scanned_code": code,
        })
        await self.refresh_progress(pick_list, user_id)
        return item

    def _close_short(self, pick_list, item, inventory, reservation, shortfall, user_id) -> None:
        """Release the unpicked remainder and backorder it."""
        if reservation is not None:
            self.inventory.release(
                inventory,
                shortfall,
                ReferenceType.PICK_LIST,
                pick_list.id,
                user_id,
                f"Short pick on {pick_list.batch_number}",
            )
        self.db.add(BackOrder(
            order_id=item.order_id,
            order_item_id=item.order_item_id,
            variant_id=item.variant_id,
            quantity_backordered=shortfall,
            reason="SHORT_PICK",
            status=BackOrderStatus.OPEN.value,
        ))

    async def skip_item(
        self,
        pick_list_id: uuid.UUID,
        item_id: uuid.UUID,
        user_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> PickListItem:
        pick_list = await self.get_pick_list(pick_list_id)
        item = await self.get_item(pick_list, item_id)
        await self._ensure_pickable(pick_list, item, user_id)

        reservation = None
        if item.reservation_id:
            reservation = await self.db.get(InventoryReservation, item.reservation_id)
        if reservation is not None:
            inventory = await self.inventory.get_locked(reservation.inventory_id)
            self._close_short(pick_list, item, inventory, reservation, item.quantity_to_pick, user_id)
            transition(reservation, ReservationStatus, ReservationStatus.RELEASED, entity="Reservation")
            reservation.released_at = datetime.now(timezone.utc)

        transition(item, PickItemStatus, PickItemStatus.SKIPPED, entity="Pick item")
        item.notes = reason
        await self._event(pick_list, PickEventType.ITEM_SKIPPED, user_id, item, {"reason": reason})
        await self.refresh_progress(pick_list, user_id)
        return item

    async def skip_items_for_order(
        self,
        order_id: uuid.UUID,
        user_id: Optional[uuid.UUID],
        reason: Optional[str] = None,
    ) -> int:
        """
        Close the open items of a cancelled order. Its reservations were
        already released by the cancellation, so no stock moves here.
        """
        items = (await self.db.execute(
            select(PickListItem).where(
                PickListItem.order_id == order_id,
                PickListItem.status == PickItemStatus.PENDING.value,
            )
        )).scalars().all()

        pick_lists = {}
        for item in items:
            pick_list = pick_lists.get(item.pick_list_id) or await self.get_pick_list(item.pick_list_id)
            pick_lists[pick_list.id] = pick_list
            transition(item, PickItemStatus, PickItemStatus.SKIPPED, entity="Pick item")
            item.notes = reason
            await self._event(pick_list, PickEventType.ITEM_SKIPPED, user_id, item, {
                "reason": reason,
                "order_cancelled": True,
            })

        for pick_list in pick_lists.values():
            progress = await self.refresh_progress(pick_list, user_id)
            if not progress.is_complete or is_terminal(PickListStatus, pick_list.status):
                continue
            if progress.picked_items == 0:
                transition(pick_list, PickListStatus, PickListStatus.CANCELLED, entity="Pick list")
            else:
                transition(pick_list, PickListStatus, PickListStatus.IN_PROGRESS, entity="Pick list")
                await self.refresh_progress(pick_list, user_id)
        return len(items)

    # ==================== PROGRESS ====================

    async def refresh_progress(self, pick_list: PickList, user_id: Optional[uuid.UUID] = None) -> PickProgress:
        """
        Recompute counters from the items, complete the list when every item
        is terminal and move fully picked orders to PICKED.
        """
        await self.db.flush()
        items = (await self.db.execute(
            select(PickListItem).where(PickListItem.pick_list_id == pick_list.id)
        )).scalars().all()
        progress = compute_pick_progress(items)
        pick_list.total_items = progress.total_items
        pick_list.picked_items = progress.picked_items

        if progress.is_complete and is_status(pick_list.status, PickListStatus.IN_PROGRESS):
            transition(pick_list, PickListStatus, PickListStatus.COMPLETED, entity="Pick list")
            pick_list.completed_at = datetime.now(timezone.utc)
            await self._event(pick_list, PickEventType.PICK_COMPLETED, user_id, data={
                "picked_items": progress.picked_items,
                "total_items": progress.total_items,
            })
            logger.info(f"Pick list {pick_list.batch_number} completed")

        for order_id in {item.order_id for item in items}:
            await self._complete_order_if_picked(order_id, user_id)
        return progress

    async def _complete_order_if_picked(self, order_id: uuid.UUID, user_id: Optional[uuid.UUID]) -> None:
        order_items = (await self.db.execute(
            select(PickListItem).where(PickListItem.order_id == order_id)
        )).scalars().all()
        if any(not is_terminal(PickItemStatus, item.status) for item in order_items):
            return

        order = await self.db.get(Order, order_id)
        if order is not None and is_status(order.status, OrderStatus.PICKING):
            await self.order_status.change_status(order, OrderStatus.PICKED, user_id, "All items picked")
