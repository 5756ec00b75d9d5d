"""
Returns Management Service.

RMA lifecycle:
    PENDING -> APPROVED / REJECTED -> IN_TRANSIT -> RECEIVED
        -> INSPECTION_COMPLETE -> REFUNDED

Refund:
    refund_amount = sum(unit_price * (restockable + disposed)) - restocking_fee

The restocking fee is a policy percentage of that subtotal, waived when the
merchant is at fault (defective, wrong item, damaged in shipping). It is
fixed when the last item is inspected.
"""
import logging
from datetime import datetime, timezone, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, List, Dict, Any, Iterable
import uuid

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.config import settings
from stockroom.core.enum_utils import get_enum_value, is_status, status_in
from stockroom.core.exceptions import ConflictError, NotFoundError, ValidationError
from stockroom.core.state_machine import transition
from stockroom.models.inventory import TransactionType, ReferenceType
from stockroom.models.location import Location
from stockroom.models.notification import NotificationType
from stockroom.models.order import Order, OrderStatus
from stockroom.models.product import ProductVariant
from stockroom.models.returns import (
    ReturnOrder, ReturnItem, ReturnInspection, ReturnEvent,
    ReturnStatus, RefundStatus, ReturnReason, ReturnCondition, ReturnDisposition,
    ReturnItemStatus, ReturnEventType, FEE_EXEMPT_REASONS,
)
from stockroom.services.audit_service import AuditService
from stockroom.services.inventory_service import InventoryService
from stockroom.services.notification_service import NotificationService


logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
RETURNABLE_ORDER_STATUSES = (OrderStatus.SHIPPED, OrderStatus.DELIVERED)
OPEN_RETURN_EXCLUDED = (ReturnStatus.REJECTED.value, ReturnStatus.CANCELLED.value)


# ==================== REFUND CALCULATION ====================

def refundable_subtotal(items: Iterable[ReturnItem]) -> Decimal:
    total = Decimal("0")
    for item in items:
        quantity = (item.quantity_restockable or 0) + (item.quantity_disposed or 0)
        total += Decimal(str(item.unit_price or 0)) * quantity
    return total.quantize(CENTS, rounding=ROUND_HALF_UP)


def calculate_restocking_fee(subtotal: Decimal, reason: str, fee_percent: Optional[float] = None) -> Decimal:
    if reason in {r.value for r in FEE_EXEMPT_REASONS}:
        return Decimal("0.00")
    if fee_percent is None:
        fee_percent = settings.RESTOCKING_FEE_PERCENT
    fee = Decimal(str(subtotal)) * Decimal(str(fee_percent)) / Decimal("100")
    return fee.quantize(CENTS, rounding=ROUND_HALF_UP)


def calculate_refund_amount(items: Iterable[ReturnItem], restocking_fee: Decimal) -> Decimal:
    """Subtotal of received units less the restocking fee, never negative."""
    amount = refundable_subtotal(items) - Decimal(str(restocking_fee or 0))
    return max(amount, Decimal("0.00")).quantize(CENTS)


def generate_rma_number(year: int, sequence: int) -> str:
    return f"RMA-{year}-{sequence:04d}"


class ReturnsService:

    def __init__(self, db: AsyncSession, notifications: Optional[NotificationService] = None):
        self.db = db
        self.inventory = InventoryService(db)
        self.audit = AuditService(db)
        self.notifications = notifications or NotificationService(db)

    # ==================== LOOKUPS ====================

    async def get_by_rma(self, rma_number: str) -> ReturnOrder:
        stmt = select(ReturnOrder).where(ReturnOrder.rma_number == rma_number)
        return_order = (await self.db.execute(stmt)).scalar_one_or_none()
        if return_order is None:
            raise NotFoundError("Return not found")
        return return_order

    async def next_rma_number(self) -> str:
        year = datetime.now(timezone.utc).year
        stmt = select(func.count(ReturnOrder.id)).where(
            ReturnOrder.rma_number.like(f"RMA-{year}-%")
        )
        count = (await self.db.execute(stmt)).scalar() or 0
        return generate_rma_number(year, count + 1)

    async def _event(
        self,
        return_order: ReturnOrder,
        event_type: ReturnEventType,
        user_id: Optional[uuid.UUID],
        data: Optional[dict] = None,
    ) -> None:
        (await return_order.awaitable_attrs.events).append(ReturnEvent(
            event_type=event_type.value,
            user_id=user_id,
            data=data or {},
        ))

    async def _returned_quantities(self, order_id: uuid.UUID) -> Dict[uuid.UUID, int]:
        """Units of each order line already on an open or completed RMA."""
        stmt = (
            select(ReturnItem.order_item_id, func.sum(ReturnItem.quantity_requested))
            .join(ReturnOrder, ReturnItem.return_order_id == ReturnOrder.id)
            .where(
                ReturnOrder.order_id == order_id,
                ReturnOrder.status.notin_(OPEN_RETURN_EXCLUDED),
            )
            .group_by(ReturnItem.order_item_id)
        )
        return {row[0]: int(row[1] or 0) for row in (await self.db.execute(stmt)).all()}

    # ==================== CREATE ====================

    @staticmethod
    def check_eligibility(order: Order, now: Optional[datetime] = None) -> None:
        if not status_in(order.status, *RETURNABLE_ORDER_STATUSES):
            raise ConflictError(f'Order status "{order.status}" is not eligible for returns')
        if order.shipped_at is None:
            raise ConflictError("Order has not been shipped yet")

        now = now or datetime.now(timezone.utc)
        shipped_at = order.shipped_at
        if shipped_at.tzinfo is None:
            shipped_at = shipped_at.replace(tzinfo=timezone.utc)
        if now - shipped_at > timedelta(days=settings.RETURN_WINDOW_DAYS):
            raise ConflictError(
                f"Return window expired ({settings.RETURN_WINDOW_DAYS} days from shipment)"
            )

    async def create_return(
        self,
        order_id: uuid.UUID,
        items: List[Dict[str, Any]],
        reason: ReturnReason,
        reason_details: Optional[str] = None,
        customer_email: Optional[str] = None,
        user_id: Optional[uuid.UUID] = None,
    ) -> ReturnOrder:
        """
        Open an RMA for some lines of a shipped order.

        items: [{"order_item_id": UUID, "quantity": int}, ...]
        """
        order = await self.db.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        self.check_eligibility(order)
        if not items:
            raise ValidationError("At least one item is required")

        order_items = {item.id: item for item in await order.awaitable_attrs.items}
        already_returned = await self._returned_quantities(order.id)

        return_order = ReturnOrder(
            rma_number=await self.next_rma_number(),
            order_id=order.id,
            customer_email=customer_email or order.customer_email,
            reason=get_enum_value(reason),
            reason_details=reason_details,
            refund_status=RefundStatus.PENDING.value,
            restocking_fee=Decimal("0"),
        )

        total_amount = Decimal("0")
        total_quantity = 0
        for requested in items:
            order_item = order_items.get(requested["order_item_id"])
            if order_item is None:
                raise ValidationError(f"Order item {requested['order_item_id']} is not on this order")
            quantity = int(requested["quantity"])
            available = order_item.quantity - already_returned.get(order_item.id, 0)
            if quantity <= 0 or quantity > available:
                raise ValidationError(
                    f"Cannot return {quantity} of order item {order_item.id}. Only {available} available."
                )

            return_order.items.append(ReturnItem(
                order_item_id=order_item.id,
                variant_id=order_item.variant_id,
                unit_price=order_item.unit_price,
                quantity_requested=quantity,
                status=ReturnItemStatus.PENDING.value,
            ))
            total_amount += Decimal(str(order_item.unit_price or 0)) * quantity
            total_quantity += quantity

        return_order.approval_required = (
            total_amount >= Decimal(str(settings.RETURN_AUTO_APPROVE_THRESHOLD))
            or total_quantity > settings.RETURN_MAX_AUTO_APPROVE_QUANTITY
        )
        if return_order.approval_required:
            return_order.status = ReturnStatus.PENDING.value
        else:
            return_order.status = ReturnStatus.APPROVED.value
            return_order.approved_at = datetime.now(timezone.utc)

        self.db.add(return_order)
        await self.db.flush()
        await self._event(return_order, ReturnEventType.RMA_CREATED, user_id, {
            "total_amount": total_amount,
            "total_quantity": total_quantity,
            "approval_required": return_order.approval_required,
        })
        await self.audit.log(
            action="CREATE",
            entity_type="RETURN",
            entity_id=return_order.id,
            user_id=user_id,
            new_values={"rma_number": return_order.rma_number, "status": return_order.status},
        )
        logger.info(f"Created return {return_order.rma_number} for order {order.order_number}")
        return return_order

    # ==================== APPROVAL ====================

    async def approve(self, rma_number: str, user_id: uuid.UUID, notes: Optional[str] = None) -> ReturnOrder:
        return_order = await self.get_by_rma(rma_number)
        if not is_status(return_order.status, ReturnStatus.PENDING):
            raise ConflictError(f"Cannot approve return with status {return_order.status}")

        previous = transition(return_order, ReturnStatus, ReturnStatus.APPROVED, entity="Return")
        return_order.approved_by = user_id
        return_order.approved_at = datetime.now(timezone.utc)
        await self._event(return_order, ReturnEventType.APPROVED, user_id, {"notes": notes})
        await self.audit.log_status_change("RETURN", return_order.id, previous, return_order.status, user_id, notes)
        return return_order

    async def reject(self, rma_number: str, user_id: uuid.UUID, reason: Optional[str]) -> ReturnOrder:
        if not reason or not reason.strip():
            raise ValidationError("Rejection reason is required")

        return_order = await self.get_by_rma(rma_number)
        if not is_status(return_order.status, ReturnStatus.PENDING):
            raise ConflictError(f"Cannot reject return with status {return_order.status}")

        previous = transition(return_order, ReturnStatus, ReturnStatus.REJECTED, entity="Return")
        return_order.rejection_reason = reason
        await self._event(return_order, ReturnEventType.REJECTED, user_id, {"reason": reason})
        await self.audit.log_status_change("RETURN", return_order.id, previous, return_order.status, user_id, reason)
        return return_order

    # ==================== RECEIVING ====================

    async def receive(
        self,
        rma_number: str,
        user_id: uuid.UUID,
        tracking_number: Optional[str] = None,
    ) -> ReturnOrder:
        return_order = await self.get_by_rma(rma_number)
        if not status_in(return_order.status, ReturnStatus.APPROVED, ReturnStatus.IN_TRANSIT):
            raise ConflictError(f"Cannot receive return with status {return_order.status}")

        previous = transition(return_order, ReturnStatus, ReturnStatus.RECEIVED, entity="Return")
        return_order.received_at = datetime.now(timezone.utc)
        for item in await return_order.awaitable_attrs.items:
            if is_status(item.status, ReturnItemStatus.PENDING):
                item.status = ReturnItemStatus.RECEIVED.value

        await self._event(return_order, ReturnEventType.PACKAGE_RECEIVED, user_id, {
            "tracking_number": tracking_number,
        })
        await self.audit.log_status_change("RETURN", return_order.id, previous, return_order.status, user_id)

        if return_order.approved_by and return_order.approved_by != user_id:
            await self.notifications.notify(
                return_order.approved_by,
                NotificationType.RETURN_RECEIVED,
                title="Return received",
                message=f"Return {return_order.rma_number} arrived and is ready for inspection",
                link=f"/returns/{return_order.rma_number}",
                data={"rma_number": return_order.rma_number},
            )
        return return_order

    async def inspect_item(
        self,
        rma_number: str,
        item_id: uuid.UUID,
        quantity_received: int,
        condition: ReturnCondition,
        disposition: ReturnDisposition,
        user_id: uuid.UUID,
        restock_location_id: Optional[uuid.UUID] = None,
        condition_notes: Optional[str] = None,
        disposition_notes: Optional[str] = None,
    ) -> ReturnItem:
        return_order = await self.get_by_rma(rma_number)
        if not is_status(return_order.status, ReturnStatus.RECEIVED):
            raise ConflictError(f"Cannot inspect return with status {return_order.status}")

        items = await return_order.awaitable_attrs.items
        item = next((i for i in items if i.id == item_id), None)
        if item is None:
            raise NotFoundError("Return item not found")
        if status_in(item.status, ReturnItemStatus.INSPECTED, ReturnItemStatus.RESTOCKED):
            raise ConflictError("Item has already been inspected")
        if quantity_received < 0:
            raise ValidationError("Received quantity cannot be negative")
        if quantity_received > item.quantity_requested:
            raise ValidationError("Received quantity cannot exceed requested quantity")

        disposition = get_enum_value(disposition)
        if disposition == ReturnDisposition.RESTOCK.value and restock_location_id:
            if await self.db.get(Location, restock_location_id) is None:
                raise ValidationError("Restock location not found")

        item.quantity_received = quantity_received
        if disposition == ReturnDisposition.RESTOCK.value:
            item.quantity_restockable = quantity_received
            item.quantity_disposed = 0
        else:
            item.quantity_restockable = 0
            item.quantity_disposed = quantity_received
        item.status = ReturnItemStatus.INSPECTED.value

        (await item.awaitable_attrs.inspections).append(ReturnInspection(
            condition=get_enum_value(condition),
            condition_notes=condition_notes,
            disposition=disposition,
            disposition_notes=disposition_notes,
            restock_location_id=restock_location_id if disposition == ReturnDisposition.RESTOCK.value else None,
            inspected_by=user_id,
        ))

        variant = await self.db.get(ProductVariant, item.variant_id)
        await self._event(return_order, ReturnEventType.ITEM_INSPECTED, user_id, {
            "return_item_id": str(item.id),
            "sku": variant.sku if variant else None,
            "quantity_received": quantity_received,
            "condition": get_enum_value(condition),
            "disposition": disposition,
        })

        if all(is_status(i.status, ReturnItemStatus.INSPECTED) for i in items):
            transition(return_order, ReturnStatus, ReturnStatus.INSPECTION_COMPLETE, entity="Return")
            return_order.inspected_at = datetime.now(timezone.utc)
            return_order.restocking_fee = calculate_restocking_fee(
                refundable_subtotal(items), return_order.reason
            )
            await self._event(return_order, ReturnEventType.INSPECTION_COMPLETE, user_id, {
                "restocking_fee": return_order.restocking_fee,
            })
        return item

    # ==================== RESTOCKING ====================

    async def _restock_location(self) -> Location:
        location = await self.inventory.first_location_of_type(settings.RESTOCK_LOCATION_TYPE)
        if location is None:
            raise ConflictError(
                f"No {settings.RESTOCK_LOCATION_TYPE} location available for restocking"
            )
        return location

    async def _restock_item(
        self,
        return_order: ReturnOrder,
        item: ReturnItem,
        location_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> None:
        inventory = await self.inventory.get_or_create(item.variant_id, location_id)
        self.inventory.adjust_on_hand(
            inventory,
            item.quantity_restockable,
            TransactionType.RETURNS,
            ReferenceType.RETURN,
            return_order.id,
            user_id,
            f"Restocked from RMA {return_order.rma_number}",
            {"return_item_id": str(item.id)},
        )
        item.status = ReturnItemStatus.RESTOCKED.value

    async def restock(self, rma_number: str, user_id: uuid.UUID) -> Dict[str, Any]:
        """Put restockable units back at the location chosen during inspection."""
        return_order = await self.get_by_rma(rma_number)
        if not is_status(return_order.status, ReturnStatus.INSPECTION_COMPLETE):
            raise ConflictError("Cannot restock before inspection is complete")

        restocked = await self._restock_pending(return_order, user_id)
        return {"rma_number": return_order.rma_number, "restocked": restocked}

    async def _restock_pending(self, return_order: ReturnOrder, user_id: uuid.UUID) -> List[Dict[str, Any]]:
        """
        Restock every inspected item that still has restockable units. Items
        without an inspection location go to the first RESTOCK_LOCATION_TYPE
        location.
        """
        restocked = []
        fallback: Optional[Location] = None
        for item in await return_order.awaitable_attrs.items:
            if not is_status(item.status, ReturnItemStatus.INSPECTED) or not item.quantity_restockable:
                continue
            inspections = await item.awaitable_attrs.inspections
            location_id = next(
                (i.restock_location_id for i in reversed(inspections) if i.restock_location_id), None
            )
            if location_id is None:
                fallback = fallback or await self._restock_location()
                location_id = fallback.id

            await self._restock_item(return_order, item, location_id, user_id)
            restocked.append({
                "return_item_id": str(item.id),
                "quantity": item.quantity_restockable,
                "location_id": str(location_id),
            })

        if restocked:
            await self._event(return_order, ReturnEventType.ITEMS_RESTOCKED, user_id, {"items": restocked})
        return restocked

    # ==================== REFUND ====================

    async def calculate_refund(self, rma_number: str) -> Dict[str, Any]:
        """Refund preview; does not modify anything."""
        return_order = await self.get_by_rma(rma_number)
        items = await return_order.awaitable_attrs.items
        subtotal = refundable_subtotal(items)
        if is_status(return_order.status, ReturnStatus.PENDING) or not all(
            status_in(i.status, ReturnItemStatus.INSPECTED, ReturnItemStatus.RESTOCKED) for i in items
        ):
            restocking_fee = calculate_restocking_fee(subtotal, return_order.reason)
        else:
            restocking_fee = Decimal(str(return_order.restocking_fee or 0))

        return {
            "rma_number": return_order.rma_number,
            "items": [
                {
                    "return_item_id": str(item.id),
                    "unit_price": item.unit_price,
                    "quantity_restockable": item.quantity_restockable or 0,
                    "quantity_disposed": item.quantity_disposed or 0,
                    "amount": (
                        Decimal(str(item.unit_price or 0))
                        * ((item.quantity_restockable or 0) + (item.quantity_disposed or 0))
                    ).quantize(CENTS),
                }
                for item in items
            ],
            "subtotal": subtotal,
            "restocking_fee": restocking_fee,
            "refund_amount": calculate_refund_amount(items, restocking_fee),
        }

    async def process_refund(self, rma_number: str, user_id: uuid.UUID) -> ReturnOrder:
        """
        Complete the refund and put remaining restockable units back on the
        shelf.
        """
        return_order = await self.get_by_rma(rma_number)
        if is_status(return_order.refund_status, RefundStatus.COMPLETED):
            raise ConflictError("Refund already processed")
        if not is_status(return_order.status, ReturnStatus.INSPECTION_COMPLETE):
            raise ConflictError(
                f"Cannot refund return with status {return_order.status}; inspection must be complete"
            )

        items = await return_order.awaitable_attrs.items
        restocked = await self._restock_pending(return_order, user_id)

        refund_amount = calculate_refund_amount(items, return_order.restocking_fee)
        return_order.refund_amount = refund_amount
        return_order.refund_status = RefundStatus.COMPLETED.value
        previous = transition(return_order, ReturnStatus, ReturnStatus.REFUNDED, entity="Return")
        return_order.refunded_at = datetime.now(timezone.utc)

        await self._event(return_order, ReturnEventType.REFUND_COMPLETED, user_id, {
            "refund_amount": refund_amount,
            "restocking_fee": return_order.restocking_fee,
            "subtotal": refundable_subtotal(items),
            "restocked_items": len(restocked),
        })
        await self.audit.log(
            action="REFUND",
            entity_type="RETURN",
            entity_id=return_order.id,
            user_id=user_id,
            old_values={"status": previous},
            new_values={"status": return_order.status, "refund_amount": refund_amount},
        )
        logger.info(f"Refunded {refund_amount} for return {return_order.rma_number}")
        return return_order
