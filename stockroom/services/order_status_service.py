"""Order status changes with history and audit rows."""
from datetime import datetime, timezone
from typing import Optional
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.core.enum_utils import get_enum_value
from stockroom.core.state_machine import transition
from stockroom.models.order import Order, OrderStatus, OrderStatusHistory
from stockroom.services.audit_service import AuditService


# Timestamp column stamped when an order enters a status
_STATUS_TIMESTAMPS = {
    OrderStatus.ALLOCATED.value: "allocated_at",
    OrderStatus.SHIPPED.value: "shipped_at",
    OrderStatus.DELIVERED.value: "delivered_at",
    OrderStatus.CANCELLED.value: "cancelled_at",
}


class OrderStatusService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    async def change_status(
        self,
        order: Order,
        new_status: OrderStatus,
        user_id: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
    ) -> OrderStatusHistory:
        previous = transition(order, OrderStatus, new_status, entity=f"Order {order.order_number}")

        column = _STATUS_TIMESTAMPS.get(get_enum_value(new_status))
        if column:
            setattr(order, column, datetime.now(timezone.utc))

        history = OrderStatusHistory(
            order_id=order.id,
            previous_status=previous,
            new_status=order.status,
            changed_by=user_id,
            notes=notes,
        )
        (await order.awaitable_attrs.status_history).append(history)

        await self.audit.log_status_change(
            entity_type="ORDER",
            entity_id=order.id,
            old_status=previous,
            new_status=order.status,
            user_id=user_id,
            description=notes,
        )
        return history
