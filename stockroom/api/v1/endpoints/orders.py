"""Order API endpoints: workflow actions, lookup and cancellation."""
import uuid

from fastapi import APIRouter

from stockroom.api.deps import DB, CurrentUser, Notifications
from stockroom.database import unit_of_work
from stockroom.schemas.order import OrderActionRequest, OrderCancelRequest, OrderDetailResponse
from stockroom.services.order_service import OrderService


router = APIRouter()


@router.post("/actions")
async def execute_order_action(
    data: OrderActionRequest,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
):
    """
    Run a workflow action against one order (orderId) or many (orderIds).

    Bulk actions commit each order independently and report
    successful/failed counts instead of failing the whole batch.
    """
    result = await OrderService(db, notifications).execute_action(
        data.action,
        current_user.id,
        order_id=data.order_id,
        order_ids=data.order_ids,
    )
    return {"success": True, **result}


@router.get("/{order_id}", response_model=OrderDetailResponse)
async def get_order(
    order_id: uuid.UUID,
    db: DB,
    current_user: CurrentUser,
):
    order = await OrderService(db).get_order(order_id)
    return OrderDetailResponse.model_validate(order)


@router.post("/{order_id}/cancel", response_model=OrderDetailResponse)
async def cancel_order(
    order_id: uuid.UUID,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
    data: OrderCancelRequest = OrderCancelRequest(),
):
    """Cancel an order and release its reserved stock."""
    async with unit_of_work(db, notifications):
        order = await OrderService(db, notifications).cancel_order(order_id, current_user.id, data.reason)
    return OrderDetailResponse.model_validate(order)
