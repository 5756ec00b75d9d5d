"""Back order API endpoints."""
from fastapi import APIRouter

from stockroom.api.deps import DB, CurrentUser
from stockroom.services.order_service import OrderService


router = APIRouter()


@router.get("/grouped")
async def get_grouped_backorders(
    db: DB,
    current_user: CurrentUser,
):
    """Open back orders grouped by order, with current availability per SKU."""
    groups = await OrderService(db).grouped_backorders()
    return {
        "orders": groups,
        "total_orders": len(groups),
        "total_units": sum(g["total_backordered"] for g in groups),
    }
