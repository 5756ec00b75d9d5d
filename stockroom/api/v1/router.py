from fastapi import APIRouter

from stockroom.config import settings
from stockroom.api.v1.endpoints import (
    # Orders
    orders,
    backorders,
    # Inventory
    cycle_counts,
    transfers,
    receiving,
    # Fulfillment
    picklists,
    work_tasks,
    returns,
    # Users
    users,
    notifications,
)


# Create main API router
api_router = APIRouter(prefix=settings.API_PREFIX)

# ==================== Orders ====================
api_router.include_router(
    orders.router,
    prefix="/orders",
    tags=["Orders"]
)

api_router.include_router(
    backorders.router,
    prefix="/backorders",
    tags=["Back Orders"]
)

# ==================== Inventory ====================
api_router.include_router(
    cycle_counts.router,
    prefix="/inventory/cycle-counts",
    tags=["Cycle Counts"]
)

api_router.include_router(
    transfers.router,
    prefix="/inventory/transfers",
    tags=["Transfers"]
)

api_router.include_router(
    receiving.router,
    prefix="/inventory/receiving",
    tags=["Receiving"]
)

# ==================== Fulfillment ====================
api_router.include_router(
    picklists.router,
    prefix="/pick-lists",
    tags=["Pick Lists"]
)

api_router.include_router(
    work_tasks.router,
    tags=["Packing Tasks"]
)

api_router.include_router(
    returns.router,
    prefix="/returns",
    tags=["Returns"]
)

# ==================== Users ====================
api_router.include_router(
    users.router,
    prefix="/users",
    tags=["Users"]
)

api_router.include_router(
    notifications.router,
    prefix="/notifications",
    tags=["Notifications"]
)
