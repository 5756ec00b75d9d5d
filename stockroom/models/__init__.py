# Models module - importing registers every table on Base.metadata
from stockroom.models.user import User, UserRole
from stockroom.models.product import Product, ProductVariant
from stockroom.models.location import Location, LocationType
from stockroom.models.inventory import (
    Inventory,
    InventoryTransaction,
    InventoryReservation,
    BackOrder,
    InventoryTransfer,
)
from stockroom.models.order import Order, OrderItem, OrderStatusHistory
from stockroom.models.cycle_count import CycleCountCampaign, CycleCountTask, CycleCountEvent
from stockroom.models.picklist import PickList, PickListItem, PickEvent
from stockroom.models.work_task import WorkTask, TaskItem, TaskEvent
from stockroom.models.returns import ReturnOrder, ReturnItem, ReturnInspection, ReturnEvent
from stockroom.models.receiving import ReceivingSession, ReceivingLineItem
from stockroom.models.notification import Notification
from stockroom.models.fulfillment_sync import FulfillmentSync
from stockroom.models.audit_log import AuditLog

__all__ = [
    "User",
    "UserRole",
    "Product",
    "ProductVariant",
    "Location",
    "LocationType",
    "Inventory",
    "InventoryTransaction",
    "InventoryReservation",
    "BackOrder",
    "InventoryTransfer",
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "CycleCountCampaign",
    "CycleCountTask",
    "CycleCountEvent",
    "PickList",
    "PickListItem",
    "PickEvent",
    "WorkTask",
    "TaskItem",
    "TaskEvent",
    "ReturnOrder",
    "ReturnItem",
    "ReturnInspection",
    "ReturnEvent",
    "ReceivingSession",
    "ReceivingLineItem",
    "Notification",
    "FulfillmentSync",
    "AuditLog",
]
