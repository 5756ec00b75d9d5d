# Services module
from stockroom.services.audit_service import AuditService
from stockroom.services.inventory_service import InventoryService
from stockroom.services.order_status_service import OrderStatusService
from stockroom.services.notification_service import NotificationService
from stockroom.services.push_service import PushService
from stockroom.services.user_service import UserService

# Workflows
from stockroom.services.allocation_service import AllocationService, AllocationMode
from stockroom.services.cycle_count_service import CycleCountService
from stockroom.services.picklist_service import PicklistService
from stockroom.services.work_task_service import WorkTaskService
from stockroom.services.returns_service import ReturnsService
from stockroom.services.transfer_service import TransferService
from stockroom.services.receiving_service import ReceivingService
from stockroom.services.order_service import OrderService, OrderAction

# Integrations
from stockroom.services.fulfillment_platform_service import (
    FulfillmentPlatformService,
    FulfillmentSyncService,
)

__all__ = [
    "AuditService",
    "InventoryService",
    "OrderStatusService",
    "NotificationService",
    "PushService",
    "UserService",
    # Workflows
    "AllocationService",
    "AllocationMode",
    "CycleCountService",
    "PicklistService",
    "WorkTaskService",
    "ReturnsService",
    "TransferService",
    "ReceivingService",
    "OrderService",
    "OrderAction",
    # Integrations
    "FulfillmentPlatformService",
    "FulfillmentSyncService",
]
