"""
Status Transition Tables

This module is the SINGLE SOURCE OF TRUTH for status transitions of every
workflow entity. Services never assign a status string directly; they call
``transition()`` which validates the move against the entity's table.

Format: current_status -> [list of allowed next statuses]
A status mapped to an empty list is terminal.
"""

from enum import Enum
from typing import Dict, List, Type

from stockroom.core.enum_utils import get_enum_value
from stockroom.core.exceptions import ConflictError
from stockroom.models.order import OrderStatus
from stockroom.models.cycle_count import CampaignStatus, CountTaskStatus
from stockroom.models.picklist import PickListStatus, PickItemStatus
from stockroom.models.work_task import WorkTaskStatus, TaskItemStatus
from stockroom.models.returns import ReturnStatus
from stockroom.models.inventory import TransferStatus, ReservationStatus, BackOrderStatus
from stockroom.models.receiving import ReceivingStatus


# =============================================================================
# TRANSITION RULES
# =============================================================================

ORDER_TRANSITIONS: Dict[str, List[str]] = {
    OrderStatus.PENDING: [OrderStatus.ALLOCATED, OrderStatus.CANCELLED],
    OrderStatus.ALLOCATED: [OrderStatus.PICKING, OrderStatus.CANCELLED],
    OrderStatus.PICKING: [OrderStatus.PICKED, OrderStatus.CANCELLED],
    OrderStatus.PICKED: [OrderStatus.PACKED],
    OrderStatus.PACKED: [OrderStatus.SHIPPED],
    OrderStatus.SHIPPED: [OrderStatus.DELIVERED, OrderStatus.RETURNED],
    OrderStatus.DELIVERED: [OrderStatus.RETURNED],
    OrderStatus.CANCELLED: [],
    OrderStatus.RETURNED: [],
}

COUNT_TASK_TRANSITIONS: Dict[str, List[str]] = {
    CountTaskStatus.PENDING: [
        CountTaskStatus.IN_PROGRESS,
        CountTaskStatus.COMPLETED,
        CountTaskStatus.VARIANCE_REVIEW,
        CountTaskStatus.RECOUNT_REQUIRED,
        CountTaskStatus.SKIPPED,
        CountTaskStatus.CANCELLED,
    ],
    CountTaskStatus.IN_PROGRESS: [
        CountTaskStatus.COMPLETED,
        CountTaskStatus.VARIANCE_REVIEW,
        CountTaskStatus.RECOUNT_REQUIRED,
        CountTaskStatus.SKIPPED,
        CountTaskStatus.CANCELLED,
    ],
    CountTaskStatus.VARIANCE_REVIEW: [
        CountTaskStatus.COMPLETED,          # Supervisor approval
        CountTaskStatus.RECOUNT_REQUIRED,
    ],
    CountTaskStatus.RECOUNT_REQUIRED: [
        CountTaskStatus.IN_PROGRESS,
        CountTaskStatus.COMPLETED,
        CountTaskStatus.VARIANCE_REVIEW,
        CountTaskStatus.RECOUNT_REQUIRED,   # Reassign again
        CountTaskStatus.SKIPPED,
        CountTaskStatus.CANCELLED,
    ],
    CountTaskStatus.COMPLETED: [],
    CountTaskStatus.SKIPPED: [],
    CountTaskStatus.CANCELLED: [],
}

CAMPAIGN_TRANSITIONS: Dict[str, List[str]] = {
    CampaignStatus.PLANNED: [CampaignStatus.ACTIVE, CampaignStatus.CANCELLED],
    CampaignStatus.ACTIVE: [CampaignStatus.COMPLETED, CampaignStatus.CANCELLED],
    CampaignStatus.COMPLETED: [],
    CampaignStatus.CANCELLED: [],
}

PICK_LIST_TRANSITIONS: Dict[str, List[str]] = {
    PickListStatus.PENDING: [PickListStatus.ASSIGNED, PickListStatus.IN_PROGRESS, PickListStatus.CANCELLED],
    PickListStatus.ASSIGNED: [PickListStatus.ASSIGNED, PickListStatus.IN_PROGRESS, PickListStatus.CANCELLED],
    PickListStatus.IN_PROGRESS: [PickListStatus.PAUSED, PickListStatus.COMPLETED, PickListStatus.CANCELLED],
    PickListStatus.PAUSED: [PickListStatus.IN_PROGRESS, PickListStatus.ASSIGNED, PickListStatus.CANCELLED],
    PickListStatus.COMPLETED: [],
    PickListStatus.CANCELLED: [],
}

PICK_ITEM_TRANSITIONS: Dict[str, List[str]] = {
    PickItemStatus.PENDING: [PickItemStatus.COMPLETED, PickItemStatus.SHORT_PICK, PickItemStatus.SKIPPED],
    PickItemStatus.COMPLETED: [],
    PickItemStatus.SHORT_PICK: [],
    PickItemStatus.SKIPPED: [],
}

WORK_TASK_TRANSITIONS: Dict[str, List[str]] = {
    WorkTaskStatus.PENDING: [WorkTaskStatus.ASSIGNED, WorkTaskStatus.IN_PROGRESS, WorkTaskStatus.CANCELLED],
    WorkTaskStatus.ASSIGNED: [WorkTaskStatus.ASSIGNED, WorkTaskStatus.IN_PROGRESS, WorkTaskStatus.CANCELLED],
    WorkTaskStatus.IN_PROGRESS: [WorkTaskStatus.COMPLETED, WorkTaskStatus.CANCELLED],
    WorkTaskStatus.COMPLETED: [],
    WorkTaskStatus.CANCELLED: [],
}

TASK_ITEM_TRANSITIONS: Dict[str, List[str]] = {
    TaskItemStatus.PENDING: [TaskItemStatus.COMPLETED, TaskItemStatus.SKIPPED],
    TaskItemStatus.COMPLETED: [],
    TaskItemStatus.SKIPPED: [],
}

RETURN_TRANSITIONS: Dict[str, List[str]] = {
    ReturnStatus.PENDING: [ReturnStatus.APPROVED, ReturnStatus.REJECTED, ReturnStatus.CANCELLED],
    ReturnStatus.APPROVED: [ReturnStatus.IN_TRANSIT, ReturnStatus.RECEIVED, ReturnStatus.CANCELLED],
    ReturnStatus.IN_TRANSIT: [ReturnStatus.RECEIVED],
    ReturnStatus.RECEIVED: [ReturnStatus.INSPECTION_COMPLETE],
    ReturnStatus.INSPECTION_COMPLETE: [ReturnStatus.REFUNDED],
    ReturnStatus.REJECTED: [],
    ReturnStatus.REFUNDED: [],
    ReturnStatus.CANCELLED: [],
}

TRANSFER_TRANSITIONS: Dict[str, List[str]] = {
    TransferStatus.PENDING: [TransferStatus.APPROVED, TransferStatus.REJECTED],
    TransferStatus.APPROVED: [],
    TransferStatus.REJECTED: [],
}

RESERVATION_TRANSITIONS: Dict[str, List[str]] = {
    ReservationStatus.ACTIVE: [ReservationStatus.PICKED, ReservationStatus.RELEASED],
    ReservationStatus.PICKED: [],
    ReservationStatus.RELEASED: [],
}

BACK_ORDER_TRANSITIONS: Dict[str, List[str]] = {
    BackOrderStatus.OPEN: [BackOrderStatus.FULFILLED, BackOrderStatus.CANCELLED],
    BackOrderStatus.FULFILLED: [],
    BackOrderStatus.CANCELLED: [],
}

RECEIVING_TRANSITIONS: Dict[str, List[str]] = {
    ReceivingStatus.PENDING: [ReceivingStatus.SUBMITTED],
    ReceivingStatus.SUBMITTED: [ReceivingStatus.APPROVED, ReceivingStatus.REJECTED],
    ReceivingStatus.APPROVED: [],
    ReceivingStatus.REJECTED: [],
}


_TABLES: Dict[Type[Enum], Dict[str, List[str]]] = {
    OrderStatus: ORDER_TRANSITIONS,
    CountTaskStatus: COUNT_TASK_TRANSITIONS,
    CampaignStatus: CAMPAIGN_TRANSITIONS,
    PickListStatus: PICK_LIST_TRANSITIONS,
    PickItemStatus: PICK_ITEM_TRANSITIONS,
    WorkTaskStatus: WORK_TASK_TRANSITIONS,
    TaskItemStatus: TASK_ITEM_TRANSITIONS,
    ReturnStatus: RETURN_TRANSITIONS,
    TransferStatus: TRANSFER_TRANSITIONS,
    ReservationStatus: RESERVATION_TRANSITIONS,
    BackOrderStatus: BACK_ORDER_TRANSITIONS,
    ReceivingStatus: RECEIVING_TRANSITIONS,
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def _normalize(table: Dict) -> Dict[str, List[str]]:
    return {
        get_enum_value(current): [get_enum_value(s) for s in allowed]
        for current, allowed in table.items()
    }


_NORMALIZED = {status_enum: _normalize(table) for status_enum, table in _TABLES.items()}


def _table_for(status_enum: Type[Enum]) -> Dict[str, List[str]]:
    try:
        return _NORMALIZED[status_enum]
    except KeyError:
        raise ValueError(f"No transition table for {status_enum.__name__}")


def can_transition(status_enum: Type[Enum], current_status, new_status) -> bool:
    """Check if a transition is allowed."""
    allowed = _table_for(status_enum).get(get_enum_value(current_status), [])
    return get_enum_value(new_status) in allowed


def get_allowed_transitions(status_enum: Type[Enum], current_status) -> List[str]:
    return [get_enum_value(s) for s in _table_for(status_enum).get(get_enum_value(current_status), [])]


def is_terminal(status_enum: Type[Enum], status) -> bool:
    """Check if status is a terminal state (no further transitions)."""
    return len(_table_for(status_enum).get(get_enum_value(status), [])) == 0


def validate_transition(
    status_enum: Type[Enum],
    current_status,
    new_status,
    entity: str = "Entity",
) -> None:
    """
    Validate a transition, raising ConflictError when it is not allowed.

    Raises:
        ConflictError: If transition is not allowed
    """
    if can_transition(status_enum, current_status, new_status):
        return

    current = get_enum_value(current_status)
    allowed = get_allowed_transitions(status_enum, current)
    if allowed:
        raise ConflictError(
            f"Cannot change {entity} status from {current} to {get_enum_value(new_status)}. "
            f"Allowed: {', '.join(allowed)}"
        )
    raise ConflictError(f"{entity} is {current} and can no longer change status")


def transition(obj, status_enum: Type[Enum], new_status, entity: str = "Entity") -> str:
    """
    Validate and apply a status change on an ORM object.

    Returns the previous status.
    """
    previous = obj.status
    validate_transition(status_enum, previous, new_status, entity)
    obj.status = get_enum_value(new_status)
    return previous
