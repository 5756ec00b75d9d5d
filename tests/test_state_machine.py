from types import SimpleNamespace

import pytest

from stockroom.core.exceptions import ConflictError
from stockroom.core.state_machine import (
    can_transition,
    get_allowed_transitions,
    is_terminal,
    transition,
    validate_transition,
)
from stockroom.models.cycle_count import CountTaskStatus
from stockroom.models.order import OrderStatus
from stockroom.models.picklist import PickItemStatus
from stockroom.models.returns import ReturnStatus


class TestOrderTransitions:

    @pytest.mark.parametrize("current,new", [
        (OrderStatus.PENDING, OrderStatus.ALLOCATED),
        (OrderStatus.ALLOCATED, OrderStatus.PICKING),
        (OrderStatus.PICKING, OrderStatus.PICKED),
        (OrderStatus.PICKED, OrderStatus.PACKED),
        (OrderStatus.PACKED, OrderStatus.SHIPPED),
        (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
        (OrderStatus.DELIVERED, OrderStatus.RETURNED),
        (OrderStatus.PICKING, OrderStatus.CANCELLED),
    ])
    def test_allowed(self, current, new):
        assert can_transition(OrderStatus, current, new)

    @pytest.mark.parametrize("current,new", [
        (OrderStatus.PENDING, OrderStatus.SHIPPED),
        (OrderStatus.PACKED, OrderStatus.CANCELLED),
        (OrderStatus.DELIVERED, OrderStatus.PENDING),
    ])
    def test_rejected(self, current, new):
        assert not can_transition(OrderStatus, current, new)

    def test_accepts_plain_strings(self):
        assert can_transition(OrderStatus, "PENDING", "ALLOCATED")

    def test_terminal_statuses(self):
        assert is_terminal(OrderStatus, OrderStatus.CANCELLED)
        assert is_terminal(OrderStatus, OrderStatus.RETURNED)
        assert not is_terminal(OrderStatus, OrderStatus.SHIPPED)

    def test_allowed_list(self):
        assert get_allowed_transitions(OrderStatus, "SHIPPED") == ["DELIVERED", "RETURNED"]


def test_validate_transition_message_lists_allowed():
    with pytest.raises(ConflictError) as exc:
        validate_transition(OrderStatus, "PENDING", "SHIPPED", entity="Order")
    assert exc.value.message == (
        "Cannot change Order status from PENDING to SHIPPED. Allowed: ALLOCATED, CANCELLED"
    )


def test_validate_transition_from_terminal_status():
    with pytest.raises(ConflictError) as exc:
        validate_transition(ReturnStatus, "REFUNDED", "APPROVED", entity="Return")
    assert exc.value.message == "Return is REFUNDED and can no longer change status"


def test_transition_applies_status_and_returns_previous():
    task = SimpleNamespace(status="PENDING")
    previous = transition(task, CountTaskStatus, CountTaskStatus.VARIANCE_REVIEW)
    assert previous == "PENDING"
    assert task.status == "VARIANCE_REVIEW"


def test_failed_transition_leaves_status():
    item = SimpleNamespace(status="COMPLETED")
    with pytest.raises(ConflictError):
        transition(item, PickItemStatus, PickItemStatus.SHORT_PICK)
    assert item.status == "COMPLETED"


def test_unknown_enum_raises_value_error():
    from enum import Enum

    class Colour(str, Enum):
        RED = "RED"

    with pytest.raises(ValueError):
        can_transition(Colour, "RED", "RED")
