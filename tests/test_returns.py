from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import select

from stockroom.core.exceptions import ConflictError, ValidationError
from stockroom.database import unit_of_work
from stockroom.models.inventory import Inventory, InventoryTransaction, TransactionType
from stockroom.models.location import LocationType
from stockroom.models.order import OrderStatus
from stockroom.models.returns import (
    RefundStatus, ReturnCondition, ReturnDisposition, ReturnItemStatus, ReturnReason, ReturnStatus,
)
from stockroom.models.user import UserRole
from stockroom.services.returns_service import (
    ReturnsService,
    calculate_refund_amount,
    calculate_restocking_fee,
    generate_rma_number,
)


class TestRefundMath:

    def test_fee_for_change_of_mind(self):
        assert calculate_restocking_fee(Decimal("150.00"), "CHANGED_MIND", 10) == Decimal("15.00")

    @pytest.mark.parametrize("reason", ["DEFECTIVE", "WRONG_ITEM", "DAMAGED_SHIPPING"])
    def test_merchant_fault_waives_fee(self, reason):
        assert calculate_restocking_fee(Decimal("150.00"), reason, 10) == Decimal("0.00")

    def test_refund_is_subtotal_less_fee(self):
        items = [
            SimpleNamespace(unit_price=Decimal("50.00"), quantity_restockable=2, quantity_disposed=0),
            SimpleNamespace(unit_price=Decimal("50.00"), quantity_restockable=0, quantity_disposed=1),
        ]
        assert calculate_refund_amount(items, Decimal("15.00")) == Decimal("135.00")

    def test_refund_never_negative(self):
        items = [SimpleNamespace(unit_price=Decimal("5.00"), quantity_restockable=1, quantity_disposed=0)]
        assert calculate_refund_amount(items, Decimal("9.00")) == Decimal("0.00")

    def test_rma_number_format(self):
        assert generate_rma_number(2026, 7) == "RMA-2026-0007"


@pytest.fixture
async def shipped(seed):
    gadget = await seed.variant("GADGET", price="50.00")
    storage = await seed.location("S-01", LocationType.STORAGE)
    clerk = await seed.user(UserRole.STAFF)
    manager = await seed.user(UserRole.MANAGER)
    order = await seed.order([(gadget, 3)], status=OrderStatus.SHIPPED, shipped_days_ago=3)
    return gadget, storage, clerk, manager, order


async def test_full_return_flow_with_restocking_fee(db, shipped):
    gadget, storage, clerk, manager, order = shipped
    service = ReturnsService(db)
    line = order.items[0]

    async with unit_of_work(db):
        rma = await service.create_return(
            order.id, [{"order_item_id": line.id, "quantity": 3}], ReturnReason.CHANGED_MIND, user_id=clerk.id
        )
    assert rma.rma_number.startswith("RMA-")
    assert rma.status == ReturnStatus.PENDING.value
    assert rma.approval_required is True

    async with unit_of_work(db):
        await service.approve(rma.rma_number, manager.id)
        await service.receive(rma.rma_number, clerk.id, tracking_number="RET123")

    item = (await rma.awaitable_attrs.items)[0]
    assert item.status == ReturnItemStatus.RECEIVED.value

    async with unit_of_work(db):
        await service.inspect_item(
            rma.rma_number, item.id, 3, ReturnCondition.LIKE_NEW, ReturnDisposition.RESTOCK, clerk.id,
            restock_location_id=storage.id,
        )
    assert rma.status == ReturnStatus.INSPECTION_COMPLETE.value
    assert rma.restocking_fee == Decimal("15.00")

    preview = await service.calculate_refund(rma.rma_number)
    assert preview["subtotal"] == Decimal("150.00")
    assert preview["refund_amount"] == Decimal("135.00")

    async with unit_of_work(db):
        await service.process_refund(rma.rma_number, manager.id)

    await db.refresh(rma)
    assert rma.status == ReturnStatus.REFUNDED.value
    assert rma.refund_status == RefundStatus.COMPLETED.value
    assert rma.refund_amount == Decimal("135.00")

    row = (await db.execute(
        select(Inventory).where(Inventory.variant_id == gadget.id, Inventory.location_id == storage.id)
    )).scalar_one()
    assert row.quantity_on_hand == 3
    ledger = (await db.execute(
        select(InventoryTransaction).where(InventoryTransaction.transaction_type == TransactionType.RETURNS.value)
    )).scalars().all()
    assert [e.quantity_change for e in ledger] == [3]

    with pytest.raises(ConflictError):
        await service.process_refund(rma.rma_number, manager.id)


async def test_small_defective_return_is_auto_approved_and_fee_free(db, shipped):
    gadget, storage, clerk, manager, order = shipped
    service = ReturnsService(db)
    line = order.items[0]

    rma = await service.create_return(order.id, [{"order_item_id": line.id, "quantity": 1}], "DEFECTIVE")
    assert rma.status == ReturnStatus.APPROVED.value
    assert rma.approved_at is not None

    await service.receive(rma.rma_number, clerk.id)
    item = (await rma.awaitable_attrs.items)[0]
    await service.inspect_item(
        rma.rma_number, item.id, 1, ReturnCondition.DAMAGED, ReturnDisposition.DISPOSE, clerk.id
    )
    assert rma.restocking_fee == Decimal("0.00")

    await service.process_refund(rma.rma_number, manager.id)
    assert rma.refund_amount == Decimal("50.00")
    assert item.quantity_disposed == 1


async def test_restock_without_location_uses_first_storage_location(db, shipped):
    gadget, storage, clerk, manager, order = shipped
    service = ReturnsService(db)
    line = order.items[0]

    rma = await service.create_return(order.id, [{"order_item_id": line.id, "quantity": 1}], "NO_LONGER_NEEDED")
    await service.receive(rma.rma_number, clerk.id)
    item = (await rma.awaitable_attrs.items)[0]
    await service.inspect_item(rma.rma_number, item.id, 1, "GOOD", "RESTOCK", clerk.id)

    result = await service.restock(rma.rma_number, clerk.id)
    assert result["restocked"] == [
        {"return_item_id": str(item.id), "quantity": 1, "location_id": str(storage.id)}
    ]
    assert item.status == ReturnItemStatus.RESTOCKED.value

    # Already restocked items are not put back twice by the refund
    await service.process_refund(rma.rma_number, manager.id)
    await db.commit()
    row = (await db.execute(select(Inventory).where(Inventory.variant_id == gadget.id))).scalar_one()
    assert row.quantity_on_hand == 1


async def test_cannot_return_more_than_ordered(db, shipped):
    gadget, storage, clerk, manager, order = shipped
    service = ReturnsService(db)
    line = order.items[0]

    await service.create_return(order.id, [{"order_item_id": line.id, "quantity": 2}], "OTHER")
    with pytest.raises(ValidationError) as exc:
        await service.create_return(order.id, [{"order_item_id": line.id, "quantity": 2}], "OTHER")
    assert "Only 1 available" in exc.value.message


async def test_rejected_returns_free_up_quantity(db, shipped):
    gadget, storage, clerk, manager, order = shipped
    service = ReturnsService(db)
    line = order.items[0]

    rma = await service.create_return(order.id, [{"order_item_id": line.id, "quantity": 3}], "OTHER")
    await service.reject(rma.rma_number, manager.id, "Outside policy")
    await db.flush()

    again = await service.create_return(order.id, [{"order_item_id": line.id, "quantity": 3}], "OTHER")
    assert again.rma_number != rma.rma_number


async def test_return_window(db, seed, shipped):
    gadget, storage, clerk, manager, order = shipped
    old = await seed.order([(gadget, 1)], status=OrderStatus.DELIVERED, shipped_days_ago=31)
    pending = await seed.order([(gadget, 1)])

    with pytest.raises(ConflictError) as exc:
        await ReturnsService(db).create_return(old.id, [{"order_item_id": old.items[0].id, "quantity": 1}], "OTHER")
    assert "Return window expired" in exc.value.message

    with pytest.raises(ConflictError):
        await ReturnsService(db).create_return(
            pending.id, [{"order_item_id": pending.items[0].id, "quantity": 1}], "OTHER"
        )


async def test_reject_requires_reason(db, shipped):
    gadget, storage, clerk, manager, order = shipped
    service = ReturnsService(db)
    rma = await service.create_return(order.id, [{"order_item_id": order.items[0].id, "quantity": 3}], "OTHER")

    with pytest.raises(ValidationError):
        await service.reject(rma.rma_number, manager.id, "  ")


async def test_inspection_before_receiving_is_rejected(db, shipped):
    gadget, storage, clerk, manager, order = shipped
    service = ReturnsService(db)
    rma = await service.create_return(order.id, [{"order_item_id": order.items[0].id, "quantity": 1}], "OTHER")
    item = (await rma.awaitable_attrs.items)[0]

    with pytest.raises(ConflictError):
        await service.inspect_item(rma.rma_number, item.id, 1, "GOOD", "RESTOCK", clerk.id)


async def test_refund_without_any_restock_location_changes_nothing(db, seed):
    gadget = await seed.variant("GADGET", price="50.00")
    clerk = await seed.user(UserRole.STAFF)
    manager = await seed.user(UserRole.MANAGER)
    order = await seed.order([(gadget, 1)], status=OrderStatus.SHIPPED, shipped_days_ago=3)
    service = ReturnsService(db)

    async with unit_of_work(db):
        rma = await service.create_return(
            order.id, [{"order_item_id": order.items[0].id, "quantity": 1}], "NO_LONGER_NEEDED"
        )
        await service.receive(rma.rma_number, clerk.id)
        item = (await rma.awaitable_attrs.items)[0]
        await service.inspect_item(rma.rma_number, item.id, 1, "GOOD", "RESTOCK", clerk.id)
    rma_number = rma.rma_number

    with pytest.raises(ConflictError) as exc:
        async with unit_of_work(db):
            await service.process_refund(rma_number, manager.id)
    assert exc.value.message == "No STORAGE location available for restocking"

    await db.refresh(rma)
    assert rma.status == ReturnStatus.INSPECTION_COMPLETE.value
    assert rma.refund_status == RefundStatus.PENDING.value
    assert (await db.execute(select(Inventory))).scalars().all() == []
