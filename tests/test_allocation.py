import pytest
from sqlalchemy import select, func

from stockroom.core.exceptions import ConflictError, InsufficientInventoryError
from stockroom.database import unit_of_work
from stockroom.models.cycle_count import CycleCountCampaign, CountType
from stockroom.models.inventory import BackOrder, InventoryReservation, InventoryTransaction
from stockroom.models.order import OrderStatus
from stockroom.services.allocation_service import AllocationMode, AllocationService, plan_reservations


class TestPlanReservations:

    def test_largest_location_first(self):
        plan, shortfall = plan_reservations([("a", 6), ("b", 5)], 10)
        assert plan == [("a", 6), ("b", 4)]
        assert shortfall == 0

    def test_prefers_bigger_pile_regardless_of_input_order(self):
        plan, _ = plan_reservations([("small", 2), ("big", 9)], 3)
        assert plan == [("big", 3)]

    def test_shortfall(self):
        plan, shortfall = plan_reservations([("a", 6), ("b", 5)], 20)
        assert sum(q for _, q in plan) == 11
        assert shortfall == 9

    def test_ignores_empty_and_negative_locations(self):
        plan, shortfall = plan_reservations([("a", 0), ("b", -3), ("c", 4)], 4)
        assert plan == [("c", 4)]
        assert shortfall == 0

    def test_nothing_available(self):
        assert plan_reservations([], 5) == ([], 5)


@pytest.fixture
async def stocked(seed):
    """Widget stocked at two locations: 6 at A, 5 at B."""
    variant = await seed.variant("WIDGET")
    loc_a = await seed.location("A-01")
    loc_b = await seed.location("B-01")
    row_a = await seed.inventory(variant, loc_a, 6)
    row_b = await seed.inventory(variant, loc_b, 5)
    return variant, row_a, row_b


async def _reservations(db, order_id):
    stmt = select(InventoryReservation).where(InventoryReservation.order_id == order_id)
    return (await db.execute(stmt)).scalars().all()


async def test_strict_allocation_splits_across_locations(db, seed, stocked):
    variant, row_a, row_b = stocked
    order = await seed.order([(variant, 10)])

    async with unit_of_work(db):
        result = await AllocationService(db).allocate_order(order.id)

    assert result.status == OrderStatus.ALLOCATED.value
    assert result.fully_allocated
    assert result.reserved_quantity == 10
    assert result.locations_used == 2

    await db.refresh(row_a)
    await db.refresh(row_b)
    assert (row_a.quantity_reserved, row_b.quantity_reserved) == (6, 4)
    assert row_a.quantity_on_hand == 6

    reservations = await _reservations(db, order.id)
    assert sorted(r.quantity for r in reservations) == [4, 6]

    await db.refresh(order)
    assert order.status == OrderStatus.ALLOCATED.value
    assert order.allocated_at is not None
    history = await order.awaitable_attrs.status_history
    assert [h.new_status for h in history] == ["ALLOCATED"]


async def test_strict_shortfall_rolls_back_every_line(db, seed, stocked):
    variant, row_a, row_b = stocked
    other = await seed.variant("GADGET")
    other_row = await seed.inventory(other, await seed.location("C-01"), 50)
    order = await seed.order([(other, 5), (variant, 20)])
    order_id = order.id

    with pytest.raises(InsufficientInventoryError) as exc:
        async with unit_of_work(db):
            await AllocationService(db).allocate_order(order_id)
    assert exc.value.message == "Insufficient inventory for SKU WIDGET. Short by 9 units."

    for row in (row_a, row_b, other_row):
        await db.refresh(row)
        assert row.quantity_reserved == 0
    assert await _reservations(db, order_id) == []

    ledger = await db.execute(select(func.count(InventoryTransaction.id)))
    assert ledger.scalar() == 0

    await db.refresh(order)
    assert order.status == OrderStatus.PENDING.value


async def test_backorder_mode_reserves_available_and_records_shortfall(db, seed, stocked):
    variant, row_a, row_b = stocked
    order = await seed.order([(variant, 20)])

    async with unit_of_work(db):
        result = await AllocationService(db).allocate_order(order.id, AllocationMode.BACKORDER)

    assert result.status == OrderStatus.ALLOCATED.value
    assert result.reserved_quantity == 11
    assert result.back_orders_created == 1
    [short] = result.insufficient_items
    assert (short.requested, short.allocated, short.shortfall) == (20, 11, 9)

    backorders = (await db.execute(select(BackOrder).where(BackOrder.order_id == order.id))).scalars().all()
    assert [b.quantity_backordered for b in backorders] == [9]
    assert backorders[0].status == "OPEN"


async def test_count_mode_opens_shortage_campaign_and_keeps_order_pending(db, seed, stocked):
    variant, row_a, row_b = stocked
    order = await seed.order([(variant, 20)])

    async with unit_of_work(db):
        result = await AllocationService(db).allocate_order(order.id, "COUNT")

    assert result.status == OrderStatus.PENDING.value
    assert result.reserved_quantity == 0
    assert result.cycle_count_campaign_id is not None

    campaign = (await db.execute(select(CycleCountCampaign))).scalar_one()
    assert campaign.count_type == CountType.SHORTAGE.value
    assert campaign.source_order_id == order.id
    assert campaign.total_tasks == 2

    await db.refresh(row_a)
    assert row_a.quantity_reserved == 0
    assert await _reservations(db, order.id) == []


async def test_only_pending_orders_can_be_allocated(db, seed, stocked):
    variant, _, _ = stocked
    order = await seed.order([(variant, 1)], status=OrderStatus.SHIPPED)

    with pytest.raises(ConflictError):
        await AllocationService(db).allocate_order(order.id)


async def test_result_serializes(db, seed, stocked):
    variant, _, _ = stocked
    order = await seed.order([(variant, 3)])

    async with unit_of_work(db):
        result = await AllocationService(db).allocate_order(order.id)

    data = result.to_dict()
    assert data["fully_allocated"] is True
    assert data["order_number"] == order.order_number
    assert data["reservations"][0]["sku"] == "WIDGET"
