import pytest
from sqlalchemy import select

from stockroom.core.exceptions import ConflictError, ValidationError
from stockroom.database import unit_of_work
from stockroom.models.inventory import BackOrder, InventoryReservation
from stockroom.models.order import OrderStatus
from stockroom.models.picklist import PickItemStatus, PickListStatus
from stockroom.models.user import UserRole
from stockroom.services.allocation_service import AllocationService
from stockroom.services.notification_service import NotificationService
from stockroom.services.order_service import OrderService
from stockroom.services.picklist_service import PicklistService, compute_pick_progress


@pytest.fixture
async def allocated(db, seed):
    """An ALLOCATED order for 5 widgets reserved at one location holding 10."""
    variant = await seed.variant("WIDGET")
    location = await seed.location("A-01", pick_sequence=1)
    row = await seed.inventory(variant, location, 10)
    picker = await seed.user(UserRole.STAFF)
    order = await seed.order([(variant, 5)])
    async with unit_of_work(db):
        await AllocationService(db).allocate_order(order.id, user_id=picker.id)
    return variant, location, row, picker, order


async def _generate(db, order, picker, **kwargs):
    async with unit_of_work(db):
        pick_list = await PicklistService(db).generate_pick_list([order.id], user_id=picker.id, **kwargs)
    [item] = await pick_list.awaitable_attrs.items
    return pick_list, item


async def test_generation_moves_orders_to_picking(db, allocated):
    variant, location, row, picker, order = allocated
    pick_list, item = await _generate(db, order, picker)

    assert pick_list.batch_number.startswith("PICK-")
    assert pick_list.status == PickListStatus.PENDING.value
    assert pick_list.total_items == 1
    assert item.quantity_to_pick == 5
    assert item.location_id == location.id

    await db.refresh(order)
    assert order.status == OrderStatus.PICKING.value


async def test_items_follow_pick_path(db, seed, allocated):
    variant, location, row, picker, order = allocated
    early = await seed.location("0-FRONT", pick_sequence=0)
    gadget = await seed.variant("GADGET")
    await seed.inventory(gadget, early, 3)
    second = await seed.order([(gadget, 2)])
    async with unit_of_work(db):
        await AllocationService(db).allocate_order(second.id)

    async with unit_of_work(db):
        pick_list = await PicklistService(db).generate_pick_list([order.id, second.id])

    items = sorted(await pick_list.awaitable_attrs.items, key=lambda i: i.sequence)
    assert [i.location_id for i in items] == [early.id, location.id]


async def test_generation_requires_allocated_orders(db, seed):
    variant = await seed.variant()
    order = await seed.order([(variant, 1)])

    with pytest.raises(ConflictError):
        await PicklistService(db).generate_pick_list([order.id])


async def test_invalid_scan_changes_nothing(db, allocated):
    variant, location, row, picker, order = allocated
    pick_list, item = await _generate(db, order, picker)

    with pytest.raises(ValidationError) as exc:
        async with unit_of_work(db):
            await PicklistService(db).pick_item(pick_list.id, item.id, 5, "NOT-A-CODE", picker.id)
    assert exc.value.message == "Invalid scan - code does not match product or location"

    await db.refresh(item)
    await db.refresh(row)
    assert item.status == PickItemStatus.PENDING.value
    assert item.quantity_picked == 0
    assert (row.quantity_on_hand, row.quantity_reserved) == (10, 5)


async def test_full_pick_consumes_stock_and_completes_order(db, allocated):
    variant, location, row, picker, order = allocated
    pick_list, item = await _generate(db, order, picker)

    async with unit_of_work(db):
        item = await PicklistService(db).pick_item(pick_list.id, item.id, 5, "WIDGET", picker.id)

    assert item.status == PickItemStatus.COMPLETED.value
    await db.refresh(row)
    assert (row.quantity_on_hand, row.quantity_reserved) == (5, 0)

    await db.refresh(pick_list)
    assert pick_list.status == PickListStatus.COMPLETED.value
    assert pick_list.picked_items == 1
    await db.refresh(order)
    assert order.status == OrderStatus.PICKED.value

    reservation = await db.get(InventoryReservation, item.reservation_id)
    assert reservation.status == "PICKED"
    assert reservation.quantity_picked == 5


async def test_location_barcode_is_a_valid_scan(db, allocated):
    variant, location, row, picker, order = allocated
    pick_list, item = await _generate(db, order, picker)

    item = await PicklistService(db).pick_item(pick_list.id, item.id, 5, location.barcode, picker.id)
    assert item.status == PickItemStatus.COMPLETED.value


async def test_short_pick_releases_and_backorders(db, allocated):
    variant, location, row, picker, order = allocated
    pick_list, item = await _generate(db, order, picker)

    async with unit_of_work(db):
        item = await PicklistService(db).pick_item(pick_list.id, item.id, 3, "UPC-WIDGET", picker.id)

    assert item.status == PickItemStatus.SHORT_PICK.value
    await db.refresh(row)
    assert (row.quantity_on_hand, row.quantity_reserved) == (7, 0)

    [backorder] = (await db.execute(select(BackOrder).where(BackOrder.order_id == order.id))).scalars().all()
    assert backorder.quantity_backordered == 2
    assert backorder.reason == "SHORT_PICK"

    with pytest.raises(ConflictError):
        await PicklistService(db).pick_item(pick_list.id, item.id, 2, "WIDGET", picker.id)


async def test_cannot_pick_more_than_required(db, allocated):
    variant, location, row, picker, order = allocated
    pick_list, item = await _generate(db, order, picker)

    with pytest.raises(ValidationError):
        await PicklistService(db).pick_item(pick_list.id, item.id, 6, "WIDGET", picker.id)


async def test_skip_releases_reservation(db, allocated):
    variant, location, row, picker, order = allocated
    pick_list, item = await _generate(db, order, picker)

    async with unit_of_work(db):
        item = await PicklistService(db).skip_item(pick_list.id, item.id, picker.id, reason="Bin empty")

    assert item.status == PickItemStatus.SKIPPED.value
    await db.refresh(row)
    assert (row.quantity_on_hand, row.quantity_reserved) == (10, 0)
    backorders = (await db.execute(select(BackOrder))).scalars().all()
    assert [b.quantity_backordered for b in backorders] == [5]


async def test_assignment_queues_notification(db, seed, allocated):
    variant, location, row, picker, order = allocated
    notifications = NotificationService(db)
    async with unit_of_work(db):
        pick_list = await PicklistService(db, notifications).generate_pick_list(
            [order.id], assigned_to=picker.id
        )
        assert [n.type for n in notifications.pending] == ["PICK_LIST_ASSIGNED"]

    assert pick_list.status == PickListStatus.ASSIGNED.value
    assert pick_list.assigned_to == picker.id


async def test_pause_and_resume(db, allocated):
    variant, location, row, picker, order = allocated
    pick_list, item = await _generate(db, order, picker, auto_start=True)
    service = PicklistService(db)
    assert pick_list.status == PickListStatus.IN_PROGRESS.value

    await service.pause_picking(pick_list.id, picker.id, reason="Break")
    with pytest.raises(ConflictError):
        await service.pick_item(pick_list.id, item.id, 5, "WIDGET", picker.id)

    await service.start_picking(pick_list.id, picker.id)
    item = await service.pick_item(pick_list.id, item.id, 5, "WIDGET", picker.id)
    assert item.status == PickItemStatus.COMPLETED.value


def test_progress_counts_terminal_items():
    from types import SimpleNamespace

    items = [
        SimpleNamespace(status="COMPLETED"),
        SimpleNamespace(status="SHORT_PICK"),
        SimpleNamespace(status="SKIPPED"),
        SimpleNamespace(status="PENDING"),
    ]
    progress = compute_pick_progress(items)
    assert (progress.total_items, progress.picked_items, progress.open_items) == (4, 2, 1)
    assert not progress.is_complete


async def test_cancelling_order_closes_its_open_pick_items(db, allocated):
    variant, location, row, picker, order = allocated
    pick_list, item = await _generate(db, order, picker)

    async with unit_of_work(db):
        await OrderService(db).cancel_order(order.id, picker.id, "Customer request")

    await db.refresh(item)
    await db.refresh(pick_list)
    await db.refresh(order)
    await db.refresh(row)
    assert item.status == PickItemStatus.SKIPPED.value
    assert pick_list.status == PickListStatus.CANCELLED.value
    assert order.status == OrderStatus.CANCELLED.value
    assert (row.quantity_on_hand, row.quantity_reserved) == (10, 0)

    events = await pick_list.awaitable_attrs.events
    skipped = [e for e in events if e.event_type == "ITEM_SKIPPED"]
    assert skipped[0].data["order_cancelled"] is True
