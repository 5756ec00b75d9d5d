import pytest

from stockroom.core.exceptions import ConflictError, NotFoundError, ValidationError
from stockroom.database import unit_of_work
from stockroom.models.order import OrderStatus
from stockroom.models.user import UserRole
from stockroom.models.work_task import TaskItemStatus, WorkTaskStatus, WorkTaskType
from stockroom.services.notification_service import NotificationService
from stockroom.services.user_service import UserService
from stockroom.services.work_task_service import WorkTaskService, compute_task_progress


@pytest.fixture
async def picked_order(seed):
    red = await seed.variant("RED")
    blue = await seed.variant("BLUE")
    packer = await seed.user(UserRole.STAFF)
    order = await seed.order([(red, 2), (blue, 1)], status=OrderStatus.PICKED)
    return order, packer


async def test_packing_task_advances_order_to_packed(db, picked_order):
    order, packer = picked_order
    service = WorkTaskService(db)

    async with unit_of_work(db):
        task = await service.create_task([order.id], WorkTaskType.PACKING, user_id=packer.id)
    assert task.task_number.startswith("PACK-")
    assert (task.total_items, task.total_orders) == (2, 1)

    items = await task.awaitable_attrs.items
    async with unit_of_work(db):
        await service.complete_item(task.id, items[0].id, packer.id)
    assert task.status == WorkTaskStatus.IN_PROGRESS.value
    assert task.completed_items == 1
    assert task.completed_orders == 0

    async with unit_of_work(db):
        await service.complete_item(task.id, items[1].id, packer.id)
    await db.refresh(task)
    assert task.status == WorkTaskStatus.COMPLETED.value
    assert task.completed_orders == 1

    await db.refresh(order)
    assert order.status == OrderStatus.PACKED.value


async def test_shipping_task_stamps_shipped_at(db, picked_order):
    order, packer = picked_order
    service = WorkTaskService(db)
    order.status = OrderStatus.PACKED.value
    await db.commit()

    task = await service.create_task([order.id], "SHIPPING", user_id=packer.id)
    assert task.task_number.startswith("SHIP-")
    for item in await task.awaitable_attrs.items:
        await service.complete_item(task.id, item.id, packer.id)
    await db.commit()

    await db.refresh(order)
    assert order.status == OrderStatus.SHIPPED.value
    assert order.shipped_at is not None


async def test_task_needs_orders_in_the_right_step(db, seed, picked_order):
    order, packer = picked_order

    with pytest.raises(ConflictError):
        await WorkTaskService(db).create_task([order.id], WorkTaskType.SHIPPING)


async def test_unknown_type_and_missing_orders(db, picked_order):
    order, packer = picked_order
    service = WorkTaskService(db)

    with pytest.raises(ValidationError):
        await service.create_task([order.id], "LOADING")
    with pytest.raises(ValidationError):
        await service.create_task([])


async def test_completed_item_cannot_be_completed_again(db, picked_order):
    order, packer = picked_order
    service = WorkTaskService(db)
    task = await service.create_task([order.id], user_id=packer.id)
    item = (await task.awaitable_attrs.items)[0]
    await service.complete_item(task.id, item.id, packer.id)

    with pytest.raises(ConflictError):
        await service.complete_item(task.id, item.id, packer.id)
    with pytest.raises(NotFoundError):
        await service.complete_item(task.id, order.id, packer.id)


async def test_reassign_keeps_in_progress_status_and_notifies(db, seed, picked_order):
    order, packer = picked_order
    helper = await seed.user(UserRole.STAFF)
    notifications = NotificationService(db)
    service = WorkTaskService(db, notifications)

    task = await service.create_task([order.id], user_id=packer.id, assigned_to=packer.id)
    assert task.status == WorkTaskStatus.ASSIGNED.value
    item = (await task.awaitable_attrs.items)[0]
    await service.complete_item(task.id, item.id, packer.id)

    await service.reassign(task.id, helper.id, packer.id)
    assert task.status == WorkTaskStatus.IN_PROGRESS.value
    assert task.assigned_to == helper.id
    assert [n.user_id for n in notifications.pending] == [packer.id, helper.id]
    await db.commit()

    work = await UserService(db).my_work(helper.id)
    assert [t.id for t in work["work_tasks"]] == [task.id]
    assert (await UserService(db).my_work(packer.id))["work_tasks"] == []


async def test_inactive_user_cannot_be_assigned(db, seed, picked_order):
    order, packer = picked_order
    packer.is_active = False
    await db.commit()

    with pytest.raises(ValidationError):
        await WorkTaskService(db).create_task([order.id], assigned_to=packer.id)


def test_progress_tracks_orders():
    from types import SimpleNamespace

    items = [
        SimpleNamespace(order_id=1, status=TaskItemStatus.COMPLETED.value),
        SimpleNamespace(order_id=1, status=TaskItemStatus.SKIPPED.value),
        SimpleNamespace(order_id=2, status=TaskItemStatus.PENDING.value),
    ]
    progress = compute_task_progress(items)
    assert (progress.total_items, progress.completed_items) == (3, 1)
    assert (progress.total_orders, progress.completed_orders) == (2, 1)
    assert progress.open_items == 1


async def test_picking_is_not_a_work_task(db, seed):
    widget = await seed.variant("WIDGET")
    picker = await seed.user(UserRole.STAFF)
    order = await seed.order([(widget, 1)], status=OrderStatus.PICKING)

    with pytest.raises(ValidationError):
        await WorkTaskService(db).create_task([order.id], "PICKING", user_id=picker.id)

    await db.refresh(order)
    assert order.status == OrderStatus.PICKING.value
