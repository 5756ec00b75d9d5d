import pytest
from sqlalchemy import select

from stockroom.core.exceptions import ConflictError, ForbiddenError, ValidationError
from stockroom.models.inventory import Inventory, InventoryTransaction, TransactionType
from stockroom.models.location import LocationType
from stockroom.models.receiving import ReceivingStatus
from stockroom.models.user import UserRole
from stockroom.services.receiving_service import ReceivingService


@pytest.fixture
async def dock(seed):
    dock = await seed.location("RCV-1", LocationType.RECEIVING)
    shelf = await seed.location("A-01", LocationType.STORAGE)
    bolts = await seed.variant("BOLT")
    nuts = await seed.variant("NUT")
    clerk = await seed.user(UserRole.STAFF)
    manager = await seed.user(UserRole.MANAGER)
    return dock, shelf, bolts, nuts, clerk, manager


async def test_receiving_posts_counts_on_approval(db, dock):
    dock_location, shelf, bolts, nuts, clerk, manager = dock
    service = ReceivingService(db)

    session = await service.create_session(
        "PO-778",
        [{"variant_id": bolts.id, "quantity_expected": 100}, {"variant_id": nuts.id, "quantity_expected": 50}],
        clerk.id,
    )
    assert session.location_id == dock_location.id

    lines = {line.sku: line for line in await session.awaitable_attrs.line_items}
    await service.record_counts(session.id, [
        {"line_item_id": lines["BOLT"].id, "quantity_counted": 98},
        {"line_item_id": lines["NUT"].id, "quantity_counted": 0},
    ], clerk.id)
    await service.submit(session.id, clerk.id)
    session = await service.approve(session.id, manager)
    await db.commit()

    assert session.status == ReceivingStatus.APPROVED.value
    rows = (await db.execute(select(Inventory).where(Inventory.location_id == dock_location.id))).scalars().all()
    assert [(r.variant_id, r.quantity_on_hand) for r in rows] == [(bolts.id, 98)]

    [entry] = (await db.execute(
        select(InventoryTransaction).where(InventoryTransaction.transaction_type == TransactionType.RECEIPT.value)
    )).scalars().all()
    assert entry.quantity_change == 98
    assert entry.details["expected"] == 100


async def test_receiving_location_must_be_a_dock(db, dock):
    dock_location, shelf, bolts, nuts, clerk, manager = dock

    with pytest.raises(ValidationError):
        await ReceivingService(db).create_session(
            "PO-1", [{"variant_id": bolts.id, "quantity_expected": 1}], clerk.id, location_id=shelf.id
        )


async def test_counts_locked_after_submit(db, dock):
    dock_location, shelf, bolts, nuts, clerk, manager = dock
    service = ReceivingService(db)
    session = await service.create_session("PO-2", [{"variant_id": bolts.id, "quantity_expected": 5}], clerk.id)
    line = (await session.awaitable_attrs.line_items)[0]
    await service.submit(session.id, clerk.id)

    with pytest.raises(ConflictError):
        await service.record_counts(session.id, [{"line_item_id": line.id, "quantity_counted": 5}], clerk.id)


async def test_approval_needs_supervisor_and_submission(db, dock):
    dock_location, shelf, bolts, nuts, clerk, manager = dock
    service = ReceivingService(db)
    session = await service.create_session("PO-3", [{"variant_id": bolts.id, "quantity_expected": 5}], clerk.id)

    with pytest.raises(ConflictError):
        await service.approve(session.id, manager)
    await service.submit(session.id, clerk.id)
    with pytest.raises(ForbiddenError):
        await service.approve(session.id, clerk)

    session = await service.reject(session.id, manager, "Wrong vendor")
    assert session.status == ReceivingStatus.REJECTED.value
