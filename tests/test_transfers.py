import pytest
from sqlalchemy import select

from stockroom.core.exceptions import ConflictError, ForbiddenError, ValidationError
from stockroom.database import unit_of_work
from stockroom.models.inventory import Inventory, InventoryTransaction, TransferStatus
from stockroom.models.notification import NotificationType
from stockroom.models.user import UserRole
from stockroom.services.notification_service import NotificationService
from stockroom.services.transfer_service import TransferService


@pytest.fixture
async def two_bins(seed):
    variant = await seed.variant("CABLE")
    source = await seed.location("A-01")
    target = await seed.location("B-01")
    row = await seed.inventory(variant, source, 10, reserved=2)
    staff = await seed.user(UserRole.STAFF)
    manager = await seed.user(UserRole.MANAGER)
    return variant, source, target, row, staff, manager


async def test_request_checks_available_stock(db, two_bins):
    variant, source, target, row, staff, manager = two_bins

    with pytest.raises(ValidationError) as exc:
        await TransferService(db).request_transfer(variant.id, source.id, target.id, 9, staff.id)
    assert exc.value.message == "Only 8 units available at source location"


async def test_request_rejects_same_location(db, two_bins):
    variant, source, target, row, staff, manager = two_bins

    with pytest.raises(ValidationError):
        await TransferService(db).request_transfer(variant.id, source.id, source.id, 1, staff.id)


async def test_request_moves_nothing_until_approved(db, two_bins):
    variant, source, target, row, staff, manager = two_bins
    notifications = NotificationService(db)
    service = TransferService(db, notifications)

    async with unit_of_work(db, notifications):
        transfer = await service.request_transfer(variant.id, source.id, target.id, 5, staff.id, "Rebalance")
    assert transfer.status == TransferStatus.PENDING.value
    await db.refresh(row)
    assert row.quantity_on_hand == 10

    async with unit_of_work(db, notifications):
        transfer = await service.approve(transfer.id, manager)
        assert [n.type for n in notifications.pending] == [NotificationType.TRANSFER_APPROVED.value]

    assert transfer.status == TransferStatus.APPROVED.value
    assert transfer.confirmed_by == manager.id

    rows = {
        r.location_id: r
        for r in (await db.execute(select(Inventory).where(Inventory.variant_id == variant.id))).scalars()
    }
    assert rows[source.id].quantity_on_hand == 5
    assert rows[target.id].quantity_on_hand == 5

    ledger = (await db.execute(
        select(InventoryTransaction).where(InventoryTransaction.reference_id == str(transfer.id))
    )).scalars().all()
    assert sorted(e.quantity_change for e in ledger) == [-5, 5]


async def test_approval_rechecks_availability(db, two_bins):
    variant, source, target, row, staff, manager = two_bins
    service = TransferService(db)
    transfer = await service.request_transfer(variant.id, source.id, target.id, 8, staff.id)
    await db.commit()

    row.quantity_reserved = 5
    await db.commit()

    with pytest.raises(ConflictError) as exc:
        await service.approve(transfer.id, manager)
    assert exc.value.message == "Insufficient stock at source location: 5 available"


async def test_only_supervisors_decide(db, two_bins):
    variant, source, target, row, staff, manager = two_bins
    service = TransferService(db)
    transfer = await service.request_transfer(variant.id, source.id, target.id, 1, staff.id)

    with pytest.raises(ForbiddenError):
        await service.approve(transfer.id, staff)
    with pytest.raises(ForbiddenError):
        await service.reject(transfer.id, staff, "no")


async def test_reject_then_approve_conflicts(db, two_bins):
    variant, source, target, row, staff, manager = two_bins
    service = TransferService(db)
    transfer = await service.request_transfer(variant.id, source.id, target.id, 1, staff.id)

    transfer = await service.reject(transfer.id, manager, "Bin B-01 is full")
    assert transfer.status == TransferStatus.REJECTED.value
    assert transfer.rejection_reason == "Bin B-01 is full"

    with pytest.raises(ConflictError):
        await service.approve(transfer.id, manager)
