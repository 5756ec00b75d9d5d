from decimal import Decimal

import pytest
from sqlalchemy import select

from stockroom.core.exceptions import ConflictError, ForbiddenError, ValidationError
from stockroom.models.cycle_count import CampaignStatus, CountTaskStatus
from stockroom.models.inventory import InventoryTransaction, TransactionType
from stockroom.models.notification import NotificationType
from stockroom.models.user import UserRole
from stockroom.services.cycle_count_service import (
    CycleCountService,
    compute_campaign_stats,
    compute_variance,
    exceeds_tolerance,
)
from stockroom.services.inventory_service import InventoryService
from stockroom.services.notification_service import NotificationService


class TestVarianceMath:

    def test_percentage(self):
        assert compute_variance(100, 94) == (-6, Decimal("6.00"))

    def test_rounds_to_two_places(self):
        variance, percentage = compute_variance(3, 4)
        assert variance == 1
        assert percentage == Decimal("33.33")

    def test_zero_system_quantity_has_no_percentage(self):
        assert compute_variance(0, 5) == (5, None)

    def test_tolerance(self):
        assert exceeds_tolerance(-6, Decimal("6.00"), Decimal("5"))
        assert not exceeds_tolerance(-3, Decimal("3.00"), Decimal("5"))
        assert not exceeds_tolerance(-5, Decimal("5.00"), Decimal("5"))
        assert not exceeds_tolerance(0, None, Decimal("5"))
        assert exceeds_tolerance(5, None, Decimal("5"))


async def _count_ledger(db, task_id):
    stmt = select(InventoryTransaction).where(
        InventoryTransaction.transaction_type == TransactionType.COUNT.value,
        InventoryTransaction.reference_id == str(task_id),
    )
    return (await db.execute(stmt)).scalars().all()


@pytest.fixture
async def shelf(seed):
    variant = await seed.variant("BOLT")
    location = await seed.location("A-05")
    row = await seed.inventory(variant, location, 100)
    counter = await seed.user(UserRole.STAFF)
    manager = await seed.user(UserRole.MANAGER)
    return variant, location, row, counter, manager


async def _campaign(db, variant, **kwargs):
    campaign = await CycleCountService(db).create_campaign("Aisle A", variant_ids=[variant.id], **kwargs)
    await db.commit()
    task = (await campaign.awaitable_attrs.tasks)[0]
    return campaign, task


async def test_campaign_snapshots_system_quantity(db, shelf):
    variant, location, row, counter, manager = shelf
    campaign, task = await _campaign(db, variant)

    assert campaign.status == CampaignStatus.ACTIVE.value
    assert campaign.total_tasks == 1
    assert task.system_quantity == 100
    assert task.tolerance == Decimal("5")
    assert task.task_number.startswith("CC-")
    assert task.task_number.endswith("-0001")


async def test_campaign_needs_filters(db):
    with pytest.raises(ValidationError):
        await CycleCountService(db).create_campaign("Empty")


async def test_count_over_tolerance_goes_to_review_without_adjusting(db, shelf):
    variant, location, row, counter, manager = shelf
    campaign, task = await _campaign(db, variant)

    task = await CycleCountService(db).record_count(task.id, 94, counter.id)
    await db.commit()

    assert task.status == CountTaskStatus.VARIANCE_REVIEW.value
    assert task.variance == -6
    assert task.variance_percentage == Decimal("6.00")
    assert task.requires_recount is True

    await db.refresh(row)
    assert row.quantity_on_hand == 100
    assert await _count_ledger(db, task.id) == []

    await db.refresh(campaign)
    assert campaign.status == CampaignStatus.ACTIVE.value


async def test_count_within_tolerance_posts_adjustment(db, shelf):
    variant, location, row, counter, manager = shelf
    campaign, task = await _campaign(db, variant)

    task = await CycleCountService(db).record_count(task.id, 97, counter.id)
    await db.commit()

    assert task.status == CountTaskStatus.COMPLETED.value
    await db.refresh(row)
    assert row.quantity_on_hand == 97
    assert row.last_counted_at is not None

    [entry] = await _count_ledger(db, task.id)
    assert entry.quantity_change == -3
    assert entry.user_id == counter.id

    await db.refresh(campaign)
    assert campaign.status == CampaignStatus.COMPLETED.value
    assert campaign.completed_tasks == 1
    assert campaign.variances_found == 1


async def test_exact_count_completes_without_ledger_entry(db, shelf):
    variant, location, row, counter, manager = shelf
    _, task = await _campaign(db, variant)

    task = await CycleCountService(db).record_count(task.id, 100, counter.id)
    await db.commit()

    assert task.status == CountTaskStatus.COMPLETED.value
    assert await _count_ledger(db, task.id) == []


async def test_negative_count_rejected(db, shelf):
    variant, location, row, counter, manager = shelf
    _, task = await _campaign(db, variant)

    with pytest.raises(ValidationError):
        await CycleCountService(db).record_count(task.id, -1, counter.id)


async def test_only_skipped_status_override(db, shelf):
    variant, location, row, counter, manager = shelf
    _, task = await _campaign(db, variant)
    service = CycleCountService(db)

    with pytest.raises(ValidationError):
        await service.record_count(task.id, None, counter.id, status=CountTaskStatus.COMPLETED)

    task = await service.record_count(task.id, None, counter.id, notes="Blocked aisle", status="SKIPPED")
    assert task.status == CountTaskStatus.SKIPPED.value


async def test_counted_task_cannot_be_counted_again(db, shelf):
    variant, location, row, counter, manager = shelf
    _, task = await _campaign(db, variant)
    service = CycleCountService(db)
    await service.record_count(task.id, 94, counter.id)

    with pytest.raises(ConflictError):
        await service.record_count(task.id, 95, counter.id)


async def test_supervisor_approval_posts_variance(db, shelf):
    variant, location, row, counter, manager = shelf
    campaign, task = await _campaign(db, variant)
    service = CycleCountService(db)
    await service.record_count(task.id, 94, counter.id)

    task = await service.approve_variance(task.id, manager, notes="Damaged box found")
    await db.commit()

    assert task.status == CountTaskStatus.COMPLETED.value
    assert task.requires_recount is False
    await db.refresh(row)
    assert row.quantity_on_hand == 94
    [entry] = await _count_ledger(db, task.id)
    assert entry.quantity_change == -6
    assert entry.user_id == manager.id

    await db.refresh(campaign)
    assert campaign.status == CampaignStatus.COMPLETED.value


async def test_staff_cannot_approve_variance(db, shelf):
    variant, location, row, counter, manager = shelf
    _, task = await _campaign(db, variant)
    service = CycleCountService(db)
    await service.record_count(task.id, 94, counter.id)

    with pytest.raises(ForbiddenError):
        await service.approve_variance(task.id, counter)


async def test_recount_notifies_assignee(db, shelf):
    variant, location, row, counter, manager = shelf
    _, task = await _campaign(db, variant)
    notifications = NotificationService(db)
    service = CycleCountService(db, notifications)
    await service.record_count(task.id, 94, counter.id)

    task = await service.request_recount(task.id, manager, reason="Count looks off", assigned_to=counter.id)
    await db.commit()

    assert task.status == CountTaskStatus.RECOUNT_REQUIRED.value
    assert task.assigned_to == counter.id
    [queued] = notifications.pending
    assert queued.type == NotificationType.RECOUNT_ASSIGNED.value
    assert queued.user_id == counter.id
    assert "BOLT" in queued.message

    task = await service.record_count(task.id, 99, counter.id)
    assert task.status == CountTaskStatus.COMPLETED.value


async def test_complete_campaign_with_review_task_then_twice(db, seed, shelf):
    variant, location, row, counter, manager = shelf
    second = await seed.location("A-06")
    await seed.inventory(variant, second, 40)
    campaign, _ = await _campaign(db, variant)
    tasks = await campaign.awaitable_attrs.tasks
    service = CycleCountService(db)

    by_location = {t.location_id: t for t in tasks}
    await service.record_count(by_location[location.id].id, 94, counter.id)
    await service.record_count(by_location[second.id].id, 40, counter.id)
    await db.commit()
    await db.refresh(campaign)
    assert campaign.status == CampaignStatus.ACTIVE.value

    summary = await service.complete_campaign(campaign.id, manager.id)
    await db.commit()
    assert summary["total_tasks"] == 2
    assert summary["review_tasks"] == 1
    assert campaign.status == CampaignStatus.COMPLETED.value

    with pytest.raises(ConflictError) as exc:
        await service.complete_campaign(campaign.id, manager.id)
    assert exc.value.message == "Campaign is already completed"


async def test_incomplete_campaign_cannot_complete(db, shelf):
    variant, location, row, counter, manager = shelf
    campaign, _ = await _campaign(db, variant)

    with pytest.raises(ConflictError):
        await CycleCountService(db).complete_campaign(campaign.id, manager.id)


async def test_report_totals(db, shelf):
    variant, location, row, counter, manager = shelf
    campaign, task = await _campaign(db, variant)
    service = CycleCountService(db)
    await service.record_count(task.id, 97, counter.id)
    await db.commit()

    report = await service.get_report(campaign.id)
    assert report["summary"]["net_variance_units"] == -3
    assert report["summary"]["absolute_variance_units"] == 3
    assert report["tasks"][0]["sku"] == "BOLT"
    assert report["tasks"][0]["location"] == "A-05"


def test_campaign_stats_ignore_cancelled_tasks():
    from types import SimpleNamespace

    tasks = [
        SimpleNamespace(status="COMPLETED", variance=-2),
        SimpleNamespace(status="VARIANCE_REVIEW", variance=-9),
        SimpleNamespace(status="PENDING", variance=None),
        SimpleNamespace(status="CANCELLED", variance=4),
    ]
    stats = compute_campaign_stats(tasks)
    assert (stats.total_tasks, stats.completed_tasks, stats.variances_found) == (3, 2, 2)
    assert stats.active_tasks == 1
    assert not stats.is_finished


async def test_count_below_reserved_goes_to_review_and_cannot_be_approved(db, seed):
    variant = await seed.variant("NUT")
    location = await seed.location("A-06")
    row = await seed.inventory(variant, location, 100, reserved=100)
    counter = await seed.user(UserRole.STAFF)
    manager = await seed.user(UserRole.MANAGER)
    _, task = await _campaign(db, variant)
    service = CycleCountService(db)

    task = await service.record_count(task.id, 97, counter.id)
    await db.commit()

    assert task.status == CountTaskStatus.VARIANCE_REVIEW.value
    assert task.variance == -3
    await db.refresh(row)
    assert (row.quantity_on_hand, row.quantity_reserved) == (100, 100)
    assert await _count_ledger(db, task.id) == []

    with pytest.raises(ConflictError):
        await service.approve_variance(task.id, manager)
    await db.rollback()

    await db.refresh(row)
    assert (row.quantity_on_hand, row.quantity_reserved) == (100, 100)


async def test_adjustment_cannot_uncover_reserved_stock(db, seed):
    variant = await seed.variant("WASHER")
    location = await seed.location("A-07")
    row = await seed.inventory(variant, location, 10, reserved=8)

    with pytest.raises(ConflictError):
        InventoryService(db).adjust_on_hand(row, -3, TransactionType.ADJUSTMENT)
    assert row.quantity_on_hand == 10

    InventoryService(db).adjust_on_hand(row, -2, TransactionType.ADJUSTMENT)
    assert row.quantity_on_hand == 8
