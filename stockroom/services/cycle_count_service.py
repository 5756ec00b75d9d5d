"""
Cycle Counting Service.

Business logic for cycle count campaigns: creating count tasks, recording
counted quantities against the system snapshot, variance review and recount
escalation, and campaign completion.

Variance policy for a recorded count:
    variance            = counted - system
    variance_percentage = |variance| / system * 100   (None when system is 0)

    - variance is 0                     -> COMPLETED, no adjustment
    - percentage within tolerance       -> COMPLETED, COUNT adjustment posted
    - percentage over tolerance, or any
      variance against a zero system    -> VARIANCE_REVIEW, no adjustment
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, List, Dict, Any, Iterable, Tuple
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.config import settings
from stockroom.core.enum_utils import get_enum_value, is_status, status_in
from stockroom.core.exceptions import (
    ConflictError, ForbiddenError, NotFoundError, ValidationError,
)
from stockroom.core.state_machine import transition
from stockroom.models.cycle_count import (
    CycleCountCampaign, CycleCountTask, CycleCountEvent,
    CampaignStatus, CountTaskStatus, CountEventType, CountType,
)
from stockroom.models.inventory import Inventory, TransactionType, ReferenceType
from stockroom.models.location import Location
from stockroom.models.notification import NotificationType
from stockroom.models.product import ProductVariant
from stockroom.models.user import User
from stockroom.services.audit_service import AuditService
from stockroom.services.inventory_service import InventoryService
from stockroom.services.notification_service import NotificationService
from stockroom.services.user_service import UserService


logger = logging.getLogger(__name__)

# Statuses that still need someone to count
ACTIVE_TASK_STATUSES = (
    CountTaskStatus.PENDING,
    CountTaskStatus.IN_PROGRESS,
    CountTaskStatus.RECOUNT_REQUIRED,
)
# Statuses that count towards campaign progress
COUNTED_TASK_STATUSES = (
    CountTaskStatus.COMPLETED,
    CountTaskStatus.SKIPPED,
    CountTaskStatus.VARIANCE_REVIEW,
)


# ============================================================================
# PURE CALCULATIONS
# ============================================================================

def compute_variance(system_quantity: int, counted_quantity: int) -> Tuple[int, Optional[Decimal]]:
    """Return (variance, variance_percentage). Percentage is None when system is 0."""
    variance = counted_quantity - system_quantity
    if system_quantity == 0:
        return variance, None
    percentage = (Decimal(abs(variance)) / Decimal(system_quantity) * 100).quantize(
        Decimal("0.01"), rounding=ROUND_HALF_UP
    )
    return variance, percentage


def exceeds_tolerance(variance: int, percentage: Optional[Decimal], tolerance: Decimal) -> bool:
    if variance == 0:
        return False
    if percentage is None:
        return True
    return percentage > Decimal(str(tolerance))


@dataclass
class CampaignStats:
    total_tasks: int
    completed_tasks: int
    variances_found: int
    active_tasks: int
    review_tasks: int

    @property
    def is_finished(self) -> bool:
        return self.active_tasks == 0 and self.review_tasks == 0 and self.completed_tasks == self.total_tasks


def compute_campaign_stats(tasks: Iterable[CycleCountTask]) -> CampaignStats:
    """Aggregate campaign counters from its tasks. Cancelled tasks are excluded."""
    total = completed = variances = active = review = 0
    for task in tasks:
        if is_status(task.status, CountTaskStatus.CANCELLED):
            continue
        total += 1
        if status_in(task.status, *COUNTED_TASK_STATUSES):
            completed += 1
        if status_in(task.status, *ACTIVE_TASK_STATUSES):
            active += 1
        if is_status(task.status, CountTaskStatus.VARIANCE_REVIEW):
            review += 1
        if task.variance is not None and task.variance != 0:
            variances += 1
    return CampaignStats(total, completed, variances, active, review)


class CycleCountService:
    """Service for cycle counting operations."""

    def __init__(self, db: AsyncSession, notifications: Optional[NotificationService] = None):
        self.db = db
        self.inventory = InventoryService(db)
        self.audit = AuditService(db)
        self.notifications = notifications or NotificationService(db)
        self.users = UserService(db)

    # ========================================================================
    # LOOKUPS
    # ========================================================================

    async def get_campaign(self, campaign_id: UUID) -> CycleCountCampaign:
        campaign = await self.db.get(CycleCountCampaign, campaign_id)
        if campaign is None:
            raise NotFoundError("Campaign not found")
        return campaign

    async def get_task(self, task_id: UUID) -> CycleCountTask:
        task = await self.db.get(CycleCountTask, task_id)
        if task is None:
            raise NotFoundError("Task not found")
        return task

    async def _active_campaign_for(self, task: CycleCountTask) -> CycleCountCampaign:
        campaign = await self.get_campaign(task.campaign_id)
        if is_status(campaign.status, CampaignStatus.PLANNED):
            transition(campaign, CampaignStatus, CampaignStatus.ACTIVE, entity="Campaign")
        elif not is_status(campaign.status, CampaignStatus.ACTIVE):
            raise ConflictError(f"Campaign is {campaign.status}")
        return campaign

    async def _next_task_numbers(self, count: int) -> List[str]:
        today = datetime.now(timezone.utc).strftime("%Y%m%d")
        prefix = f"CC-{today}-"
        stmt = select(func.count(CycleCountTask.id)).where(
            CycleCountTask.task_number.like(f"{prefix}%")
        )
        existing = (await self.db.execute(stmt)).scalar() or 0
        return [f"{prefix}{existing + i:04d}" for i in range(1, count + 1)]

    # ========================================================================
    # CAMPAIGNS
    # ========================================================================

    async def create_campaign(
        self,
        name: str,
        inventory_ids: Optional[List[UUID]] = None,
        variant_ids: Optional[List[UUID]] = None,
        location_ids: Optional[List[UUID]] = None,
        tolerance: Optional[Decimal] = None,
        assigned_to: Optional[UUID] = None,
        description: Optional[str] = None,
        count_type: CountType = CountType.SCHEDULED,
        source_order_id: Optional[UUID] = None,
        user_id: Optional[UUID] = None,
    ) -> CycleCountCampaign:
        """
        Create a campaign with one task per matching inventory row. The task
        snapshots the row's current on-hand quantity as its system quantity.
        """
        if not (inventory_ids or variant_ids or location_ids):
            raise ValidationError("Select inventory, variants or locations to count")

        stmt = select(Inventory)
        if inventory_ids:
            stmt = stmt.where(Inventory.id.in_(inventory_ids))
        if variant_ids:
            stmt = stmt.where(Inventory.variant_id.in_(variant_ids))
        if location_ids:
            stmt = stmt.where(Inventory.location_id.in_(location_ids))
        rows = list((await self.db.execute(stmt.order_by(Inventory.location_id))).scalars().all())
        if not rows:
            raise ValidationError("No inventory matches the campaign filters")

        if assigned_to:
            await self.users.get_assignable(assigned_to)

        tolerance = Decimal(str(tolerance if tolerance is not None else settings.DEFAULT_COUNT_TOLERANCE_PERCENT))
        campaign = CycleCountCampaign(
            name=name,
            description=description,
            count_type=get_enum_value(count_type),
            status=CampaignStatus.ACTIVE.value,
            tolerance=tolerance,
            source_order_id=source_order_id,
            created_by=user_id,
            start_date=datetime.now(timezone.utc),
        )
        self.db.add(campaign)

        numbers = await self._next_task_numbers(len(rows))
        for number, row in zip(numbers, rows):
            campaign.tasks.append(CycleCountTask(
                task_number=number,
                variant_id=row.variant_id,
                location_id=row.location_id,
                system_quantity=row.quantity_on_hand,
                tolerance=tolerance,
                status=CountTaskStatus.PENDING.value,
                assigned_to=assigned_to,
                events=[CycleCountEvent(
                    event_type=CountEventType.TASK_CREATED.value,
                    user_id=user_id,
                    previous_value=row.quantity_on_hand,
                )],
            ))

        stats = compute_campaign_stats(campaign.tasks)
        campaign.total_tasks = stats.total_tasks
        campaign.completed_tasks = stats.completed_tasks
        campaign.variances_found = stats.variances_found
        await self.db.flush()

        await self.audit.log(
            action="CREATE",
            entity_type="CYCLE_COUNT_CAMPAIGN",
            entity_id=campaign.id,
            user_id=user_id,
            new_values={"name": name, "tasks": len(rows), "count_type": campaign.count_type},
        )
        logger.info(f"Created cycle count campaign '{name}' with {len(rows)} task(s)")
        return campaign

    async def refresh_campaign(self, campaign: CycleCountCampaign) -> CampaignStats:
        """
        Recompute campaign counters by scanning every task, and close the
        campaign when nothing is left to count or review.
        """
        await self.db.flush()
        tasks = (await self.db.execute(
            select(CycleCountTask).where(CycleCountTask.campaign_id == campaign.id)
        )).scalars().all()
        stats = compute_campaign_stats(tasks)

        campaign.total_tasks = stats.total_tasks
        campaign.completed_tasks = stats.completed_tasks
        campaign.variances_found = stats.variances_found

        if is_status(campaign.status, CampaignStatus.ACTIVE) and stats.is_finished:
            transition(campaign, CampaignStatus, CampaignStatus.COMPLETED, entity="Campaign")
            campaign.end_date = datetime.now(timezone.utc)
            logger.info(f"Cycle count campaign {campaign.id} completed automatically")
        return stats

    async def complete_campaign(self, campaign_id: UUID, user_id: Optional[UUID] = None) -> Dict[str, Any]:
        campaign = await self.get_campaign(campaign_id)
        if is_status(campaign.status, CampaignStatus.COMPLETED):
            raise ConflictError("Campaign is already completed")
        if is_status(campaign.status, CampaignStatus.CANCELLED):
            raise ConflictError("Campaign is cancelled")

        tasks = list(await campaign.awaitable_attrs.tasks)
        incomplete = [
            t for t in tasks
            if not status_in(
                t.status,
                CountTaskStatus.COMPLETED,
                CountTaskStatus.SKIPPED,
                CountTaskStatus.CANCELLED,
                CountTaskStatus.VARIANCE_REVIEW,
            )
        ]
        if incomplete:
            raise ConflictError(f"Cannot complete campaign with {len(incomplete)} incomplete task(s)")

        stats = compute_campaign_stats(tasks)
        campaign.total_tasks = stats.total_tasks
        campaign.completed_tasks = stats.completed_tasks
        campaign.variances_found = stats.variances_found
        if is_status(campaign.status, CampaignStatus.PLANNED):
            transition(campaign, CampaignStatus, CampaignStatus.ACTIVE, entity="Campaign")
        transition(campaign, CampaignStatus, CampaignStatus.COMPLETED, entity="Campaign")
        campaign.end_date = datetime.now(timezone.utc)

        for task in tasks:
            (await task.awaitable_attrs.events).append(CycleCountEvent(
                event_type=CountEventType.TASK_COMPLETED.value,
                user_id=user_id,
                notes="Campaign completed",
                details={"campaign_completed": True, "final_status": task.status},
            ))

        await self.audit.log_status_change(
            "CYCLE_COUNT_CAMPAIGN", campaign.id, CampaignStatus.ACTIVE.value, campaign.status, user_id
        )
        summary = self.summarize(tasks)
        summary["campaign_id"] = str(campaign.id)
        summary["completed_at"] = campaign.end_date.isoformat()
        return summary

    @staticmethod
    def summarize(tasks: List[CycleCountTask]) -> Dict[str, Any]:
        completed = sum(1 for t in tasks if is_status(t.status, CountTaskStatus.COMPLETED))
        variance_tasks = sum(1 for t in tasks if t.variance is not None and t.variance != 0)
        accuracy = (
            round((completed - variance_tasks) / completed * 100, 2) if completed > 0 else 100.0
        )
        return {
            "total_tasks": sum(1 for t in tasks if not is_status(t.status, CountTaskStatus.CANCELLED)),
            "completed_tasks": completed,
            "skipped_tasks": sum(1 for t in tasks if is_status(t.status, CountTaskStatus.SKIPPED)),
            "review_tasks": sum(1 for t in tasks if is_status(t.status, CountTaskStatus.VARIANCE_REVIEW)),
            "variance_tasks": variance_tasks,
            "accuracy_percentage": accuracy,
        }

    async def get_report(self, campaign_id: UUID) -> Dict[str, Any]:
        campaign = await self.get_campaign(campaign_id)
        tasks = list(await campaign.awaitable_attrs.tasks)
        lines = []
        net_variance = 0
        absolute_variance = 0
        for task in tasks:
            variant = await self.db.get(ProductVariant, task.variant_id)
            location = await self.db.get(Location, task.location_id)
            if task.variance:
                net_variance += task.variance
                absolute_variance += abs(task.variance)
            lines.append({
                "task_id": str(task.id),
                "task_number": task.task_number,
                "sku": variant.sku if variant else None,
                "location": location.name if location else None,
                "system_quantity": task.system_quantity,
                "counted_quantity": task.counted_quantity,
                "variance": task.variance,
                "variance_percentage": task.variance_percentage,
                "status": task.status,
                "requires_recount": task.requires_recount,
            })
        return {
            "campaign": {
                "id": str(campaign.id),
                "name": campaign.name,
                "status": campaign.status,
                "count_type": campaign.count_type,
                "start_date": campaign.start_date,
                "end_date": campaign.end_date,
                "total_tasks": campaign.total_tasks,
                "completed_tasks": campaign.completed_tasks,
                "variances_found": campaign.variances_found,
            },
            "summary": {
                **self.summarize(tasks),
                "net_variance_units": net_variance,
                "absolute_variance_units": absolute_variance,
            },
            "tasks": lines,
        }

    # ========================================================================
    # COUNTING
    # ========================================================================

    async def record_count(
        self,
        task_id: UUID,
        counted_quantity: Optional[int],
        user_id: UUID,
        notes: Optional[str] = None,
        status: Optional[CountTaskStatus] = None,
    ) -> CycleCountTask:
        task = await self.get_task(task_id)
        campaign = await self._active_campaign_for(task)

        if not status_in(task.status, *ACTIVE_TASK_STATUSES):
            raise ConflictError(f"Task {task.task_number} is {task.status} and cannot be counted")

        if status is not None:
            if get_enum_value(status) != CountTaskStatus.SKIPPED.value:
                raise ValidationError("Only SKIPPED may be supplied as a count status")
            return await self._skip(task, campaign, user_id, notes)

        if counted_quantity is None:
            raise ValidationError("countedQuantity is required")
        if counted_quantity < 0:
            raise ValidationError("countedQuantity cannot be negative")

        previous_status = task.status
        variance, percentage = compute_variance(task.system_quantity, counted_quantity)
        over_tolerance = exceeds_tolerance(variance, percentage, task.tolerance)

        inventory = await self.inventory.get_or_create(task.variant_id, task.location_id)
        on_hand_before = inventory.quantity_on_hand
        # Stock promised to open orders cannot be counted away without review
        below_reserved = on_hand_before + variance < inventory.quantity_reserved
        over_tolerance = over_tolerance or below_reserved

        task.counted_quantity = counted_quantity
        task.variance = variance
        task.variance_percentage = percentage
        task.counted_by = user_id
        task.counted_at = datetime.now(timezone.utc)
        task.requires_recount = over_tolerance
        if notes:
            task.notes = notes

        event_details = {
            "variance": variance,
            "variance_percentage": percentage,
            "tolerance_exceeded": over_tolerance,
            "below_reserved": below_reserved,
        }
        (await task.awaitable_attrs.events).append(CycleCountEvent(
            event_type=CountEventType.COUNT_RECORDED.value,
            user_id=user_id,
            previous_value=task.system_quantity,
            new_value=counted_quantity,
            notes=notes,
            details=event_details,
        ))

        if over_tolerance:
            transition(task, CountTaskStatus, CountTaskStatus.VARIANCE_REVIEW, entity="Count task")
            (await task.awaitable_attrs.events).append(CycleCountEvent(
                event_type=CountEventType.VARIANCE_NOTED.value,
                user_id=user_id,
                previous_value=task.system_quantity,
                new_value=counted_quantity,
                notes=(
                    f"Count would leave {inventory.quantity_reserved} reserved units uncovered"
                    if below_reserved
                    else f"Variance {variance} exceeds tolerance {task.tolerance}%"
                ),
                details=event_details,
            ))
        else:
            if variance != 0:
                self._post_adjustment(task, inventory, user_id, f"Cycle count adjustment: {notes or ''}".strip())
            transition(task, CountTaskStatus, CountTaskStatus.COMPLETED, entity="Count task")
            task.completed_at = datetime.now(timezone.utc)
        inventory.last_counted_at = datetime.now(timezone.utc)

        await self.audit.log(
            action="COUNT_RECORDED",
            entity_type="CYCLE_COUNT_TASK",
            entity_id=task.id,
            user_id=user_id,
            old_values={
                "status": previous_status,
                "system_quantity": task.system_quantity,
                "quantity_on_hand": on_hand_before,
            },
            new_values={
                "status": task.status,
                "counted_quantity": counted_quantity,
                "variance": variance,
                "variance_percentage": percentage,
                "quantity_on_hand": inventory.quantity_on_hand,
            },
        )
        await self.refresh_campaign(campaign)
        return task

    async def _skip(
        self,
        task: CycleCountTask,
        campaign: CycleCountCampaign,
        user_id: UUID,
        notes: Optional[str],
    ) -> CycleCountTask:
        previous = transition(task, CountTaskStatus, CountTaskStatus.SKIPPED, entity="Count task")
        task.completed_at = datetime.now(timezone.utc)
        if notes:
            task.notes = notes
        (await task.awaitable_attrs.events).append(CycleCountEvent(
            event_type=CountEventType.COUNT_SKIPPED.value,
            user_id=user_id,
            previous_value=task.system_quantity,
            notes=notes,
        ))
        await self.audit.log_status_change("CYCLE_COUNT_TASK", task.id, previous, task.status, user_id, notes)
        await self.refresh_campaign(campaign)
        return task

    def _post_adjustment(
        self,
        task: CycleCountTask,
        inventory: Inventory,
        user_id: UUID,
        notes: str,
    ) -> None:
        self.inventory.adjust_on_hand(
            inventory,
            task.variance,
            TransactionType.COUNT,
            ReferenceType.CYCLE_COUNT,
            task.id,
            user_id,
            notes,
            {"system_quantity": task.system_quantity, "counted_quantity": task.counted_quantity},
        )

    # ========================================================================
    # SUPERVISOR ACTIONS
    # ========================================================================

    async def approve_variance(
        self,
        task_id: UUID,
        approver: User,
        notes: Optional[str] = None,
    ) -> CycleCountTask:
        """Accept a reviewed variance and post the adjustment."""
        if not approver.is_supervisor:
            raise ForbiddenError("Forbidden: Approved by admin or manager only")

        task = await self.get_task(task_id)
        campaign = await self.get_campaign(task.campaign_id)
        if not is_status(task.status, CountTaskStatus.VARIANCE_REVIEW):
            raise ConflictError(f"Task {task.task_number} is {task.status}, not awaiting variance review")

        inventory = await self.inventory.get_or_create(task.variant_id, task.location_id)
        on_hand_before = inventory.quantity_on_hand
        if task.variance:
            self._post_adjustment(task, inventory, approver.id, f"Cycle count adjustment (approved): {notes or ''}".strip())

        previous = transition(task, CountTaskStatus, CountTaskStatus.COMPLETED, entity="Count task")
        task.requires_recount = False
        task.completed_at = datetime.now(timezone.utc)
        if notes:
            task.notes = f"{task.notes or ''}\n[SUPERVISOR APPROVED] {notes}".strip()
        (await task.awaitable_attrs.events).append(CycleCountEvent(
            event_type=CountEventType.TASK_COMPLETED.value,
            user_id=approver.id,
            previous_value=task.system_quantity,
            new_value=task.counted_quantity,
            notes=f"Variance approved by supervisor{': ' + notes if notes else ''}",
            details={
                "action": "VARIANCE_APPROVED",
                "previous_status": previous,
                "variance": task.variance,
                "variance_percentage": task.variance_percentage,
            },
        ))

        await self.audit.log(
            action="VARIANCE_APPROVED",
            entity_type="CYCLE_COUNT_TASK",
            entity_id=task.id,
            user_id=approver.id,
            old_values={"status": previous, "quantity_on_hand": on_hand_before},
            new_values={"status": task.status, "quantity_on_hand": inventory.quantity_on_hand},
        )
        if is_status(campaign.status, CampaignStatus.ACTIVE):
            await self.refresh_campaign(campaign)
        return task

    async def request_recount(
        self,
        task_id: UUID,
        requester: User,
        reason: Optional[str] = None,
        assigned_to: Optional[UUID] = None,
    ) -> CycleCountTask:
        """Send a task back for counting. Inventory is not touched."""
        if not requester.is_supervisor:
            raise ForbiddenError("Forbidden: Recounts are requested by admin or manager only")

        task = await self.get_task(task_id)
        campaign = await self._active_campaign_for(task)

        assignee_id = assigned_to or task.assigned_to
        if assignee_id:
            await self.users.get_assignable(assignee_id)

        previous = transition(task, CountTaskStatus, CountTaskStatus.RECOUNT_REQUIRED, entity="Count task")
        task.requires_recount = True
        task.recount_reason = reason
        task.assigned_to = assignee_id
        task.completed_at = None
        (await task.awaitable_attrs.events).append(CycleCountEvent(
            event_type=CountEventType.RECOUNT_REQUESTED.value,
            user_id=requester.id,
            previous_value=task.counted_quantity,
            notes=reason,
            details={"previous_status": previous, "assigned_to": str(assignee_id) if assignee_id else None},
        ))

        if assignee_id:
            variant = await self.db.get(ProductVariant, task.variant_id)
            location = await self.db.get(Location, task.location_id)
            sku = variant.sku if variant else str(task.variant_id)
            where = location.name if location else str(task.location_id)
            await self.notifications.notify(
                assignee_id,
                NotificationType.RECOUNT_ASSIGNED,
                title="Recount requested",
                message=f"Please recount {sku} at {where}" + (f": {reason}" if reason else ""),
                link=f"/inventory/count/{campaign.id}",
                data={"task_id": str(task.id), "campaign_id": str(campaign.id)},
            )

        await self.audit.log_status_change(
            "CYCLE_COUNT_TASK", task.id, previous, task.status, requester.id, reason
        )
        await self.refresh_campaign(campaign)
        return task
