"""
Work Task Service

Packing and shipping stations work from WorkTasks: one TaskItem per order
line. Completing the last item completes the task and advances its orders by
one step according to the task type. Picking is not a work task; it runs
through pick lists so every pick is scan checked and consumes stock.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, List, Sequence, Iterable, Dict
import uuid

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.core.enum_utils import get_enum_value, is_status, status_in
from stockroom.core.exceptions import ConflictError, NotFoundError, ValidationError
from stockroom.core.state_machine import transition, is_terminal
from stockroom.models.notification import NotificationType
from stockroom.models.order import Order, OrderStatus
from stockroom.models.work_task import (
    WorkTask, TaskItem, TaskEvent, WorkTaskType, WorkTaskStatus, TaskItemStatus, TaskEventType,
)
from stockroom.services.audit_service import AuditService
from stockroom.services.notification_service import NotificationService
from stockroom.services.order_status_service import OrderStatusService
from stockroom.services.user_service import UserService


logger = logging.getLogger(__name__)

# Task type -> (order status required, order status on completion)
ORDER_STEP: Dict[str, tuple] = {
    WorkTaskType.PACKING.value: (OrderStatus.PICKED, OrderStatus.PACKED),
    WorkTaskType.SHIPPING.value: (OrderStatus.PACKED, OrderStatus.SHIPPED),
}

TASK_PREFIX = {
    WorkTaskType.PACKING.value: "PACK",
    WorkTaskType.SHIPPING.value: "SHIP",
}


@dataclass
class TaskProgress:
    total_items: int
    completed_items: int
    total_orders: int
    completed_orders: int
    open_items: int

    @property
    def is_complete(self) -> bool:
        return self.total_items > 0 and self.open_items == 0


def compute_task_progress(items: Iterable[TaskItem]) -> TaskProgress:
    """Counters of a work task derived from its items. An order is complete
    when all of its items are terminal."""
    total = completed = open_ = 0
    orders: Dict[uuid.UUID, bool] = {}
    for item in items:
        total += 1
        terminal = is_terminal(TaskItemStatus, item.status)
        if is_status(item.status, TaskItemStatus.COMPLETED):
            completed += 1
        if not terminal:
            open_ += 1
        orders[item.order_id] = orders.get(item.order_id, True) and terminal
    return TaskProgress(
        total_items=total,
        completed_items=completed,
        total_orders=len(orders),
        completed_orders=sum(1 for done in orders.values() if done),
        open_items=open_,
    )


class WorkTaskService:

    def __init__(self, db: AsyncSession, notifications: Optional[NotificationService] = None):
        self.db = db
        self.audit = AuditService(db)
        self.order_status = OrderStatusService(db)
        self.notifications = notifications or NotificationService(db)
        self.users = UserService(db)

    async def generate_task_number(self, task_type: str) -> str:
        """Generate unique task number, e.g. PACK-YYYYMMDD-XXXX"""
        today = datetime.now(timezone.utc).strftime("%Y%m%d")
        prefix = f"{TASK_PREFIX[task_type]}-{today}-"

        stmt = select(func.count(WorkTask.id)).where(WorkTask.task_number.like(f"{prefix}%"))
        count = (await self.db.execute(stmt)).scalar() or 0
        return f"{prefix}{(count + 1):04d}"

    async def get_task(self, task_id: uuid.UUID) -> WorkTask:
        task = await self.db.get(WorkTask, task_id)
        if task is None:
            raise NotFoundError("Task not found")
        return task

    async def list_tasks(
        self,
        task_type: Optional[WorkTaskType] = None,
        status: Optional[WorkTaskStatus] = None,
        assigned_to: Optional[uuid.UUID] = None,
        limit: int = 50,
    ) -> List[WorkTask]:
        stmt = select(WorkTask)
        if task_type:
            stmt = stmt.where(WorkTask.type == get_enum_value(task_type))
        if status:
            stmt = stmt.where(WorkTask.status == get_enum_value(status))
        if assigned_to:
            stmt = stmt.where(WorkTask.assigned_to == assigned_to)
        stmt = stmt.order_by(WorkTask.priority, WorkTask.created_at).limit(limit)
        return list((await self.db.execute(stmt)).scalars().all())

    async def _event(
        self,
        task: WorkTask,
        event_type: TaskEventType,
        user_id: Optional[uuid.UUID],
        data: Optional[dict] = None,
    ) -> None:
        (await task.awaitable_attrs.events).append(TaskEvent(
            event_type=event_type.value,
            user_id=user_id,
            data=data or {},
        ))

    # ==================== CREATION ====================

    async def create_task(
        self,
        order_ids: Sequence[uuid.UUID],
        task_type: WorkTaskType = WorkTaskType.PACKING,
        user_id: Optional[uuid.UUID] = None,
        assigned_to: Optional[uuid.UUID] = None,
        priority: int = 5,
        notes: Optional[str] = None,
    ) -> WorkTask:
        task_type = get_enum_value(task_type)
        if task_type == "PICKING":
            raise ValidationError("Picking runs through pick lists, not work tasks")
        if task_type not in ORDER_STEP:
            raise ValidationError(f"Unknown task type: {task_type}")
        if not order_ids:
            raise ValidationError("At least one order is required")

        required_status, _ = ORDER_STEP[task_type]
        orders = (await self.db.execute(
            select(Order).where(Order.id.in_(list(order_ids)))
        )).scalars().all()
        found = {order.id for order in orders}
        missing = [str(order_id) for order_id in order_ids if order_id not in found]
        if missing:
            raise NotFoundError(f"Order(s) not found: {', '.join(missing)}")
        for order in orders:
            if not is_status(order.status, required_status):
                raise ConflictError(
                    f"Order {order.order_number} is {order.status}; "
                    f"{task_type} tasks need {required_status.value} orders"
                )
        if assigned_to:
            await self.users.get_assignable(assigned_to)

        task = WorkTask(
            task_number=await self.generate_task_number(task_type),
            type=task_type,
            status=WorkTaskStatus.PENDING.value,
            priority=priority,
            created_by=user_id,
            notes=notes,
        )
        self.db.add(task)

        sequence = 0
        for order in orders:
            for order_item in await order.awaitable_attrs.items:
                sequence += 1
                task.items.append(TaskItem(
                    order_id=order.id,
                    order_item_id=order_item.id,
                    quantity_required=order_item.quantity,
                    quantity_completed=0,
                    sequence=sequence,
                    status=TaskItemStatus.PENDING.value,
                ))
        if not task.items:
            raise ConflictError("Selected orders have no items")

        self._apply_progress(task, compute_task_progress(task.items))
        await self.db.flush()
        await self._event(task, TaskEventType.TASK_CREATED, user_id, {
            "orders": [str(order.id) for order in orders],
        })
        if assigned_to:
            await self._assign(task, assigned_to, user_id)

        await self.audit.log(
            action="CREATE",
            entity_type="WORK_TASK",
            entity_id=task.id,
            user_id=user_id,
            new_values={"task_number": task.task_number, "type": task_type, "items": task.total_items},
        )
        logger.info(f"Created {task_type} task {task.task_number} for {len(orders)} order(s)")
        return task

    # ==================== ASSIGNMENT ====================

    async def _assign(self, task: WorkTask, assignee_id: uuid.UUID, user_id: Optional[uuid.UUID]) -> None:
        previous = task.assigned_to
        task.assigned_to = assignee_id
        if not is_status(task.status, WorkTaskStatus.IN_PROGRESS):
            transition(task, WorkTaskStatus, WorkTaskStatus.ASSIGNED, entity="Task")
        await self._event(task, TaskEventType.TASK_REASSIGNED, user_id, {
            "from": str(previous) if previous else None,
            "to": str(assignee_id),
        })
        await self.notifications.notify(
            assignee_id,
            NotificationType.TASK_ASSIGNED,
            title=f"{task.type.title()} task assigned",
            message=f"Task {task.task_number} has been assigned to you",
            link=f"/packing-tasks/{task.id}",
            data={"task_id": str(task.id)},
        )

    async def reassign(self, task_id: uuid.UUID, assignee_id: uuid.UUID, user_id: uuid.UUID) -> WorkTask:
        task = await self.get_task(task_id)
        if is_terminal(WorkTaskStatus, task.status):
            raise ConflictError(f"Task {task.task_number} is {task.status}")
        await self.users.get_assignable(assignee_id)
        await self._assign(task, assignee_id, user_id)
        return task

    # ==================== PROGRESSION ====================

    async def complete_item(
        self,
        task_id: uuid.UUID,
        item_id: uuid.UUID,
        user_id: uuid.UUID,
        notes: Optional[str] = None,
    ) -> TaskItem:
        task = await self.get_task(task_id)
        item = next((i for i in await task.awaitable_attrs.items if i.id == item_id), None)
        if item is None:
            raise NotFoundError("Task item not found")

        if status_in(task.status, WorkTaskStatus.PENDING, WorkTaskStatus.ASSIGNED):
            transition(task, WorkTaskStatus, WorkTaskStatus.IN_PROGRESS, entity="Task")
            task.started_at = datetime.now(timezone.utc)
            if task.assigned_to is None:
                task.assigned_to = user_id
            await self._event(task, TaskEventType.TASK_STARTED, user_id)
        elif not is_status(task.status, WorkTaskStatus.IN_PROGRESS):
            raise ConflictError(f"Task {task.task_number} is {task.status}")

        transition(item, TaskItemStatus, TaskItemStatus.COMPLETED, entity="Task item")
        item.quantity_completed = item.quantity_required
        item.completed_by = user_id
        item.completed_at = datetime.now(timezone.utc)
        if notes:
            item.notes = notes
        await self._event(task, TaskEventType.ITEM_COMPLETED, user_id, {"item_id": str(item.id)})

        await self.refresh_progress(task, user_id)
        return item

    @staticmethod
    def _apply_progress(task: WorkTask, progress: TaskProgress) -> None:
        task.total_items = progress.total_items
        task.completed_items = progress.completed_items
        task.total_orders = progress.total_orders
        task.completed_orders = progress.completed_orders

    async def refresh_progress(self, task: WorkTask, user_id: Optional[uuid.UUID] = None) -> TaskProgress:
        await self.db.flush()
        items = (await self.db.execute(
            select(TaskItem).where(TaskItem.task_id == task.id)
        )).scalars().all()
        progress = compute_task_progress(items)
        self._apply_progress(task, progress)

        if progress.is_complete and is_status(task.status, WorkTaskStatus.IN_PROGRESS):
            transition(task, WorkTaskStatus, WorkTaskStatus.COMPLETED, entity="Task")
            task.completed_at = datetime.now(timezone.utc)
            await self._event(task, TaskEventType.TASK_COMPLETED, user_id, {
                "completed_items": progress.completed_items,
                "completed_orders": progress.completed_orders,
            })
            await self._advance_orders(task, {item.order_id for item in items}, user_id)
            logger.info(f"Task {task.task_number} completed")
        return progress

    async def _advance_orders(self, task: WorkTask, order_ids, user_id: Optional[uuid.UUID]) -> None:
        required_status, next_status = ORDER_STEP[task.type]
        for order_id in order_ids:
            order = await self.db.get(Order, order_id)
            if order is not None and is_status(order.status, required_status):
                await self.order_status.change_status(
                    order, next_status, user_id, f"{task.type.title()} task {task.task_number} completed"
                )
