"""Users as assignees, and the per-user work queue."""
from typing import Dict, Any, List
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.core.enum_utils import status_in
from stockroom.core.exceptions import ValidationError
from stockroom.models.cycle_count import CycleCountTask, CountTaskStatus
from stockroom.models.picklist import PickList, PickListStatus
from stockroom.models.user import User, UserRole
from stockroom.models.work_task import WorkTask, WorkTaskStatus


ASSIGNABLE_ROLES = (UserRole.ADMIN, UserRole.MANAGER, UserRole.STAFF)


class UserService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_assignable(self, user_id: uuid.UUID) -> User:
        """Return an active user who may be assigned warehouse work."""
        user = await self.db.get(User, user_id)
        if user is None or not user.is_active:
            raise ValidationError("Assigned user not found")
        if not status_in(user.role, *ASSIGNABLE_ROLES):
            raise ValidationError(f"User role {user.role} cannot be assigned warehouse tasks")
        return user

    async def my_work(self, user_id: uuid.UUID) -> Dict[str, List[Any]]:
        """Open pick lists, work tasks and count tasks assigned to a user."""
        pick_lists = (await self.db.execute(
            select(PickList)
            .where(
                PickList.assigned_to == user_id,
                PickList.status.in_([
                    PickListStatus.ASSIGNED.value,
                    PickListStatus.IN_PROGRESS.value,
                    PickListStatus.PAUSED.value,
                ]),
            )
            .order_by(PickList.priority, PickList.created_at)
        )).scalars().all()

        work_tasks = (await self.db.execute(
            select(WorkTask)
            .where(
                WorkTask.assigned_to == user_id,
                WorkTask.status.in_([
                    WorkTaskStatus.ASSIGNED.value,
                    WorkTaskStatus.IN_PROGRESS.value,
                ]),
            )
            .order_by(WorkTask.priority, WorkTask.created_at)
        )).scalars().all()

        count_tasks = (await self.db.execute(
            select(CycleCountTask)
            .where(
                CycleCountTask.assigned_to == user_id,
                CycleCountTask.status.in_([
                    CountTaskStatus.PENDING.value,
                    CountTaskStatus.IN_PROGRESS.value,
                    CountTaskStatus.RECOUNT_REQUIRED.value,
                ]),
            )
            .order_by(CycleCountTask.created_at)
        )).scalars().all()

        return {
            "pick_lists": list(pick_lists),
            "work_tasks": list(work_tasks),
            "count_tasks": list(count_tasks),
        }
