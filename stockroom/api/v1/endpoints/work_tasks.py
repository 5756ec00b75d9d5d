"""Packing and shipping task API endpoints."""
from typing import List, Optional
import uuid

from fastapi import APIRouter, Query

from stockroom.api.deps import DB, CurrentUser, Notifications, Supervisor
from stockroom.database import unit_of_work
from stockroom.models.work_task import WorkTaskStatus, WorkTaskType
from stockroom.schemas.work_task import (
    TaskItemCompleteRequest,
    TaskItemResponse,
    WorkTaskAssignRequest,
    WorkTaskCreate,
    WorkTaskDetailResponse,
    WorkTaskResponse,
)
from stockroom.services.work_task_service import WorkTaskService


router = APIRouter()


# ==================== PACKING TASKS ====================

@router.post("/packing-tasks", response_model=WorkTaskDetailResponse)
async def create_packing_task(
    data: WorkTaskCreate,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
):
    async with unit_of_work(db, notifications):
        task = await WorkTaskService(db, notifications).create_task(
            data.order_ids,
            task_type=data.type,
            user_id=current_user.id,
            assigned_to=data.assigned_to,
            priority=data.priority,
            notes=data.notes,
        )
    return WorkTaskDetailResponse.model_validate(task)


@router.get("/packing-tasks", response_model=List[WorkTaskResponse])
async def list_packing_tasks(
    db: DB,
    current_user: CurrentUser,
    task_type: Optional[WorkTaskType] = Query(None, alias="type"),
    status: Optional[WorkTaskStatus] = Query(None),
    assigned_to: Optional[uuid.UUID] = Query(None, alias="assignedTo"),
    limit: int = Query(50, ge=1, le=200),
):
    tasks = await WorkTaskService(db).list_tasks(task_type, status, assigned_to, limit)
    return [WorkTaskResponse.model_validate(t) for t in tasks]


@router.get("/packing-tasks/{task_id}", response_model=WorkTaskDetailResponse)
async def get_packing_task(
    task_id: uuid.UUID,
    db: DB,
    current_user: CurrentUser,
):
    task = await WorkTaskService(db).get_task(task_id)
    return WorkTaskDetailResponse.model_validate(task)


@router.post("/packing-tasks/{task_id}/reassign", response_model=WorkTaskDetailResponse)
async def reassign_packing_task(
    task_id: uuid.UUID,
    data: WorkTaskAssignRequest,
    db: DB,
    notifications: Notifications,
    current_user: Supervisor,
):
    async with unit_of_work(db, notifications):
        task = await WorkTaskService(db, notifications).reassign(task_id, data.assigned_to, current_user.id)
    return WorkTaskDetailResponse.model_validate(task)


# ==================== TASK ITEMS ====================

@router.post("/work-tasks/{task_id}/items/{item_id}/complete", response_model=TaskItemResponse)
async def complete_task_item(
    task_id: uuid.UUID,
    item_id: uuid.UUID,
    db: DB,
    notifications: Notifications,
    current_user: CurrentUser,
    data: TaskItemCompleteRequest = TaskItemCompleteRequest(),
):
    async with unit_of_work(db, notifications):
        item = await WorkTaskService(db, notifications).complete_item(
            task_id, item_id, current_user.id, data.notes
        )
    return TaskItemResponse.model_validate(item)
