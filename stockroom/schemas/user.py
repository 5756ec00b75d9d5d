"""Schemas for the current user's work queue."""
from typing import List

from pydantic import BaseModel

from stockroom.schemas.cycle_count import CountTaskResponse
from stockroom.schemas.picklist import PickListResponse
from stockroom.schemas.work_task import WorkTaskResponse


class MyWorkResponse(BaseModel):
    pick_lists: List[PickListResponse] = []
    work_tasks: List[WorkTaskResponse] = []
    count_tasks: List[CountTaskResponse] = []
