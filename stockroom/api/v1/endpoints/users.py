"""Current user endpoints."""
from fastapi import APIRouter

from stockroom.api.deps import DB, CurrentUser
from stockroom.schemas.cycle_count import CountTaskResponse
from stockroom.schemas.picklist import PickListResponse
from stockroom.schemas.user import MyWorkResponse
from stockroom.schemas.work_task import WorkTaskResponse
from stockroom.services.user_service import UserService


router = APIRouter()


@router.get("/my-work", response_model=MyWorkResponse)
async def get_my_work(
    db: DB,
    current_user: CurrentUser,
):
    """Pick lists, packing tasks and count tasks assigned to the caller."""
    work = await UserService(db).my_work(current_user.id)
    return MyWorkResponse(
        pick_lists=[PickListResponse.model_validate(p) for p in work["pick_lists"]],
        work_tasks=[WorkTaskResponse.model_validate(t) for t in work["work_tasks"]],
        count_tasks=[CountTaskResponse.model_validate(t) for t in work["count_tasks"]],
    )
