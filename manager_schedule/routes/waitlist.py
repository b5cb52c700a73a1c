from fastapi import APIRouter, Depends

from manager_schedule.dependencies.services import get_waitlist_service
from manager_schedule.schemas.waitlist import WaitlistRequest, WaitlistView
from manager_schedule.services import WaitlistService

router = APIRouter()


@router.post("/view", response_model=WaitlistView)
async def waitlist_view(
    req: WaitlistRequest,
    service: WaitlistService = Depends(get_waitlist_service),
):
    # Source failures come back as an empty view carrying ``error``.
    return await service.view(req)
