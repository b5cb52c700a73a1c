from fastapi import APIRouter, Depends

from manager_schedule.config import Settings, get_settings

router = APIRouter()


@router.get("/health")
def health(settings: Settings = Depends(get_settings)):
    return {
        "ok": True,
        "mock_data": settings.use_mock_data or settings.supabase_url is None,
        "waitlist_source": settings.waitlist_source,
    }
