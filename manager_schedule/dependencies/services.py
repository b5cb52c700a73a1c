from __future__ import annotations

from datetime import timedelta
from functools import lru_cache

from fastapi import Depends

from manager_schedule.clients.notifications import NotificationClient
from manager_schedule.clients.supabase import SupabaseClient
from manager_schedule.config import Settings, get_settings
from manager_schedule.services import (
    AppointmentMoveCoordinator,
    NotificationService,
    PersonalAppointmentEditor,
    ScheduleService,
    StationConfigService,
    StationDailyConfigEditor,
    WaitlistService,
)
from manager_schedule.services.board_state import BoardState
from manager_schedule.services.schedule_cache import ScheduleCache
from manager_schedule.services.waitlist import (
    EmptyWaitlistSource,
    StoreWaitlistSource,
    WaitlistSource,
)


@lru_cache(maxsize=1)
def get_supabase_client_cached() -> SupabaseClient:
    settings = get_settings()
    return SupabaseClient(
        str(settings.supabase_url) if settings.supabase_url else None,
        api_key=settings.supabase_key,
        timeout=settings.supabase_timeout,
        use_mock_data=settings.use_mock_data,
    )


@lru_cache(maxsize=1)
def get_notification_client_cached() -> NotificationClient:
    settings = get_settings()
    return NotificationClient(
        str(settings.notification_webhook_url) if settings.notification_webhook_url else None,
        token=settings.notification_token,
        timeout=settings.notification_timeout,
        enabled=settings.notifications_enabled,
    )


@lru_cache(maxsize=1)
def get_schedule_cache() -> ScheduleCache:
    return ScheduleCache()


@lru_cache(maxsize=1)
def get_board_state() -> BoardState:
    return BoardState()


@lru_cache(maxsize=1)
def get_station_config_editor() -> StationDailyConfigEditor:
    return StationDailyConfigEditor()


def get_supabase_client(settings: Settings = Depends(get_settings)) -> SupabaseClient:
    return get_supabase_client_cached()


def get_notification_client(settings: Settings = Depends(get_settings)) -> NotificationClient:
    return get_notification_client_cached()


def get_schedule_service(
    client: SupabaseClient = Depends(get_supabase_client),
    cache: ScheduleCache = Depends(get_schedule_cache),
) -> ScheduleService:
    return ScheduleService(client, cache=cache)


def get_notification_service(
    client: NotificationClient = Depends(get_notification_client),
) -> NotificationService:
    return NotificationService(client)


def get_personal_editor(
    schedule: ScheduleService = Depends(get_schedule_service),
    board: BoardState = Depends(get_board_state),
) -> PersonalAppointmentEditor:
    return PersonalAppointmentEditor(schedule, board)


def get_move_coordinator(
    schedule: ScheduleService = Depends(get_schedule_service),
    board: BoardState = Depends(get_board_state),
    notifications: NotificationService = Depends(get_notification_service),
    personal: PersonalAppointmentEditor = Depends(get_personal_editor),
    settings: Settings = Depends(get_settings),
) -> AppointmentMoveCoordinator:
    return AppointmentMoveCoordinator(
        schedule,
        board,
        notifications=notifications,
        personal=personal,
        minimum=timedelta(minutes=settings.min_appointment_minutes),
    )


def get_waitlist_source(
    client: SupabaseClient = Depends(get_supabase_client),
    settings: Settings = Depends(get_settings),
) -> WaitlistSource:
    if settings.waitlist_source == "store":
        return StoreWaitlistSource(client)
    return EmptyWaitlistSource()


def get_waitlist_service(
    source: WaitlistSource = Depends(get_waitlist_source),
) -> WaitlistService:
    return WaitlistService(source)


def get_station_config_service(
    client: SupabaseClient = Depends(get_supabase_client),
    cache: ScheduleCache = Depends(get_schedule_cache),
) -> StationConfigService:
    return StationConfigService(client, cache=cache)
