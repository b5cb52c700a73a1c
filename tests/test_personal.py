import asyncio
from datetime import datetime

import pytest

from manager_schedule.schemas.schedule import PersonalAppointmentEdit, ScheduleQuery
from manager_schedule.services.board_state import BoardState
from manager_schedule.services.exceptions import NotFoundError, ScheduleValidationError
from manager_schedule.services.mock_store import SEED_DATE, SEED_TZ, get_mock_store, reset_mock_store
from manager_schedule.services.moves import AppointmentMoveCoordinator
from manager_schedule.services.personal import PersonalAppointmentEditor
from manager_schedule.services.schedule import ScheduleService
from manager_schedule.services.schedule_cache import ScheduleCache

QUERY = ScheduleQuery(date=SEED_DATE)


@pytest.fixture(autouse=True)
def _reset_store() -> None:
    reset_mock_store()
    yield
    reset_mock_store()


class MockLatencyClient:
    def __init__(self) -> None:
        self.use_mock_data = True

    async def simulate_latency(self) -> None:
        return None


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(SEED_DATE.year, SEED_DATE.month, SEED_DATE.day, hour, minute, tzinfo=SEED_TZ)


def _editor():
    schedule = ScheduleService(MockLatencyClient(), cache=ScheduleCache())
    board = BoardState(selected_date=SEED_DATE)
    return PersonalAppointmentEditor(schedule, board), schedule, board


def test_confirm_updates_name_time_and_station() -> None:
    editor, schedule, _ = _editor()
    edit = PersonalAppointmentEdit(
        name="  Team meeting ",
        start_at=_at(14),
        end_at=_at(14, 30),
        station_id="st-2",
        notes="Bring the roster",
    )

    outcome = asyncio.run(editor.confirm(QUERY, "APT-00003", edit))

    assert outcome.status == "committed"
    assert outcome.appointment.personal_description == "Team meeting"
    assert outcome.appointment.station_name == "Table 2"
    assert outcome.appointment.duration_minutes == 30
    stored = asyncio.run(get_mock_store().appointments.get("APT-00003"))
    assert stored.station_id == "st-2"
    assert stored.internal_notes == "Bring the roster"
    cached = schedule.cache.get(QUERY.cache_key).find_appointment("APT-00003")
    assert cached.start_at == _at(14)


def test_confirm_requires_a_name() -> None:
    editor, _, _ = _editor()
    edit = PersonalAppointmentEdit(name="   ", start_at=_at(14), end_at=_at(15), station_id="st-3")

    with pytest.raises(ScheduleValidationError):
        asyncio.run(editor.confirm(QUERY, "APT-00003", edit))


def test_confirm_requires_resolved_time_and_station() -> None:
    editor, _, _ = _editor()
    edit = PersonalAppointmentEdit(name="Break", start_at=_at(14), end_at=_at(15))

    with pytest.raises(ScheduleValidationError):
        asyncio.run(editor.confirm(QUERY, "APT-00003", edit))


def test_confirm_refuses_customer_appointments() -> None:
    editor, _, _ = _editor()
    edit = PersonalAppointmentEdit(name="Break", start_at=_at(14), end_at=_at(15), station_id="st-1")

    with pytest.raises(ScheduleValidationError):
        asyncio.run(editor.confirm(QUERY, "APT-00001", edit))


def test_confirm_unknown_appointment_raises_not_found() -> None:
    editor, _, _ = _editor()
    edit = PersonalAppointmentEdit(name="Break", start_at=_at(14), end_at=_at(15), station_id="st-1")

    with pytest.raises(NotFoundError):
        asyncio.run(editor.confirm(QUERY, "APT-99999", edit))


def test_pending_resize_duration_decides_new_end() -> None:
    editor, schedule, board = _editor()
    coordinator = AppointmentMoveCoordinator(schedule, board, personal=editor)
    asyncio.run(coordinator.begin_resize(QUERY, "APT-00003", _at(14, 15)))

    edit = PersonalAppointmentEdit(name="Staff lunch", start_at=_at(15), end_at=_at(15, 10), station_id="st-3")
    outcome = asyncio.run(editor.confirm(QUERY, "APT-00003", edit))

    assert outcome.status == "committed"
    assert outcome.appointment.end_at == _at(16, 15)
    assert board.pending_resize is None


def test_failed_commit_reverts_cache_and_keeps_pending_resize() -> None:
    editor, schedule, board = _editor()
    coordinator = AppointmentMoveCoordinator(schedule, board, personal=editor)
    asyncio.run(coordinator.begin_resize(QUERY, "APT-00003", _at(14)))
    before = schedule.cache.get(QUERY.cache_key).model_dump_json()

    edit = PersonalAppointmentEdit(name="Staff lunch", start_at=_at(13), end_at=_at(14), station_id="st-missing")
    outcome = asyncio.run(editor.confirm(QUERY, "APT-00003", edit))

    assert outcome.status == "rolled_back"
    assert outcome.error_kind == "not_found"
    assert schedule.cache.get(QUERY.cache_key).model_dump_json() == before
    assert board.pending_resize_for("APT-00003") is not None


def test_cancel_reverts_pending_resize() -> None:
    editor, schedule, board = _editor()
    coordinator = AppointmentMoveCoordinator(schedule, board, personal=editor)
    asyncio.run(coordinator.begin_resize(QUERY, "APT-00003", _at(15)))

    restored = asyncio.run(editor.cancel(QUERY, "APT-00003"))

    assert restored.end_at == _at(13, 45)
    assert board.pending_resize is None
    assert schedule.cache.get(QUERY.cache_key).find_appointment("APT-00003").duration_minutes == 45


def test_cancel_without_pending_resize_refetches() -> None:
    editor, schedule, _ = _editor()
    asyncio.run(schedule.load(QUERY))
    schedule.cache.patch_appointment(QUERY.cache_key, "APT-00003", personal_description="Draft")

    restored = asyncio.run(editor.cancel(QUERY, "APT-00003"))

    assert restored.personal_description == "Staff lunch"
