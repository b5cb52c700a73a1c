import asyncio
from datetime import date, datetime
from unittest.mock import AsyncMock

import pytest

from manager_schedule.clients.notifications import NotificationClient
from manager_schedule.schemas.schedule import HourSelection, MoveCommitResult, MoveProposal, ScheduleQuery
from manager_schedule.services.board_state import BoardState, ProposalState
from manager_schedule.services.exceptions import (
    CommitError,
    DownstreamServiceError,
    NotFoundError,
    ProposalInFlightError,
    ScheduleValidationError,
)
from manager_schedule.services.mock_store import SEED_DATE, SEED_TZ, get_mock_store, reset_mock_store
from manager_schedule.services.moves import AppointmentMoveCoordinator
from manager_schedule.services.notifications import NotificationService
from manager_schedule.services.schedule import ScheduleService
from manager_schedule.services.schedule_cache import ScheduleCache

QUERY = ScheduleQuery(date=SEED_DATE)


@pytest.fixture(autouse=True)
def _reset_store() -> None:
    reset_mock_store()
    yield
    reset_mock_store()


class MockLatencyClient:
    """Client stub that records simulate_latency calls."""

    def __init__(self) -> None:
        self.use_mock_data = True
        self.latency_called = False

    async def simulate_latency(self) -> None:
        self.latency_called = True


def _at(hour: int, minute: int = 0, day: date = SEED_DATE) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=SEED_TZ)


def _coordinator(notifications=None):
    schedule = ScheduleService(MockLatencyClient(), cache=ScheduleCache())
    board = BoardState(selected_date=SEED_DATE)
    coordinator = AppointmentMoveCoordinator(schedule, board, notifications=notifications)
    return coordinator, schedule, board


def test_move_shifts_end_and_commits_to_store() -> None:
    coordinator, schedule, board = _coordinator()

    outcome = asyncio.run(
        coordinator.move(
            QUERY,
            MoveProposal(appointment_id="APT-00001", target_station_id="st-2", target_start=_at(10, 15)),
        )
    )

    assert outcome.status == "committed"
    assert outcome.appointment.station_id == "st-2"
    assert outcome.appointment.station_name == "Table 2"
    assert outcome.appointment.end_at == _at(10, 45)
    assert outcome.appointment.duration_minutes == 30
    assert board.proposal_state("APT-00001") is ProposalState.COMMITTED

    cached = schedule.cache.get(QUERY.cache_key).find_appointment("APT-00001")
    assert cached.station_id == "st-2"
    stored = asyncio.run(get_mock_store().appointments.get("APT-00001"))
    assert stored.start_at == _at(10, 15)
    assert stored.end_at == _at(10, 45)


def test_failed_move_restores_snapshot_exactly() -> None:
    coordinator, schedule, board = _coordinator()
    asyncio.run(schedule.load(QUERY))
    before = schedule.cache.get(QUERY.cache_key).model_dump_json()

    outcome = asyncio.run(
        coordinator.move(
            QUERY,
            MoveProposal(appointment_id="APT-00001", target_station_id="st-missing", target_start=_at(15)),
        )
    )

    assert outcome.status == "rolled_back"
    assert outcome.error_kind == "not_found"
    assert "st-missing" in outcome.error
    assert outcome.appointment.station_id == "st-1"
    assert schedule.cache.get(QUERY.cache_key).model_dump_json() == before
    assert board.proposal_state("APT-00001") is ProposalState.ROLLED_BACK


def test_failed_move_does_not_undo_a_concurrent_commit() -> None:
    coordinator, schedule, board = _coordinator()
    asyncio.run(schedule.load(QUERY))
    commit_to_store = schedule.commit_move

    async def interleaved():
        other_committed = asyncio.Event()

        async def commit_move(request):
            if request.appointment_id == "APT-00001":
                await other_committed.wait()
                raise CommitError("Station is closed")
            result = await commit_to_store(request)
            other_committed.set()
            return result

        schedule.commit_move = commit_move
        return await asyncio.gather(
            coordinator.move(
                QUERY,
                MoveProposal(appointment_id="APT-00001", target_station_id="st-2", target_start=_at(15)),
            ),
            coordinator.move(
                QUERY,
                MoveProposal(appointment_id="APT-00002", target_station_id="st-1", target_start=_at(16)),
            ),
        )

    first, second = asyncio.run(interleaved())

    assert (first.status, second.status) == ("rolled_back", "committed")
    snapshot = schedule.cache.get(QUERY.cache_key)
    assert snapshot.find_appointment("APT-00001").start_at == _at(10)
    assert snapshot.find_appointment("APT-00001").station_id == "st-1"
    stored = asyncio.run(get_mock_store().appointments.get("APT-00002"))
    cached = snapshot.find_appointment("APT-00002")
    assert (cached.station_id, cached.start_at) == (stored.station_id, stored.start_at)
    assert cached.start_at == _at(16)
    assert board.proposal_state("APT-00001") is ProposalState.ROLLED_BACK
    assert board.proposal_state("APT-00002") is ProposalState.COMMITTED


def test_unreadable_committed_row_still_ends_the_proposal() -> None:
    coordinator, schedule, board = _coordinator()
    asyncio.run(schedule.load(QUERY))
    schedule.commit_move = AsyncMock(
        return_value=MoveCommitResult(success=True, appointment={"station_id": None})
    )

    outcome = asyncio.run(
        coordinator.move(QUERY, MoveProposal(appointment_id="APT-00001", target_start=_at(12)))
    )

    assert outcome.status == "committed"
    assert outcome.appointment.start_at == _at(12)
    assert board.proposal_state("APT-00001") is ProposalState.COMMITTED
    assert schedule.cache.get(QUERY.cache_key) is None

    again = asyncio.run(
        coordinator.move(QUERY, MoveProposal(appointment_id="APT-00001", target_start=_at(13)))
    )
    assert again.status == "committed"


def test_malformed_backend_reply_rolls_back() -> None:
    remote = type(
        "ClientStub", (), {"use_mock_data": False, "invoke": AsyncMock(return_value={})}
    )()
    schedule = ScheduleService(remote, cache=ScheduleCache())
    board = BoardState(selected_date=SEED_DATE)
    coordinator = AppointmentMoveCoordinator(schedule, board)
    seeded = asyncio.run(
        ScheduleService(MockLatencyClient(), cache=ScheduleCache()).load(QUERY)
    )
    schedule.cache.put(seeded)
    before = schedule.cache.get(QUERY.cache_key).model_dump_json()

    outcome = asyncio.run(
        coordinator.move(QUERY, MoveProposal(appointment_id="APT-00001", target_start=_at(12)))
    )

    assert outcome.status == "rolled_back"
    assert outcome.error_kind == "commit_failed"
    assert outcome.error == "Unexpected response from move function"
    assert schedule.cache.get(QUERY.cache_key).model_dump_json() == before
    assert board.proposal_state("APT-00001") is ProposalState.ROLLED_BACK


def test_move_from_stale_board_reports_stale_write() -> None:
    coordinator, schedule, _ = _coordinator()
    asyncio.run(schedule.load(QUERY))
    other_session, _, _ = _coordinator()
    asyncio.run(
        other_session.move(QUERY, MoveProposal(appointment_id="APT-00002", target_start=_at(14)))
    )

    outcome = asyncio.run(
        coordinator.move(QUERY, MoveProposal(appointment_id="APT-00002", target_start=_at(15)))
    )

    assert outcome.status == "rolled_back"
    assert outcome.error_kind == "stale_write"
    assert outcome.appointment.start_at == _at(11)
    stored = asyncio.run(get_mock_store().appointments.get("APT-00002"))
    assert stored.start_at == _at(14)


def test_second_proposal_while_in_flight_is_rejected() -> None:
    coordinator, _, board = _coordinator()
    board.begin_proposal("APT-00001")

    with pytest.raises(ProposalInFlightError):
        asyncio.run(
            coordinator.move(QUERY, MoveProposal(appointment_id="APT-00001", target_start=_at(12)))
        )


def test_move_of_unknown_appointment_raises_before_commit() -> None:
    coordinator, _, board = _coordinator()

    with pytest.raises(NotFoundError):
        asyncio.run(
            coordinator.move(QUERY, MoveProposal(appointment_id="APT-99999", target_start=_at(12)))
        )
    assert board.proposal_state("APT-99999") is ProposalState.IDLE


def test_move_notifies_customer_through_outbox() -> None:
    notifications = NotificationService(NotificationClient(None))
    coordinator, _, _ = _coordinator(notifications)

    outcome = asyncio.run(
        coordinator.move(
            QUERY,
            MoveProposal(appointment_id="APT-00001", target_start=_at(10, 15), notify_customer=True),
        )
    )

    assert outcome.status == "committed"
    assert outcome.warning is None
    messages = asyncio.run(get_mock_store().notifications.list())
    assert len(messages) == 1
    assert messages[0]["phone"] == "0501234567"
    assert messages[0]["fields"] == {"date": "07/09/2025", "time": "10:15"}


def test_notification_failure_is_only_a_warning() -> None:
    client = type(
        "ClientStub",
        (),
        {
            "use_mock_data": False,
            "enabled": True,
            "send": AsyncMock(side_effect=DownstreamServiceError("webhook down", 503)),
        },
    )()
    coordinator, schedule, board = _coordinator(NotificationService(client))

    outcome = asyncio.run(
        coordinator.move(
            QUERY,
            MoveProposal(appointment_id="APT-00001", target_start=_at(16), notify_customer=True),
        )
    )

    client.send.assert_awaited_once()
    assert outcome.status == "committed"
    assert outcome.warning == "Failed to notify customer"
    assert schedule.cache.get(QUERY.cache_key).find_appointment("APT-00001").start_at == _at(16)
    assert board.proposal_state("APT-00001") is ProposalState.COMMITTED


def test_move_to_another_day_invalidates_cached_boards() -> None:
    coordinator, schedule, _ = _coordinator()
    next_day = SEED_DATE.replace(day=8)

    outcome = asyncio.run(
        coordinator.move(QUERY, MoveProposal(appointment_id="APT-00002", target_start=_at(9, day=next_day)))
    )

    assert outcome.status == "committed"
    assert schedule.cache.get(QUERY.cache_key) is None
    board = asyncio.run(schedule.load(ScheduleQuery(date=next_day)))
    assert board.find_appointment("APT-00002") is not None


def test_garden_selection_moves_to_garden_station() -> None:
    coordinator, _, _ = _coordinator()

    outcome = asyncio.run(
        coordinator.move(
            QUERY,
            MoveProposal(
                appointment_id="APT-00004",
                garden_selection="full-day",
                target_start=_at(8),
                target_end=_at(17),
            ),
        )
    )

    assert outcome.status == "committed"
    assert outcome.appointment.station_id == "garden-full-day"
    assert outcome.appointment.garden_appointment_type == "full-day"
    assert outcome.appointment.garden_is_trial is False
    assert outcome.appointment.end_at == _at(17)


def test_hourly_garden_move_uses_selected_hours() -> None:
    coordinator, _, _ = _coordinator()

    outcome = asyncio.run(
        coordinator.move(
            QUERY,
            MoveProposal(
                appointment_id="APT-00004",
                garden_selection="trial",
                selected_hours=HourSelection(start="10:00", end="13:00"),
            ),
        )
    )

    assert outcome.status == "committed"
    assert outcome.appointment.station_id == "garden-trial"
    assert outcome.appointment.garden_is_trial is True
    assert (outcome.appointment.start_at, outcome.appointment.end_at) == (_at(10), _at(13))


def test_garden_selection_rejected_for_grooming() -> None:
    coordinator, _, _ = _coordinator()

    with pytest.raises(ScheduleValidationError):
        asyncio.run(
            coordinator.move(
                QUERY,
                MoveProposal(appointment_id="APT-00001", garden_selection="hourly", target_start=_at(9)),
            )
        )


def test_resize_confirm_commits_new_end() -> None:
    coordinator, schedule, board = _coordinator()

    pending = asyncio.run(coordinator.begin_resize(QUERY, "APT-00002", _at(12, 30)))

    assert pending.original_duration == 60
    assert pending.new_duration == 90
    assert schedule.cache.get(QUERY.cache_key).find_appointment("APT-00002").end_at == _at(12, 30)

    outcome = asyncio.run(coordinator.confirm_resize(QUERY))

    assert outcome.status == "committed"
    assert board.pending_resize is None
    stored = asyncio.run(get_mock_store().appointments.get("APT-00002"))
    assert stored.end_at == _at(12, 30)


def test_resize_below_minimum_is_clamped() -> None:
    coordinator, _, _ = _coordinator()

    pending = asyncio.run(coordinator.begin_resize(QUERY, "APT-00001", _at(10, 5)))

    assert pending.new_end == _at(10, 15)
    assert pending.new_duration == 15


def test_resize_to_same_end_is_a_no_op() -> None:
    coordinator, _, board = _coordinator()

    assert asyncio.run(coordinator.begin_resize(QUERY, "APT-00001", _at(10, 30))) is None
    assert board.pending_resize is None


def test_cancel_resize_restores_original_end() -> None:
    coordinator, schedule, board = _coordinator()
    asyncio.run(coordinator.begin_resize(QUERY, "APT-00002", _at(13)))

    restored = asyncio.run(coordinator.cancel_resize(QUERY))

    assert restored.end_at == _at(12)
    assert restored.duration_minutes == 60
    assert board.pending_resize is None
    assert schedule.cache.get(QUERY.cache_key).find_appointment("APT-00002").end_at == _at(12)


def test_new_resize_of_other_appointment_reverts_previous_one() -> None:
    coordinator, schedule, board = _coordinator()
    asyncio.run(coordinator.begin_resize(QUERY, "APT-00002", _at(13)))

    asyncio.run(coordinator.begin_resize(QUERY, "APT-00001", _at(11)))

    snapshot = schedule.cache.get(QUERY.cache_key)
    assert snapshot.find_appointment("APT-00002").end_at == _at(12)
    assert board.pending_resize.appointment.id == "APT-00001"


def test_confirm_without_pending_resize_is_rejected() -> None:
    coordinator, _, _ = _coordinator()

    with pytest.raises(ScheduleValidationError):
        asyncio.run(coordinator.confirm_resize(QUERY))


def test_resize_of_personal_appointment_goes_through_personal_editor() -> None:
    coordinator, _, board = _coordinator()
    asyncio.run(coordinator.begin_resize(QUERY, "APT-00003", _at(14)))

    outcome = asyncio.run(coordinator.confirm_resize(QUERY))

    assert outcome.status == "committed"
    assert outcome.appointment.end_at == _at(14)
    assert outcome.appointment.personal_description == "Staff lunch"
    assert board.pending_resize is None
