"""Editing of personal (staff block-out) appointments on the board."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from manager_schedule.schemas.schedule import (
    Appointment,
    MoveOutcome,
    PersonalAppointmentEdit,
    ScheduleQuery,
)
from manager_schedule.services.board_state import BoardState
from manager_schedule.services.exceptions import NotFoundError, ScheduleValidationError
from manager_schedule.services.proposals import ProposalRunner, build_move_request
from manager_schedule.services.schedule import ScheduleService
from manager_schedule.services.timing import duration_minutes

logger = logging.getLogger(__name__)


class PersonalAppointmentEditor:
    def __init__(self, schedule: ScheduleService, board: BoardState) -> None:
        self._schedule = schedule
        self._board = board
        self._runner = ProposalRunner(schedule, board)

    async def confirm(
        self,
        query: ScheduleQuery,
        appointment_id: str,
        edit: PersonalAppointmentEdit,
    ) -> MoveOutcome:
        """Commit a new name, time, station and notes for a personal appointment.

        When a resize of the same appointment is pending, its duration decides
        the new end and the old placement sent to the backend is the one from
        before the resize.
        """

        name = edit.name.strip()
        if not name:
            raise ScheduleValidationError("A name is required for a personal appointment")
        if edit.start_at is None or edit.end_at is None or edit.station_id is None:
            raise ScheduleValidationError("Start, end and station are required")

        snapshot = await self._schedule.load(query)
        appointment = snapshot.find_appointment(appointment_id)
        if appointment is None:
            raise NotFoundError(f"Appointment {appointment_id} not found")
        if appointment.has_customer:
            raise ScheduleValidationError(
                f"Appointment {appointment_id} belongs to a customer and cannot be edited here"
            )

        pending = self._board.pending_resize_for(appointment_id)
        original = pending.appointment if pending else appointment
        start = edit.start_at
        if pending:
            end = start + timedelta(minutes=pending.new_duration)
        else:
            end = edit.end_at
        if end <= start:
            raise ScheduleValidationError("End time must be after start time")

        station = snapshot.find_station(edit.station_id)
        notes = edit.notes.strip()
        changes = {
            "station_id": edit.station_id,
            "station_name": station.name if station else appointment.station_name,
            "start_at": start,
            "end_at": end,
            "duration_minutes": duration_minutes(start, end),
            "personal_description": name,
            "internal_notes": notes or None,
        }
        request = build_move_request(
            original,
            station_id=edit.station_id,
            start=start,
            end=end,
            personal_description=name,
            internal_notes=notes,
        )
        outcome = await self._runner.run(query, original, request, changes)
        if outcome.status == "committed" and pending:
            self._board.clear_pending_resize()
        return outcome

    async def cancel(self, query: ScheduleQuery, appointment_id: str) -> Optional[Appointment]:
        """Dismiss the editor, undoing a pending resize or refetching the board."""

        pending = self._board.pending_resize_for(appointment_id)
        if pending is None:
            snapshot = await self._schedule.refresh(query)
            return snapshot.find_appointment(appointment_id)

        logger.info("Reverting pending resize of %s", appointment_id)
        restored = self._schedule.cache.patch_appointment(
            query.cache_key,
            appointment_id,
            end_at=pending.original_end,
            duration_minutes=pending.original_duration,
        )
        self._board.clear_pending_resize()
        return restored
