from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from manager_schedule.schemas.schedule import (
    Appointment,
    MoveOutcome,
    MoveProposal,
    PendingResizeState,
    PersonalAppointmentEdit,
    ScheduleQuery,
)
from manager_schedule.services.board_state import BoardState
from manager_schedule.services.exceptions import (
    NotFoundError,
    NotificationError,
    ScheduleValidationError,
)
from manager_schedule.services.notifications import NotificationService
from manager_schedule.services.personal import PersonalAppointmentEditor
from manager_schedule.services.proposals import ProposalRunner, build_move_request
from manager_schedule.services.schedule import ScheduleService
from manager_schedule.services.timing import (
    MIN_APPOINTMENT_DURATION,
    clamp_end,
    duration_minutes,
    garden_station_for,
    resolve_move_times,
)

logger = logging.getLogger(__name__)


class AppointmentMoveCoordinator:
    """Relocates and resizes appointments on the manager board.

    Every change is applied to the cached snapshot first and committed to the
    backend afterwards; a failed commit puts the snapshot back exactly as it
    was. Customer notifications are best effort and only ever produce a
    warning on the outcome.
    """

    def __init__(
        self,
        schedule: ScheduleService,
        board: BoardState,
        *,
        notifications: NotificationService | None = None,
        personal: PersonalAppointmentEditor | None = None,
        minimum: timedelta = MIN_APPOINTMENT_DURATION,
    ) -> None:
        self._schedule = schedule
        self._board = board
        self._notifications = notifications
        self._personal = personal or PersonalAppointmentEditor(schedule, board)
        self._minimum = minimum
        self._runner = ProposalRunner(schedule, board)

    async def _appointment(self, query: ScheduleQuery, appointment_id: str) -> Appointment:
        snapshot = await self._schedule.load(query)
        appointment = snapshot.find_appointment(appointment_id)
        if appointment is None:
            raise NotFoundError(f"Appointment {appointment_id} not found")
        return appointment

    async def move(self, query: ScheduleQuery, proposal: MoveProposal) -> MoveOutcome:
        snapshot = await self._schedule.load(query)
        appointment = snapshot.find_appointment(proposal.appointment_id)
        if appointment is None:
            raise NotFoundError(f"Appointment {proposal.appointment_id} not found")

        changes: Dict[str, Any] = {}
        extras: Dict[str, Any] = {}
        hourly: Optional[bool] = None
        if proposal.garden_selection is not None:
            if appointment.service_type != "garden":
                raise ScheduleValidationError("Only daycare appointments take a garden selection")
            placement = garden_station_for(proposal.garden_selection)
            station_id = placement.station_id
            station_name = placement.station_name
            hourly = placement.appointment_type == "hourly"
            changes.update(
                garden_appointment_type=placement.appointment_type,
                garden_is_trial=placement.is_trial,
            )
            extras.update(
                new_garden_appointment_type=placement.appointment_type,
                new_garden_is_trial=placement.is_trial,
            )
        else:
            station_id = proposal.target_station_id or appointment.station_id
            station = snapshot.find_station(station_id)
            station_name = station.name if station else appointment.station_name

        start, end = resolve_move_times(
            appointment, proposal, minimum=self._minimum, hourly=hourly
        )
        if hourly and proposal.selected_hours is not None:
            extras["selected_hours"] = proposal.selected_hours

        changes.update(
            station_id=station_id,
            station_name=station_name,
            start_at=start,
            end_at=end,
            duration_minutes=duration_minutes(start, end),
        )
        if proposal.internal_notes is not None:
            changes["internal_notes"] = proposal.internal_notes or None
            extras["internal_notes"] = proposal.internal_notes
        if proposal.customer_notes is not None:
            changes["notes"] = proposal.customer_notes or None
            extras["customer_notes"] = proposal.customer_notes
        if appointment.service_type == "garden":
            extras.update(
                garden_trim_nails=appointment.garden_trim_nails,
                garden_brush=appointment.garden_brush,
                garden_bath=appointment.garden_bath,
                late_pickup_requested=appointment.late_pickup_requested,
                late_pickup_notes=appointment.late_pickup_notes,
            )

        logger.info(
            "Moving %s from %s %s to %s %s",
            appointment.id,
            appointment.station_id,
            appointment.start_at.isoformat(),
            station_id,
            start.isoformat(),
        )
        request = build_move_request(
            appointment, station_id=station_id, start=start, end=end, **extras
        )
        outcome = await self._runner.run(query, appointment, request, changes)
        return await self._notify(outcome, proposal.notify_customer)

    async def begin_resize(
        self, query: ScheduleQuery, appointment_id: str, new_end: datetime
    ) -> Optional[PendingResizeState]:
        """Stretch or shrink an appointment locally until the manager confirms.

        Returns ``None`` when the clamped end equals the stored end.
        """

        appointment = await self._appointment(query, appointment_id)
        pending = self._board.pending_resize
        if pending is not None and pending.appointment.id != appointment_id:
            await self.cancel_resize(query)
            pending = None
        original = pending.appointment if pending is not None else appointment

        end = clamp_end(original.start_at, new_end, self._minimum)
        if end == original.end_at:
            if pending is not None:
                await self.cancel_resize(query)
            return None

        new_duration = duration_minutes(original.start_at, end)
        self._schedule.cache.patch_appointment(
            query.cache_key, appointment_id, end_at=end, duration_minutes=new_duration
        )
        resize = PendingResizeState(
            appointment=original,
            original_end=original.end_at,
            new_end=end,
            original_duration=duration_minutes(original.start_at, original.end_at),
            new_duration=new_duration,
        )
        self._board.set_pending_resize(resize)
        return resize

    async def confirm_resize(
        self, query: ScheduleQuery, notify_customer: bool = False
    ) -> MoveOutcome:
        pending = self._board.pending_resize
        if pending is None:
            raise ScheduleValidationError("There is no pending resize to confirm")
        original = pending.appointment

        if original.is_personal and not original.has_customer:
            edit = PersonalAppointmentEdit(
                name=original.personal_description or "",
                start_at=original.start_at,
                end_at=pending.new_end,
                station_id=original.station_id,
                notes=original.internal_notes or "",
            )
            return await self._personal.confirm(query, original.id, edit)

        request = build_move_request(
            original,
            station_id=original.station_id,
            start=original.start_at,
            end=pending.new_end,
        )
        changes = {"end_at": pending.new_end, "duration_minutes": pending.new_duration}
        outcome = await self._runner.run(query, original, request, changes)
        if outcome.status == "committed":
            self._board.clear_pending_resize()
        return await self._notify(outcome, notify_customer)

    async def cancel_resize(self, query: ScheduleQuery) -> Optional[Appointment]:
        pending = self._board.pending_resize
        if pending is None:
            return None
        logger.info("Cancelling resize of %s", pending.appointment.id)
        restored = self._schedule.cache.patch_appointment(
            query.cache_key,
            pending.appointment.id,
            end_at=pending.original_end,
            duration_minutes=pending.original_duration,
        )
        self._board.clear_pending_resize()
        return restored

    async def _notify(self, outcome: MoveOutcome, requested: bool) -> MoveOutcome:
        if outcome.status != "committed" or not requested:
            return outcome
        if self._notifications is None or not outcome.appointment.has_customer:
            return outcome
        try:
            await self._notifications.appointment_moved(outcome.appointment)
        except NotificationError as exc:
            logger.warning("Move of %s committed but notification failed: %s", outcome.appointment.id, exc)
            return outcome.model_copy(update={"warning": str(exc)})
        return outcome
