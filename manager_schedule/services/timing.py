"""Time derivation rules for moving and resizing appointments on the board."""

from __future__ import annotations

from datetime import datetime, time, timedelta
from typing import NamedTuple, Optional, Tuple

from manager_schedule.schemas.schedule import (
    Appointment,
    GardenAppointmentType,
    GardenSelection,
    HourSelection,
    MoveProposal,
)
from manager_schedule.services.exceptions import ScheduleValidationError

MIN_APPOINTMENT_DURATION = timedelta(minutes=15)


class GardenPlacement(NamedTuple):
    station_id: str
    station_name: str
    appointment_type: GardenAppointmentType
    is_trial: bool


_GARDEN_PLACEMENTS = {
    "full-day": GardenPlacement("garden-full-day", "Daycare - full day", "full-day", False),
    "trial": GardenPlacement("garden-trial", "Daycare - trial", "hourly", True),
    "hourly": GardenPlacement("garden-hourly", "Daycare - hourly", "hourly", False),
}


def garden_station_for(selection: GardenSelection) -> GardenPlacement:
    return _GARDEN_PLACEMENTS[selection]


def duration_minutes(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() // 60)


def shift_end_with_start(
    original_start: datetime,
    original_end: datetime,
    new_start: datetime,
    minimum: timedelta = MIN_APPOINTMENT_DURATION,
) -> datetime:
    """Move the end by the same delta as the start, never below ``minimum``."""

    shifted = original_end + (new_start - original_start)
    return max(shifted, new_start + minimum)


def clamp_end(
    start: datetime,
    requested_end: datetime,
    minimum: timedelta = MIN_APPOINTMENT_DURATION,
) -> datetime:
    return max(requested_end, start + minimum)


def _parse_hour(value: str) -> time:
    hours, minutes = (int(part) for part in value.split(":"))
    try:
        return time(hour=hours, minute=minutes)
    except ValueError as exc:
        raise ScheduleValidationError(f"Invalid hour selection {value!r}", cause=exc) from exc


def combine_hours(day_source: datetime, selection: HourSelection) -> Tuple[datetime, datetime]:
    """Resolve an hour-of-day selection on the date of ``day_source``."""

    start = datetime.combine(day_source.date(), _parse_hour(selection.start), tzinfo=day_source.tzinfo)
    end = datetime.combine(day_source.date(), _parse_hour(selection.end), tzinfo=day_source.tzinfo)
    return start, end


def resolve_move_times(
    appointment: Appointment,
    proposal: MoveProposal,
    *,
    minimum: timedelta = MIN_APPOINTMENT_DURATION,
    hourly: Optional[bool] = None,
) -> Tuple[datetime, datetime]:
    """Work out the concrete start/end a move proposal lands on.

    Hourly daycare bookings may arrive as a bare hour selection, in which case
    the date is taken from the original appointment. Otherwise an explicit end
    is clamped to the minimum duration and a missing end follows the start.
    """

    if hourly is None:
        hourly = appointment.is_hourly_garden
    if proposal.selected_hours is not None and hourly:
        start, end = combine_hours(appointment.start_at, proposal.selected_hours)
        return start, clamp_end(start, end, minimum)

    if proposal.target_start is None:
        raise ScheduleValidationError("A target start time is required to move an appointment")

    start = proposal.target_start
    if proposal.target_end is not None:
        return start, clamp_end(start, proposal.target_end, minimum)
    return start, shift_end_with_start(appointment.start_at, appointment.end_at, start, minimum)
