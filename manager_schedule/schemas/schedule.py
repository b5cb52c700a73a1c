from __future__ import annotations

from datetime import date as date_type
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


ServiceType = Literal["grooming", "garden"]
ServiceFilter = Literal["grooming", "garden", "both"]
GardenAppointmentType = Literal["full-day", "hourly"]
GardenSelection = Literal["full-day", "hourly", "trial"]
MoveErrorKind = Literal["commit_failed", "stale_write", "not_found"]


class Station(BaseModel):
    id: str
    name: str
    service_type: ServiceType = "grooming"
    is_active: bool = True
    display_order: Optional[int] = None


class Appointment(BaseModel):
    id: str
    service_type: ServiceType = "grooming"
    station_id: str
    station_name: Optional[str] = None
    start_at: datetime
    end_at: datetime
    status: str = "scheduled"
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    treatment_id: Optional[str] = None
    treatment_name: Optional[str] = None
    notes: Optional[str] = None
    internal_notes: Optional[str] = None
    duration_minutes: Optional[int] = None
    is_personal: bool = False
    personal_description: Optional[str] = None
    garden_appointment_type: Optional[GardenAppointmentType] = None
    garden_is_trial: Optional[bool] = None
    garden_trim_nails: Optional[bool] = None
    garden_brush: Optional[bool] = None
    garden_bath: Optional[bool] = None
    late_pickup_requested: Optional[bool] = None
    late_pickup_notes: Optional[str] = None

    @model_validator(mode="after")
    def _check_times(self) -> "Appointment":
        if self.end_at <= self.start_at:
            raise ValueError("end_at must be after start_at")
        return self

    @property
    def has_customer(self) -> bool:
        return bool(self.customer_id)

    @property
    def is_hourly_garden(self) -> bool:
        return self.service_type == "garden" and self.garden_appointment_type == "hourly"


class ScheduleQuery(BaseModel):
    date: date_type
    service_filter: ServiceFilter = "both"

    model_config = ConfigDict(frozen=True)

    @property
    def cache_key(self) -> Tuple[date_type, str]:
        return (self.date, self.service_filter)


class ScheduleSnapshot(BaseModel):
    date: date_type
    service_filter: ServiceFilter = "both"
    stations: List[Station] = Field(default_factory=list)
    appointments: List[Appointment] = Field(default_factory=list)

    @property
    def cache_key(self) -> Tuple[date_type, str]:
        return (self.date, self.service_filter)

    def find_appointment(self, appointment_id: str) -> Optional[Appointment]:
        for appointment in self.appointments:
            if appointment.id == appointment_id:
                return appointment
        return None

    def find_station(self, station_id: str) -> Optional[Station]:
        for station in self.stations:
            if station.id == station_id:
                return station
        return None


class HourSelection(BaseModel):
    start: str = Field(..., pattern=r"^\d{2}:\d{2}$", description="Start hour, HH:MM")
    end: str = Field(..., pattern=r"^\d{2}:\d{2}$", description="End hour, HH:MM")


class MoveProposal(BaseModel):
    """A requested relocation of an appointment on the board."""

    appointment_id: str
    target_station_id: Optional[str] = None
    target_start: Optional[datetime] = None
    target_end: Optional[datetime] = None
    selected_hours: Optional[HourSelection] = None
    garden_selection: Optional[GardenSelection] = None
    internal_notes: Optional[str] = None
    customer_notes: Optional[str] = None
    notify_customer: bool = False


class MoveCommitRequest(BaseModel):
    """Payload of the remote move-appointment function."""

    appointment_id: str
    appointment_type: ServiceType
    old_station_id: str
    old_start_time: datetime
    old_end_time: datetime
    new_station_id: str
    new_start_time: datetime
    new_end_time: datetime
    new_garden_appointment_type: Optional[GardenAppointmentType] = None
    new_garden_is_trial: Optional[bool] = None
    selected_hours: Optional[HourSelection] = None
    garden_trim_nails: Optional[bool] = None
    garden_brush: Optional[bool] = None
    garden_bath: Optional[bool] = None
    late_pickup_requested: Optional[bool] = None
    late_pickup_notes: Optional[str] = None
    internal_notes: Optional[str] = None
    customer_notes: Optional[str] = None
    personal_description: Optional[str] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class MoveCommitResult(BaseModel):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    appointment: Optional[Dict[str, Any]] = None


class MoveOutcome(BaseModel):
    status: Literal["committed", "rolled_back"]
    appointment: Appointment
    message: Optional[str] = None
    warning: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[MoveErrorKind] = None


class ResizeRequest(BaseModel):
    appointment_id: str
    new_end: datetime


class ResizeConfirmRequest(BaseModel):
    notify_customer: bool = False


class PendingResizeState(BaseModel):
    appointment: Appointment
    original_end: datetime
    new_end: datetime
    original_duration: int
    new_duration: int


class PersonalAppointmentEdit(BaseModel):
    name: str
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    station_id: Optional[str] = None
    notes: str = ""
