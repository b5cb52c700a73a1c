from __future__ import annotations

import itertools
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from manager_schedule.schemas.schedule import (
    Appointment,
    MoveCommitRequest,
    MoveCommitResult,
    ScheduleQuery,
    ScheduleSnapshot,
    Station,
)
from manager_schedule.schemas.stations import StationDailyConfig
from manager_schedule.schemas.waitlist import WaitlistEntry
from manager_schedule.services.exceptions import CommitError, NotFoundError, StaleWriteError

SEED_DATE = date(2025, 9, 7)
SEED_TZ = timezone(timedelta(hours=3))


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=SEED_TZ)


class _BaseRepository:
    def __init__(self, prefix: str) -> None:
        self._prefix = prefix
        self._counter = itertools.count(1)

    def _next_id(self) -> str:
        return f"{self._prefix}-{next(self._counter):05d}"


class StationRepository:
    def __init__(self) -> None:
        self._stations: Dict[str, Station] = {}
        self._seed_stations()

    def _seed_stations(self) -> None:
        seeds = [
            Station(id="st-1", name="Table 1", service_type="grooming", display_order=1),
            Station(id="st-2", name="Table 2", service_type="grooming", display_order=2),
            Station(id="st-3", name="Table 3", service_type="grooming", display_order=3),
            Station(
                id="st-4",
                name="Bath Corner",
                service_type="grooming",
                is_active=False,
                display_order=4,
            ),
            Station(id="garden-full-day", name="Daycare - full day", service_type="garden", display_order=10),
            Station(id="garden-hourly", name="Daycare - hourly", service_type="garden", display_order=11),
            Station(id="garden-trial", name="Daycare - trial", service_type="garden", display_order=12),
        ]
        for station in seeds:
            self.add(station)

    def add(self, station: Station) -> None:
        self._stations[station.id] = station

    def get(self, station_id: str) -> Optional[Station]:
        return self._stations.get(station_id)

    def list(self, *, include_inactive: bool = False) -> List[Station]:
        stations = [
            station
            for station in self._stations.values()
            if include_inactive or station.is_active
        ]
        stations.sort(key=lambda station: (station.display_order or 0, station.name))
        return stations


class AppointmentRepository(_BaseRepository):
    def __init__(self, stations: StationRepository) -> None:
        super().__init__("APT")
        self._stations = stations
        self._appointments: Dict[str, Dict[str, Any]] = {}
        self._seed_defaults()

    def _seed_defaults(self) -> None:
        next_day = SEED_DATE + timedelta(days=1)
        seeds = [
            {
                "service_type": "grooming",
                "station_id": "st-1",
                "start_at": _at(SEED_DATE, 10),
                "end_at": _at(SEED_DATE, 10, 30),
                "customer_id": "cus-1",
                "customer_name": "Dana Levi",
                "customer_phone": "0501234567",
                "treatment_id": "dog-1",
                "treatment_name": "Bamba",
            },
            {
                "service_type": "grooming",
                "station_id": "st-2",
                "start_at": _at(SEED_DATE, 11),
                "end_at": _at(SEED_DATE, 12),
                "customer_id": "cus-2",
                "customer_name": "Noa Cohen",
                "customer_phone": "0527654321",
                "treatment_id": "dog-2",
                "treatment_name": "Shoko",
            },
            {
                "service_type": "grooming",
                "station_id": "st-3",
                "start_at": _at(SEED_DATE, 13),
                "end_at": _at(SEED_DATE, 13, 45),
                "is_personal": True,
                "personal_description": "Staff lunch",
            },
            {
                "service_type": "garden",
                "station_id": "garden-hourly",
                "start_at": _at(SEED_DATE, 9),
                "end_at": _at(SEED_DATE, 12),
                "customer_id": "cus-3",
                "customer_name": "Yael Mizrahi",
                "customer_phone": "0541112233",
                "treatment_id": "dog-3",
                "treatment_name": "Luna",
                "garden_appointment_type": "hourly",
                "garden_is_trial": False,
            },
            {
                "service_type": "grooming",
                "station_id": "st-1",
                "start_at": _at(next_day, 9),
                "end_at": _at(next_day, 10),
                "customer_id": "cus-2",
                "customer_name": "Noa Cohen",
                "customer_phone": "0527654321",
                "treatment_id": "dog-2",
                "treatment_name": "Shoko",
            },
        ]
        for record in seeds:
            self.add(Appointment(id=self._next_id(), **self._with_station(record)))

    def _with_station(self, record: Dict[str, Any]) -> Dict[str, Any]:
        station = self._stations.get(record["station_id"])
        record = dict(record)
        record["station_name"] = station.name if station else None
        record["duration_minutes"] = int((record["end_at"] - record["start_at"]).total_seconds() // 60)
        return record

    def add(self, appointment: Appointment) -> Appointment:
        self._appointments[appointment.id] = appointment.model_dump()
        return appointment

    async def get(self, appointment_id: str) -> Optional[Appointment]:
        record = self._appointments.get(appointment_id)
        return Appointment(**record) if record is not None else None

    async def schedule(self, query: ScheduleQuery) -> ScheduleSnapshot:
        stations = [
            station
            for station in self._stations.list()
            if query.service_filter == "both" or station.service_type == query.service_filter
        ]
        appointments = [
            Appointment(**record)
            for record in self._appointments.values()
            if record["start_at"].date() == query.date
            and (query.service_filter == "both" or record["service_type"] == query.service_filter)
        ]
        appointments.sort(key=lambda appointment: (appointment.start_at, appointment.station_id))
        return ScheduleSnapshot(
            date=query.date,
            service_filter=query.service_filter,
            stations=stations,
            appointments=appointments,
        )

    async def move(self, request: MoveCommitRequest) -> MoveCommitResult:
        record = self._appointments.get(request.appointment_id)
        if record is None:
            raise NotFoundError(f"Appointment {request.appointment_id} not found")
        station = self._stations.get(request.new_station_id)
        if station is None:
            raise NotFoundError(f"Station {request.new_station_id} not found")
        if request.appointment_type != record["service_type"]:
            raise CommitError(
                f"Appointment {request.appointment_id} is not a {request.appointment_type} appointment"
            )

        current = (record["station_id"], record["start_at"], record["end_at"])
        expected = (request.old_station_id, request.old_start_time, request.old_end_time)
        if current != expected:
            raise StaleWriteError(
                f"Appointment {request.appointment_id} was changed by another session"
            )
        if request.new_end_time <= request.new_start_time:
            raise CommitError("New end time must be after the new start time")

        record.update(
            {
                "station_id": station.id,
                "station_name": station.name,
                "start_at": request.new_start_time,
                "end_at": request.new_end_time,
                "duration_minutes": int(
                    (request.new_end_time - request.new_start_time).total_seconds() // 60
                ),
            }
        )
        optional_fields = {
            "garden_appointment_type": request.new_garden_appointment_type,
            "garden_is_trial": request.new_garden_is_trial,
            "garden_trim_nails": request.garden_trim_nails,
            "garden_brush": request.garden_brush,
            "garden_bath": request.garden_bath,
            "late_pickup_requested": request.late_pickup_requested,
            "late_pickup_notes": request.late_pickup_notes,
            "personal_description": request.personal_description,
        }
        record.update({key: value for key, value in optional_fields.items() if value is not None})
        if request.internal_notes is not None:
            record["internal_notes"] = request.internal_notes or None
        if request.customer_notes is not None:
            record["notes"] = request.customer_notes or None

        return MoveCommitResult(
            success=True,
            message="Appointment moved successfully",
            appointment=Appointment(**record).model_dump(mode="json"),
        )


class WaitlistRepository(_BaseRepository):
    def __init__(self) -> None:
        super().__init__("WL")
        self._entries: Dict[str, WaitlistEntry] = {}
        self._seed_entries()

    def _seed_entries(self) -> None:
        seeds = [
            {
                "customer_id": "cus-4",
                "customer_name": "Avi Peretz",
                "customer_phone": "0509998877",
                "customer_email": "avi@example.com",
                "customer_type_id": "vip",
                "customer_type_name": "VIP",
                "dog_id": "dog-4",
                "dog_name": "Rex",
                "breed_name": "Labrador",
                "dog_categories": [{"id": "large", "name": "Large dogs"}],
                "service_scope": "grooming",
                "date_spans": [{"start_date": SEED_DATE, "end_date": SEED_DATE + timedelta(days=3)}],
                "notes": "Prefers mornings",
            },
            {
                "customer_id": "cus-5",
                "customer_name": "Michal Bar",
                "customer_phone": "0503332211",
                "customer_type_id": "existing",
                "customer_type_name": "Existing",
                "dog_id": "dog-5",
                "dog_name": "Pita",
                "breed_name": "Poodle",
                "dog_categories": [
                    {"id": "small", "name": "Small dogs"},
                    {"id": "coat", "name": "Long coat"},
                ],
                "service_scope": "both",
                "date_spans": [{"start_date": SEED_DATE}],
            },
            {
                "customer_id": "cus-6",
                "customer_name": "Roni Azulay",
                "dog_id": "dog-6",
                "dog_name": "Mocha",
                "service_scope": "daycare",
                "date_spans": [{"start_date": SEED_DATE - timedelta(days=2), "end_date": SEED_DATE}],
            },
        ]
        for record in seeds:
            self.add(WaitlistEntry(id=self._next_id(), **record))

    def add(self, entry: WaitlistEntry) -> WaitlistEntry:
        self._entries[entry.id] = entry
        return entry

    async def list_for_date(self, day: date) -> List[WaitlistEntry]:
        return [
            entry.model_copy(deep=True)
            for entry in self._entries.values()
            if entry.is_waiting_on(day)
        ]


class StationDailyConfigRepository:
    def __init__(self) -> None:
        self._documents: Dict[str, Dict[str, Any]] = {}
        self._seed_defaults()

    def _seed_defaults(self) -> None:
        self._documents["sunday"] = {
            "weekday": "sunday",
            "visible_station_ids": ["st-1", "st-2", "st-3"],
            "station_order_ids": ["st-2", "st-1", "st-3"],
        }

    async def list(self) -> List[StationDailyConfig]:
        return [StationDailyConfig(**document) for document in self._documents.values()]

    async def upsert_many(self, configs: Iterable[StationDailyConfig]) -> List[StationDailyConfig]:
        saved = []
        for config in configs:
            self._documents[config.weekday] = config.model_dump()
            saved.append(StationDailyConfig(**self._documents[config.weekday]))
        return saved


class NotificationRepository(_BaseRepository):
    def __init__(self) -> None:
        super().__init__("NTF")
        self._messages: Dict[str, Dict[str, Any]] = {}

    async def send(self, payload: Dict[str, Any]) -> str:
        message_id = self._next_id()
        self._messages[message_id] = {
            "message_id": message_id,
            "sent_at": _utc_now_iso(),
            **payload,
        }
        return message_id

    async def list(self) -> List[Dict[str, Any]]:
        return [dict(message) for message in self._messages.values()]


@dataclass
class MockDataStore:
    stations: StationRepository
    appointments: AppointmentRepository
    waitlist: WaitlistRepository
    station_configs: StationDailyConfigRepository
    notifications: NotificationRepository


_mock_store: Optional[MockDataStore] = None


def get_mock_store() -> MockDataStore:
    global _mock_store
    if _mock_store is None:
        stations = StationRepository()
        _mock_store = MockDataStore(
            stations=stations,
            appointments=AppointmentRepository(stations),
            waitlist=WaitlistRepository(),
            station_configs=StationDailyConfigRepository(),
            notifications=NotificationRepository(),
        )
    return _mock_store


def reset_mock_store() -> None:
    global _mock_store
    _mock_store = None
