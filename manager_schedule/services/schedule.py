from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, List

from pydantic import ValidationError

from manager_schedule.clients.supabase import SupabaseClient
from manager_schedule.schemas.schedule import (
    Appointment,
    MoveCommitRequest,
    MoveCommitResult,
    ScheduleQuery,
    ScheduleSnapshot,
    ServiceType,
    Station,
)
from manager_schedule.services.exceptions import (
    CommitError,
    DownstreamServiceError,
    NotFoundError,
    ServiceError,
    StaleWriteError,
)
from manager_schedule.services.mock_store import AppointmentRepository, get_mock_store
from manager_schedule.services.schedule_cache import ScheduleCache

logger = logging.getLogger(__name__)

_APPOINTMENT_TABLES: Dict[ServiceType, str] = {
    "grooming": "grooming_appointments",
    "garden": "daycare_appointments",
}


class ScheduleService:
    """Reads board snapshots through the cache and commits moves to the backend."""

    def __init__(
        self,
        client: SupabaseClient,
        *,
        cache: ScheduleCache,
        repository: AppointmentRepository | None = None,
    ) -> None:
        self._client = client
        self._cache = cache
        self._repository = repository
        if self._client.use_mock_data:
            self._repository = repository or get_mock_store().appointments

    @property
    def cache(self) -> ScheduleCache:
        return self._cache

    async def load(self, query: ScheduleQuery) -> ScheduleSnapshot:
        cached = self._cache.get(query.cache_key)
        if cached is not None:
            return cached
        return await self.refresh(query)

    async def refresh(self, query: ScheduleQuery) -> ScheduleSnapshot:
        logger.info("Fetching schedule for %s (%s)", query.date, query.service_filter)
        snapshot = await self._fetch(query)
        return self._cache.put(snapshot)

    async def _fetch(self, query: ScheduleQuery) -> ScheduleSnapshot:
        if self._client.use_mock_data:
            await self._client.simulate_latency()
            if not self._repository:
                raise RuntimeError("Mock appointment repository not configured")
            return await self._repository.schedule(query)

        try:
            station_rows = await self._client.select(
                "stations",
                {"select": "*", "is_active": "eq.true", "order": "display_order.asc"},
            )
            stations = [
                Station(**row)
                for row in station_rows
                if query.service_filter == "both" or row.get("service_type") == query.service_filter
            ]
            appointments: List[Appointment] = []
            for service_type, table in _APPOINTMENT_TABLES.items():
                if query.service_filter not in ("both", service_type):
                    continue
                rows = await self._client.select(table, self._day_params(query))
                appointments.extend(_row_to_appointment(row, service_type) for row in rows)
            appointments.sort(key=lambda appointment: appointment.start_at)
            return ScheduleSnapshot(
                date=query.date,
                service_filter=query.service_filter,
                stations=stations,
                appointments=appointments,
            )
        except ServiceError:
            raise
        except Exception as exc:  # pragma: no cover - defensive
            logger.exception("Unexpected error while fetching schedule")
            raise ServiceError("Failed to fetch schedule", cause=exc)

    @staticmethod
    def _day_params(query: ScheduleQuery) -> Dict[str, Any]:
        next_day = query.date + timedelta(days=1)
        return {
            "select": "*",
            "and": f"(start_at.gte.{query.date.isoformat()},start_at.lt.{next_day.isoformat()})",
            "order": "start_at.asc",
        }

    async def commit_move(self, request: MoveCommitRequest) -> MoveCommitResult:
        logger.info(
            "Committing move of %s to %s at %s",
            request.appointment_id,
            request.new_station_id,
            request.new_start_time.isoformat(),
        )
        if self._client.use_mock_data:
            await self._client.simulate_latency()
            if not self._repository:
                raise RuntimeError("Mock appointment repository not configured")
            return await self._repository.move(request)

        try:
            data = await self._client.invoke("move-appointment", request.to_payload())
        except DownstreamServiceError as exc:
            if exc.status_code == 404:
                raise NotFoundError(str(exc), cause=exc) from exc
            if exc.status_code == 409:
                raise StaleWriteError(str(exc), cause=exc) from exc
            raise
        except ServiceError:
            raise
        except Exception as exc:  # pragma: no cover - defensive
            logger.exception("Unexpected error while moving appointment")
            raise ServiceError("Failed to move appointment", cause=exc)

        try:
            result = MoveCommitResult(**(data or {}))
        except (TypeError, ValidationError) as exc:
            logger.warning("Unexpected response from move function: %r", data)
            raise CommitError("Unexpected response from move function", cause=exc) from exc
        if not result.success:
            raise CommitError(result.error or result.message or "The backend rejected the move")
        return result


def _row_to_appointment(row: Dict[str, Any], service_type: ServiceType) -> Appointment:
    record = dict(row)
    record["service_type"] = service_type
    if "start_at" not in record and "start_time" in record:
        record["start_at"] = record.pop("start_time")
    if "end_at" not in record and "end_time" in record:
        record["end_at"] = record.pop("end_time")
    return Appointment(**record)
