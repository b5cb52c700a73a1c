from __future__ import annotations

import logging
from datetime import date
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, Tuple, TypeVar

from manager_schedule.schemas.schedule import Appointment, ScheduleSnapshot

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

CacheKey = Tuple[date, str]


class OptimisticTransaction(Generic[T]):
    """Apply a local change ahead of a remote commit and undo it if the commit fails.

    ``capture`` must return an independent copy of the state that ``restore``
    can put back verbatim.
    """

    def __init__(self, capture: Callable[[], T], restore: Callable[[T], None]) -> None:
        self._capture = capture
        self._restore = restore

    async def run(self, apply: Callable[[], Any], commit: Callable[[], Awaitable[R]]) -> R:
        snapshot = self._capture()
        apply()
        try:
            return await commit()
        except Exception:
            self._restore(snapshot)
            raise


class ScheduleCache:
    """Read-through cache of board snapshots keyed by date and service filter."""

    def __init__(self) -> None:
        self._entries: Dict[CacheKey, ScheduleSnapshot] = {}

    def get(self, key: CacheKey) -> Optional[ScheduleSnapshot]:
        return self._entries.get(key)

    def put(self, snapshot: ScheduleSnapshot) -> ScheduleSnapshot:
        self._entries[snapshot.cache_key] = snapshot
        return snapshot

    def invalidate(self, key: CacheKey | None = None) -> None:
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def capture(self, key: CacheKey, appointment_id: str) -> Optional[Appointment]:
        snapshot = self._entries.get(key)
        if snapshot is None:
            return None
        current = snapshot.find_appointment(appointment_id)
        return current.model_copy(deep=True) if current is not None else None

    def restore(self, key: CacheKey, appointment: Optional[Appointment]) -> None:
        # Only the captured entry goes back; other appointments may have moved since.
        if appointment is None:
            return
        if self.replace_appointment(key, appointment):
            logger.info("Restored cached appointment %s for %s", appointment.id, key)

    def replace_appointment(self, key: CacheKey, appointment: Appointment) -> bool:
        snapshot = self._entries.get(key)
        if snapshot is None:
            return False
        for index, existing in enumerate(snapshot.appointments):
            if existing.id == appointment.id:
                snapshot.appointments[index] = appointment
                return True
        return False

    def patch_appointment(
        self, key: CacheKey, appointment_id: str, **changes: Any
    ) -> Optional[Appointment]:
        snapshot = self._entries.get(key)
        if snapshot is None:
            return None
        current = snapshot.find_appointment(appointment_id)
        if current is None:
            return None
        patched = current.model_copy(update=changes)
        self.replace_appointment(key, patched)
        return patched

    def transaction(
        self, key: CacheKey, appointment_id: str
    ) -> OptimisticTransaction[Optional[Appointment]]:
        return OptimisticTransaction(
            capture=lambda: self.capture(key, appointment_id),
            restore=lambda appointment: self.restore(key, appointment),
        )
