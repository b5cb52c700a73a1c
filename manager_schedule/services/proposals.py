from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import ValidationError

from manager_schedule.schemas.schedule import (
    Appointment,
    MoveCommitRequest,
    MoveCommitResult,
    MoveErrorKind,
    MoveOutcome,
    ScheduleQuery,
)
from manager_schedule.services.board_state import BoardState, ProposalState
from manager_schedule.services.exceptions import NotFoundError, ServiceError, StaleWriteError
from manager_schedule.services.schedule import ScheduleService
from manager_schedule.services.schedule_cache import CacheKey

logger = logging.getLogger(__name__)


def error_kind_for(exc: ServiceError) -> MoveErrorKind:
    if isinstance(exc, StaleWriteError):
        return "stale_write"
    if isinstance(exc, NotFoundError):
        return "not_found"
    return "commit_failed"


def build_move_request(
    original: Appointment,
    *,
    station_id: str,
    start: datetime,
    end: datetime,
    **extras: Any,
) -> MoveCommitRequest:
    """Describe a change as the old and new placement of ``original``."""

    return MoveCommitRequest(
        appointment_id=original.id,
        appointment_type=original.service_type,
        old_station_id=original.station_id,
        old_start_time=original.start_at,
        old_end_time=original.end_at,
        new_station_id=station_id,
        new_start_time=start,
        new_end_time=end,
        **extras,
    )


class ProposalRunner:
    """Patch the cached board, commit the change, and roll back on failure.

    The board's proposal state for the appointment goes ``proposed`` before
    the patch and ends ``committed`` or ``rolled_back``. Commit failures come
    back as a ``rolled_back`` outcome rather than an exception.
    """

    def __init__(self, schedule: ScheduleService, board: BoardState) -> None:
        self._schedule = schedule
        self._board = board

    async def run(
        self,
        query: ScheduleQuery,
        original: Appointment,
        request: MoveCommitRequest,
        changes: Dict[str, Any],
    ) -> MoveOutcome:
        key = query.cache_key
        cache = self._schedule.cache
        self._board.begin_proposal(original.id)
        transaction = cache.transaction(key, original.id)
        try:
            result = await transaction.run(
                apply=lambda: cache.patch_appointment(key, original.id, **changes),
                commit=lambda: self._schedule.commit_move(request),
            )
        except ServiceError as exc:
            self._board.resolve_proposal(original.id, ProposalState.ROLLED_BACK)
            logger.warning("Rolled back change to %s: %s", original.id, exc)
            return MoveOutcome(
                status="rolled_back",
                appointment=self._cached(key, original.id) or original,
                error=str(exc),
                error_kind=error_kind_for(exc),
            )
        except Exception:
            self._board.resolve_proposal(original.id, ProposalState.ROLLED_BACK)
            raise

        try:
            committed = self._store_committed(key, original, changes, result)
        finally:
            self._board.resolve_proposal(original.id, ProposalState.COMMITTED)
        logger.info("Committed change to %s", original.id)
        return MoveOutcome(status="committed", appointment=committed, message=result.message)

    def _cached(self, key: CacheKey, appointment_id: str) -> Optional[Appointment]:
        snapshot = self._schedule.cache.get(key)
        return snapshot.find_appointment(appointment_id) if snapshot is not None else None

    def _store_committed(
        self,
        key: CacheKey,
        original: Appointment,
        changes: Dict[str, Any],
        result: MoveCommitResult,
    ) -> Appointment:
        cache = self._schedule.cache
        patched = self._cached(key, original.id) or original.model_copy(update=changes)
        committed = patched
        if result.appointment:
            try:
                committed = Appointment(**{**patched.model_dump(), **result.appointment})
            except ValidationError:
                logger.exception("Backend returned an unreadable appointment for %s", original.id)
                cache.invalidate(key)
                return patched

        if committed.start_at.date() != key[0]:
            # The appointment left this day; every cached board may be affected.
            cache.invalidate()
        else:
            cache.replace_appointment(key, committed)
        return committed
