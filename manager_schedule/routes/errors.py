from fastapi import HTTPException

from manager_schedule.schemas.schedule import MoveOutcome
from manager_schedule.services.exceptions import (
    NotFoundError,
    ProposalInFlightError,
    ScheduleValidationError,
    ServiceError,
    StaleWriteError,
)

_OUTCOME_STATUS = {
    "not_found": 404,
    "stale_write": 409,
    "commit_failed": 502,
}


def status_for(exc: ServiceError) -> int:
    if isinstance(exc, ScheduleValidationError):
        return 422
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, (ProposalInFlightError, StaleWriteError)):
        return 409
    return 502


def http_error(exc: ServiceError) -> HTTPException:
    return HTTPException(status_code=status_for(exc), detail=str(exc))


def outcome_status(outcome: MoveOutcome) -> int:
    if outcome.status == "committed":
        return 200
    return _OUTCOME_STATUS.get(outcome.error_kind or "commit_failed", 502)
