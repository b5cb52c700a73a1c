class ServiceError(Exception):
    """Base exception for service layer failures."""

    def __init__(self, message: str, *, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class DownstreamServiceError(ServiceError):
    """Raised when an external service returns an error response."""

    def __init__(self, message: str, status_code: int | None = None, *, cause: Exception | None = None):
        super().__init__(message, cause=cause)
        self.status_code = status_code


class ScheduleValidationError(ServiceError):
    """Raised when a proposal is rejected before any remote call is made."""


class NotFoundError(ServiceError):
    """Raised when a referenced appointment or station no longer exists."""


class CommitError(ServiceError):
    """Raised when the remote store refuses a schedule change."""


class StaleWriteError(CommitError):
    """Raised when the stored row no longer matches the caller's view of it."""


class ProposalInFlightError(ServiceError):
    """Raised when a second change is proposed while one is still committing."""


class NotificationError(ServiceError):
    """Raised when an outbound customer notification could not be dispatched."""
