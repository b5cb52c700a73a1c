"""Service package public API definitions.

Service implementations import the HTTP clients, which in turn import
``manager_schedule.services.exceptions``. Importing every implementation
eagerly from this module would therefore create a circular import, so they are
loaded lazily on first access.
"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

__all__ = [
    "AppointmentMoveCoordinator",
    "NotificationService",
    "PersonalAppointmentEditor",
    "ScheduleService",
    "StationConfigService",
    "StationDailyConfigEditor",
    "WaitlistService",
]

_SERVICE_MODULES = {
    "AppointmentMoveCoordinator": "moves",
    "NotificationService": "notifications",
    "PersonalAppointmentEditor": "personal",
    "ScheduleService": "schedule",
    "StationConfigService": "station_config",
    "StationDailyConfigEditor": "station_config",
    "WaitlistService": "waitlist",
}


def __getattr__(name: str) -> Any:
    if name not in _SERVICE_MODULES:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    module = import_module(f".{_SERVICE_MODULES[name]}", __name__)
    attr = getattr(module, name)
    globals()[name] = attr
    return attr


if TYPE_CHECKING:  # pragma: no cover - import for static analysis only
    from .moves import AppointmentMoveCoordinator as AppointmentMoveCoordinator
    from .notifications import NotificationService as NotificationService
    from .personal import PersonalAppointmentEditor as PersonalAppointmentEditor
    from .schedule import ScheduleService as ScheduleService
    from .station_config import StationConfigService as StationConfigService
    from .station_config import StationDailyConfigEditor as StationDailyConfigEditor
    from .waitlist import WaitlistService as WaitlistService
