from __future__ import annotations

from typing import Dict, List, Literal

from pydantic import BaseModel, Field, model_validator


Weekday = Literal[
    "sunday",
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
]

WEEKDAYS: tuple[Weekday, ...] = (
    "sunday",
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
)


class StationDailyConfig(BaseModel):
    weekday: Weekday
    visible_station_ids: List[str] = Field(default_factory=list)
    station_order_ids: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _order_covers_visible(self) -> "StationDailyConfig":
        # Older documents may list visible stations that never got a position.
        for station_id in self.visible_station_ids:
            if station_id not in self.station_order_ids:
                self.station_order_ids.append(station_id)
        return self


class StationDailyConfigSet(BaseModel):
    configs: Dict[Weekday, StationDailyConfig]


class ToggleStationRequest(BaseModel):
    station_id: str


class ReorderStationsRequest(BaseModel):
    active_id: str
    over_id: str


class CopyConfigRequest(BaseModel):
    source_weekday: Weekday
    target_weekdays: List[Weekday] = Field(..., min_length=1)
