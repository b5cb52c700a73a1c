from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from manager_schedule.clients.supabase import SupabaseClient
from manager_schedule.schemas.schedule import Station
from manager_schedule.schemas.stations import (
    WEEKDAYS,
    StationDailyConfig,
    StationDailyConfigSet,
    Weekday,
)
from manager_schedule.services.exceptions import ServiceError
from manager_schedule.services.mock_store import (
    StationDailyConfigRepository,
    StationRepository,
    get_mock_store,
)
from manager_schedule.services.schedule_cache import ScheduleCache

logger = logging.getLogger(__name__)

CONFIG_TABLE = "station_daily_configs"


def weekday_for(day: date) -> Weekday:
    # WEEKDAYS starts on sunday, date.weekday() on monday.
    return WEEKDAYS[(day.weekday() + 1) % 7]


def _complete(configs: Mapping[str, StationDailyConfig]) -> Dict[Weekday, StationDailyConfig]:
    return {
        weekday: configs[weekday].model_copy(deep=True)
        if weekday in configs
        else StationDailyConfig(weekday=weekday)
        for weekday in WEEKDAYS
    }


def ordered_ids(config: StationDailyConfig, known_ids: Iterable[str]) -> List[str]:
    """Ordered ids first, then visible ids that never got a position."""

    known = set(known_ids)
    ordered = [station_id for station_id in config.station_order_ids if station_id in known]
    unordered = [
        station_id
        for station_id in config.visible_station_ids
        if station_id not in config.station_order_ids and station_id in known
    ]
    return ordered + unordered


def visible_stations(config: StationDailyConfig, stations: Sequence[Station]) -> List[Station]:
    if not config.visible_station_ids:
        return list(stations)
    by_id = {station.id: station for station in stations}
    return [
        by_id[station_id]
        for station_id in ordered_ids(config, by_id)
        if station_id in config.visible_station_ids
    ]


class StationDailyConfigEditor:
    """Draft of the seven weekday station configurations being edited."""

    def __init__(self, configs: Mapping[str, StationDailyConfig] | None = None) -> None:
        self.loaded = configs is not None
        self._configs = _complete(configs or {})

    def replace(self, configs: Mapping[str, StationDailyConfig]) -> None:
        self._configs = _complete(configs)
        self.loaded = True

    def config(self, weekday: Weekday) -> StationDailyConfig:
        return self._configs[weekday]

    def snapshot(self) -> StationDailyConfigSet:
        return StationDailyConfigSet(configs=_complete(self._configs))

    def toggle(self, weekday: Weekday, station_id: str) -> StationDailyConfig:
        config = self._configs[weekday]
        if station_id in config.visible_station_ids:
            visible = [item for item in config.visible_station_ids if item != station_id]
            order = [item for item in config.station_order_ids if item != station_id]
        else:
            visible = [*config.visible_station_ids, station_id]
            order = list(config.station_order_ids)
            if station_id not in order:
                order.append(station_id)
        updated = StationDailyConfig(
            weekday=weekday, visible_station_ids=visible, station_order_ids=order
        )
        self._configs[weekday] = updated
        return updated

    def ordered_station_ids(self, weekday: Weekday, known_ids: Iterable[str]) -> List[str]:
        return ordered_ids(self._configs[weekday], known_ids)

    def reorder(
        self,
        weekday: Weekday,
        active_id: str,
        over_id: str,
        known_ids: Iterable[str],
    ) -> StationDailyConfig:
        """Apply a drag that dropped ``active_id`` onto the slot of ``over_id``."""

        config = self._configs[weekday]
        if active_id == over_id:
            return config
        sequence = self.ordered_station_ids(weekday, known_ids)
        if active_id not in sequence or over_id not in sequence:
            return config

        old_index = sequence.index(active_id)
        new_index = sequence.index(over_id)
        sequence.insert(new_index, sequence.pop(old_index))
        updated = StationDailyConfig(
            weekday=weekday,
            visible_station_ids=list(config.visible_station_ids),
            station_order_ids=[
                station_id for station_id in sequence if station_id in config.visible_station_ids
            ],
        )
        self._configs[weekday] = updated
        return updated

    def copy(self, source: Weekday, targets: Iterable[Weekday]) -> List[Weekday]:
        config = self._configs[source]
        copied = []
        for target in targets:
            if target == source:
                continue
            self._configs[target] = StationDailyConfig(
                weekday=target,
                visible_station_ids=list(config.visible_station_ids),
                station_order_ids=list(config.station_order_ids),
            )
            copied.append(target)
        logger.info("Copied %s station configuration to %s", source, ", ".join(copied) or "no days")
        return copied


class StationConfigService:
    def __init__(
        self,
        client: SupabaseClient,
        *,
        cache: ScheduleCache,
        repository: StationDailyConfigRepository | None = None,
        stations: StationRepository | None = None,
    ) -> None:
        self._client = client
        self._cache = cache
        self._repository = repository
        self._stations = stations
        if self._client.use_mock_data:
            store = get_mock_store()
            self._repository = repository or store.station_configs
            self._stations = stations or store.stations

    async def list_stations(self) -> List[Station]:
        if self._client.use_mock_data:
            await self._client.simulate_latency()
            if not self._stations:
                raise RuntimeError("Mock station repository not configured")
            return self._stations.list()

        try:
            rows = await self._client.select(
                "stations",
                {"select": "*", "is_active": "eq.true", "order": "display_order.asc"},
            )
            return [Station(**row) for row in rows]
        except ServiceError:
            raise
        except Exception as exc:  # pragma: no cover - defensive
            logger.exception("Unexpected error while listing stations")
            raise ServiceError("Failed to list stations", cause=exc)

    async def load_all(self) -> Dict[Weekday, StationDailyConfig]:
        if self._client.use_mock_data:
            await self._client.simulate_latency()
            if not self._repository:
                raise RuntimeError("Mock station config repository not configured")
            stored = await self._repository.list()
        else:
            try:
                rows = await self._client.select(CONFIG_TABLE, {"select": "*"})
                stored = [StationDailyConfig(**row) for row in rows]
            except ServiceError:
                raise
            except Exception as exc:  # pragma: no cover - defensive
                logger.exception("Unexpected error while loading station configs")
                raise ServiceError("Failed to load station configurations", cause=exc)
        return _complete({config.weekday: config for config in stored})

    async def save_all(
        self, configs: Mapping[str, StationDailyConfig]
    ) -> Dict[Weekday, StationDailyConfig]:
        """Upsert every weekday in one batch and drop cached boards."""

        complete = _complete(configs)
        documents = [complete[weekday] for weekday in WEEKDAYS]
        logger.info("Saving station configuration for %d weekdays", len(documents))
        if self._client.use_mock_data:
            await self._client.simulate_latency()
            if not self._repository:
                raise RuntimeError("Mock station config repository not configured")
            saved = await self._repository.upsert_many(documents)
        else:
            try:
                rows = await self._client.upsert(
                    CONFIG_TABLE,
                    [document.model_dump() for document in documents],
                    on_conflict="weekday",
                )
                saved = [StationDailyConfig(**row) for row in rows] or documents
            except ServiceError:
                raise
            except Exception as exc:  # pragma: no cover - defensive
                logger.exception("Unexpected error while saving station configs")
                raise ServiceError("Failed to save station configurations", cause=exc)

        self._cache.invalidate()
        return _complete({config.weekday: config for config in saved})

    async def visible_stations_for(
        self, day: date, stations: Sequence[Station]
    ) -> List[Station]:
        configs = await self.load_all()
        config: Optional[StationDailyConfig] = configs.get(weekday_for(day))
        if config is None:
            return list(stations)
        return visible_stations(config, stations)
