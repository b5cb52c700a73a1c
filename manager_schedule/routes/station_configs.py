from datetime import date as date_type
from typing import List

from fastapi import APIRouter, Depends

from manager_schedule.dependencies.services import (
    get_station_config_editor,
    get_station_config_service,
)
from manager_schedule.routes.errors import http_error
from manager_schedule.schemas.schedule import Station
from manager_schedule.schemas.stations import (
    CopyConfigRequest,
    ReorderStationsRequest,
    StationDailyConfig,
    StationDailyConfigSet,
    ToggleStationRequest,
    Weekday,
)
from manager_schedule.services import StationConfigService, StationDailyConfigEditor
from manager_schedule.services.exceptions import ServiceError

router = APIRouter()


async def loaded_editor(
    editor: StationDailyConfigEditor = Depends(get_station_config_editor),
    service: StationConfigService = Depends(get_station_config_service),
) -> StationDailyConfigEditor:
    if not editor.loaded:
        try:
            editor.replace(await service.load_all())
        except ServiceError as exc:
            raise http_error(exc) from exc
    return editor


@router.get("", response_model=StationDailyConfigSet)
async def get_station_configs(
    reload: bool = False,
    editor: StationDailyConfigEditor = Depends(loaded_editor),
    service: StationConfigService = Depends(get_station_config_service),
):
    if reload:
        try:
            editor.replace(await service.load_all())
        except ServiceError as exc:
            raise http_error(exc) from exc
    return editor.snapshot()


@router.post("/copy", response_model=StationDailyConfigSet)
async def copy_station_config(
    req: CopyConfigRequest,
    editor: StationDailyConfigEditor = Depends(loaded_editor),
):
    editor.copy(req.source_weekday, req.target_weekdays)
    return editor.snapshot()


@router.post("/save", response_model=StationDailyConfigSet)
async def save_station_configs(
    editor: StationDailyConfigEditor = Depends(loaded_editor),
    service: StationConfigService = Depends(get_station_config_service),
):
    try:
        saved = await service.save_all(editor.snapshot().configs)
    except ServiceError as exc:
        raise http_error(exc) from exc
    editor.replace(saved)
    return editor.snapshot()


@router.get("/visible", response_model=List[Station])
async def visible_stations(
    date: date_type,
    service: StationConfigService = Depends(get_station_config_service),
):
    try:
        stations = await service.list_stations()
        return await service.visible_stations_for(date, stations)
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.post("/{weekday}/toggle", response_model=StationDailyConfig)
async def toggle_station(
    weekday: Weekday,
    req: ToggleStationRequest,
    editor: StationDailyConfigEditor = Depends(loaded_editor),
):
    return editor.toggle(weekday, req.station_id)


@router.post("/{weekday}/reorder", response_model=StationDailyConfig)
async def reorder_stations(
    weekday: Weekday,
    req: ReorderStationsRequest,
    editor: StationDailyConfigEditor = Depends(loaded_editor),
    service: StationConfigService = Depends(get_station_config_service),
):
    try:
        stations = await service.list_stations()
    except ServiceError as exc:
        raise http_error(exc) from exc
    return editor.reorder(
        weekday, req.active_id, req.over_id, [station.id for station in stations]
    )
