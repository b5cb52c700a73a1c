from datetime import date as date_type
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from manager_schedule.dependencies.services import (
    get_board_state,
    get_move_coordinator,
    get_personal_editor,
    get_schedule_service,
)
from manager_schedule.routes.errors import http_error, outcome_status
from manager_schedule.schemas.schedule import (
    Appointment,
    MoveOutcome,
    MoveProposal,
    PendingResizeState,
    PersonalAppointmentEdit,
    ResizeConfirmRequest,
    ResizeRequest,
    ScheduleQuery,
    ScheduleSnapshot,
    ServiceFilter,
)
from manager_schedule.services import (
    AppointmentMoveCoordinator,
    PersonalAppointmentEditor,
    ScheduleService,
)
from manager_schedule.services.board_state import BoardState
from manager_schedule.services.exceptions import ServiceError

router = APIRouter()


def schedule_query(
    date: date_type,
    service_filter: ServiceFilter = "both",
    board: BoardState = Depends(get_board_state),
) -> ScheduleQuery:
    query = ScheduleQuery(date=date, service_filter=service_filter)
    board.select(query)
    return query


def _outcome_response(outcome: MoveOutcome) -> JSONResponse:
    return JSONResponse(
        status_code=outcome_status(outcome),
        content=outcome.model_dump(mode="json"),
    )


@router.get("", response_model=ScheduleSnapshot)
async def get_schedule(
    refresh: bool = False,
    query: ScheduleQuery = Depends(schedule_query),
    service: ScheduleService = Depends(get_schedule_service),
):
    try:
        if refresh:
            return await service.refresh(query)
        return await service.load(query)
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.post("/moves", response_model=MoveOutcome)
async def move_appointment(
    req: MoveProposal,
    query: ScheduleQuery = Depends(schedule_query),
    coordinator: AppointmentMoveCoordinator = Depends(get_move_coordinator),
):
    try:
        outcome = await coordinator.move(query, req)
    except ServiceError as exc:
        raise http_error(exc) from exc
    return _outcome_response(outcome)


@router.post("/resizes", response_model=Optional[PendingResizeState])
async def begin_resize(
    req: ResizeRequest,
    query: ScheduleQuery = Depends(schedule_query),
    coordinator: AppointmentMoveCoordinator = Depends(get_move_coordinator),
):
    try:
        return await coordinator.begin_resize(query, req.appointment_id, req.new_end)
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.post("/resizes/confirm", response_model=MoveOutcome)
async def confirm_resize(
    req: ResizeConfirmRequest,
    query: ScheduleQuery = Depends(schedule_query),
    coordinator: AppointmentMoveCoordinator = Depends(get_move_coordinator),
):
    try:
        outcome = await coordinator.confirm_resize(query, req.notify_customer)
    except ServiceError as exc:
        raise http_error(exc) from exc
    return _outcome_response(outcome)


@router.delete("/resizes", response_model=Optional[Appointment])
async def cancel_resize(
    query: ScheduleQuery = Depends(schedule_query),
    coordinator: AppointmentMoveCoordinator = Depends(get_move_coordinator),
):
    return await coordinator.cancel_resize(query)


@router.put("/personal/{appointment_id}", response_model=MoveOutcome)
async def edit_personal_appointment(
    appointment_id: str,
    req: PersonalAppointmentEdit,
    query: ScheduleQuery = Depends(schedule_query),
    editor: PersonalAppointmentEditor = Depends(get_personal_editor),
):
    try:
        outcome = await editor.confirm(query, appointment_id, req)
    except ServiceError as exc:
        raise http_error(exc) from exc
    return _outcome_response(outcome)


@router.post("/personal/{appointment_id}/cancel", response_model=Optional[Appointment])
async def cancel_personal_edit(
    appointment_id: str,
    query: ScheduleQuery = Depends(schedule_query),
    editor: PersonalAppointmentEditor = Depends(get_personal_editor),
):
    try:
        appointment = await editor.cancel(query, appointment_id)
    except ServiceError as exc:
        raise http_error(exc) from exc
    if appointment is None:
        raise HTTPException(status_code=404, detail=f"Appointment {appointment_id} not found")
    return appointment
