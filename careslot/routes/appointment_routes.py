import datetime as dt
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator

from careslot.auth.dependencies import get_current_user, require_role
from careslot.models.appointment import APPOINTMENT_STATUSES, Appointment
from careslot.models.user import ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT, User
from careslot.routes.common import (
    SERVICE_ERRORS,
    ensure_database_ready,
    ensure_participant,
    get_scheduling_service,
    to_http_exception,
)
from careslot.scheduling.schemas import PreConsultationForm
from careslot.scheduling.slots import to_minutes
from careslot.services.scheduling_service import SchedulingService

router = APIRouter(tags=['appointments'])

MAX_REASON_LENGTH = 500
MAX_APPOINTMENT_NOTES_LENGTH = 1000
SCHEDULE_RANGE_DAYS = 28


def _validate_time(value: str) -> str:
    normalized = value.strip()
    to_minutes(normalized)
    return normalized


def _validate_reason(value: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError('Reason is required.')
    if len(normalized) > MAX_REASON_LENGTH:
        raise ValueError(f'Reason cannot be more than {MAX_REASON_LENGTH} characters.')
    return normalized


def _validate_notes(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > MAX_APPOINTMENT_NOTES_LENGTH:
        raise ValueError(f'Notes must be {MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

    return normalized


class CreateAppointmentRequest(BaseModel):
    doctor_id: int
    patient_id: int | None = None
    date: dt.date
    time: str
    reason: str
    notes: str | None = None
    pre_consultation_form: PreConsultationForm

    @field_validator('time')
    @classmethod
    def validate_time(cls, value: str) -> str:
        return _validate_time(value)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str) -> str:
        return _validate_reason(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _validate_notes(value)


class UpdateAppointmentRequest(BaseModel):
    date: dt.date | None = None
    time: str | None = None
    reason: str | None = None
    notes: str | None = None

    @field_validator('time')
    @classmethod
    def validate_time(cls, value: str | None) -> str | None:
        return None if value is None else _validate_time(value)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return None if value is None else _validate_reason(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _validate_notes(value)


class CancelAppointmentRequest(BaseModel):
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _validate_notes(value)


class RescheduleAppointmentRequest(BaseModel):
    new_date: dt.date
    new_time: str
    reason: str

    @field_validator('new_time')
    @classmethod
    def validate_new_time(cls, value: str) -> str:
        return _validate_time(value)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str) -> str:
        return _validate_reason(value)


class ResolveRescheduleRequest(BaseModel):
    action: Literal['approve', 'reject']


class RescheduleResponse(BaseModel):
    status: str
    requested_at: dt.datetime | None = None
    requested_by: int | None = None
    reason: str | None = None
    new_date: dt.date | None = None
    new_time: str | None = None
    resolved_at: dt.datetime | None = None
    resolved_by: int | None = None


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    date: dt.date
    time: str
    status: str
    reason: str
    notes: str | None = None
    pre_consultation_form: PreConsultationForm
    cancelled_at: dt.datetime | None = None
    cancelled_by: int | None = None
    cancellation_reason: str | None = None
    reschedule: RescheduleResponse
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None


class AvailableSlotsResponse(BaseModel):
    doctor_id: int
    date: dt.date
    slots: list[str]


def to_appointment_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        patient_id=appointment.patient_id,
        doctor_id=appointment.doctor_id,
        date=appointment.date,
        time=appointment.time,
        status=appointment.status,
        reason=appointment.reason,
        notes=appointment.notes,
        pre_consultation_form=appointment.pre_consultation_form,
        cancelled_at=appointment.cancelled_at,
        cancelled_by=appointment.cancelled_by,
        cancellation_reason=appointment.cancellation_reason,
        reschedule=RescheduleResponse(
            status=appointment.reschedule_status,
            requested_at=appointment.reschedule_requested_at,
            requested_by=appointment.reschedule_requested_by,
            reason=appointment.reschedule_reason,
            new_date=appointment.reschedule_new_date,
            new_time=appointment.reschedule_new_time,
            resolved_at=appointment.reschedule_resolved_at,
            resolved_by=appointment.reschedule_resolved_by,
        ),
        created_at=appointment.created_at,
        updated_at=appointment.updated_at,
    )


def validate_date_range(start_date: dt.date, end_date: dt.date) -> None:
    if start_date > end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Start date must be on or before end date.',
        )


def load_participant_appointment(appointment_id: int, user: User, service: SchedulingService) -> Appointment:
    try:
        appointment = service.get_appointment(appointment_id)
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc

    ensure_participant(appointment, user)
    return appointment


@router.get('/', response_model=list[AppointmentResponse])
def list_my_appointments(
    start_date: dt.date | None = Query(default=None),
    end_date: dt.date | None = Query(default=None),
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    require_role(
        current_user,
        ROLE_PATIENT,
        ROLE_DOCTOR,
        detail='Only patients and doctors have their own appointments.',
    )
    if start_date is not None and end_date is not None:
        validate_date_range(start_date, end_date)

    ensure_database_ready()

    try:
        if current_user.role == ROLE_DOCTOR:
            range_start = start_date or dt.date.today()
            range_end = end_date or range_start + dt.timedelta(days=SCHEDULE_RANGE_DAYS)
            validate_date_range(range_start, range_end)
            appointments = service.get_doctor_schedule(current_user.id, range_start, range_end)
        else:
            appointments = service.get_patient_appointments(current_user.id, start_date, end_date)
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc

    return [to_appointment_response(appointment) for appointment in appointments]


@router.get('/doctor/schedule', response_model=list[AppointmentResponse])
def get_doctor_schedule(
    start_date: dt.date = Query(...),
    end_date: dt.date = Query(...),
    appointment_status: str | None = Query(default=None, alias='status'),
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    require_role(current_user, ROLE_DOCTOR, detail='Only doctors can view their schedule.')
    validate_date_range(start_date, end_date)

    if appointment_status is not None and appointment_status not in APPOINTMENT_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Invalid status. Must be one of: {", ".join(APPOINTMENT_STATUSES)}.',
        )

    ensure_database_ready()

    try:
        appointments = service.get_doctor_schedule(current_user.id, start_date, end_date, appointment_status)
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc

    return [to_appointment_response(appointment) for appointment in appointments]


@router.get('/available-slots/{doctor_id}', response_model=AvailableSlotsResponse)
def get_available_slots(
    doctor_id: int,
    slot_date: dt.date = Query(..., alias='date'),
    service: SchedulingService = Depends(get_scheduling_service),
):
    ensure_database_ready()

    try:
        slots = service.get_available_slots(doctor_id, slot_date)
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc

    return AvailableSlotsResponse(doctor_id=doctor_id, date=slot_date, slots=slots)


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    ensure_database_ready()

    appointment = load_participant_appointment(appointment_id, current_user, service)
    return to_appointment_response(appointment)


@router.post('/', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(
    data: CreateAppointmentRequest,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    if current_user.role == ROLE_PATIENT:
        patient_id = current_user.id
    elif data.patient_id is not None:
        patient_id = data.patient_id
    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Patient ID is required.',
        )

    ensure_database_ready()

    try:
        appointment = service.book_appointment(
            patient_id,
            data.doctor_id,
            data.date,
            data.time,
            data.reason,
            data.pre_consultation_form,
            notes=data.notes,
        )
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc

    return to_appointment_response(appointment)


@router.put('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    data: UpdateAppointmentRequest,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    ensure_database_ready()
    load_participant_appointment(appointment_id, current_user, service)

    try:
        appointment = service.update_appointment(
            appointment_id,
            slot_date=data.date,
            slot_time=data.time,
            reason=data.reason,
            notes=data.notes,
        )
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc

    return to_appointment_response(appointment)


@router.put('/{appointment_id}/confirm', response_model=AppointmentResponse)
def confirm_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    require_role(current_user, ROLE_DOCTOR, detail='Only doctors can confirm appointments.')
    ensure_database_ready()
    load_participant_appointment(appointment_id, current_user, service)

    try:
        appointment = service.confirm_appointment(appointment_id)
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc

    return to_appointment_response(appointment)


@router.put('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    data: CancelAppointmentRequest | None = None,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    ensure_database_ready()
    load_participant_appointment(appointment_id, current_user, service)

    try:
        appointment = service.cancel_appointment(
            appointment_id,
            current_user.id,
            data.reason if data is not None else None,
        )
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc

    return to_appointment_response(appointment)


@router.put('/{appointment_id}/complete', response_model=AppointmentResponse)
def complete_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    require_role(current_user, ROLE_DOCTOR, detail='Only doctors can complete appointments.')
    ensure_database_ready()
    load_participant_appointment(appointment_id, current_user, service)

    try:
        appointment = service.complete_appointment(appointment_id)
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc

    return to_appointment_response(appointment)


@router.put('/{appointment_id}/reschedule', response_model=AppointmentResponse)
def request_reschedule(
    appointment_id: int,
    data: RescheduleAppointmentRequest,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    ensure_database_ready()
    load_participant_appointment(appointment_id, current_user, service)

    try:
        appointment = service.request_reschedule(
            appointment_id,
            data.new_date,
            data.new_time,
            current_user.id,
            data.reason,
        )
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc

    return to_appointment_response(appointment)


@router.put('/{appointment_id}/handle-reschedule', response_model=AppointmentResponse)
def resolve_reschedule(
    appointment_id: int,
    data: ResolveRescheduleRequest,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    require_role(
        current_user,
        ROLE_DOCTOR,
        ROLE_ADMIN,
        detail='Only doctors and admins can handle reschedule requests.',
    )
    ensure_database_ready()
    load_participant_appointment(appointment_id, current_user, service)

    try:
        appointment = service.resolve_reschedule(appointment_id, data.action, current_user.id)
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc

    return to_appointment_response(appointment)
