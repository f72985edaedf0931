from datetime import date

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from careslot.models.user import ROLE_ADMIN, ROLE_DOCTOR
from careslot.routes.appointment_routes import (
    CancelAppointmentRequest,
    CreateAppointmentRequest,
    RescheduleAppointmentRequest,
    ResolveRescheduleRequest,
    UpdateAppointmentRequest,
    book_appointment,
    cancel_appointment,
    confirm_appointment,
    get_appointment,
    get_available_slots,
    get_doctor_schedule,
    list_my_appointments,
    request_reschedule,
    resolve_reschedule,
    update_appointment,
)
from careslot.services.scheduling_service import SchedulingService

MONDAY = date(2026, 1, 5)
WEDNESDAY = date(2026, 1, 7)


@pytest.fixture(autouse=True)
def skip_schema_bootstrap(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('careslot.routes.appointment_routes.ensure_database_ready', lambda: None)


@pytest.fixture
def service(db_session) -> SchedulingService:
    return SchedulingService(db=db_session)


def _booking_request(doctor_id: int, slot_time: str = '10:00', **overrides) -> CreateAppointmentRequest:
    payload = {
        'doctor_id': doctor_id,
        'date': MONDAY,
        'time': slot_time,
        'reason': ' Persistent headache ',
        'pre_consultation_form': {'symptoms': ['headache', ' headache ', 'nausea']},
    }
    payload.update(overrides)
    return CreateAppointmentRequest(**payload)


def test_create_appointment_request_normalizes_fields() -> None:
    request = _booking_request(1, slot_time=' 09:30 ', notes='   ')

    assert request.time == '09:30'
    assert request.reason == 'Persistent headache'
    assert request.notes is None
    assert request.pre_consultation_form.symptoms == ['headache', 'nausea']


@pytest.mark.parametrize(
    'overrides',
    [
        {'time': '9:30'},
        {'reason': '   '},
        {'pre_consultation_form': {'symptoms': []}},
        {'pre_consultation_form': {'symptoms': ['cough'], 'medical_history': 'x' * 2001}},
    ],
)
def test_create_appointment_request_rejects_invalid_payloads(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        _booking_request(1, **overrides)


def test_update_appointment_request_allows_partial_payload() -> None:
    request = UpdateAppointmentRequest(notes=' Bring previous scans ')

    assert request.date is None
    assert request.time is None
    assert request.notes == 'Bring previous scans'


def test_update_appointment_moves_to_open_slot(doctor, patient, service) -> None:
    booked = book_appointment(data=_booking_request(doctor.id), current_user=patient, service=service)

    updated = update_appointment(
        appointment_id=booked.id,
        data=UpdateAppointmentRequest(date=WEDNESDAY, time='11:30'),
        current_user=patient,
        service=service,
    )

    assert updated.date == WEDNESDAY
    assert updated.time == '11:30'
    assert updated.status == 'pending'


def test_book_appointment_for_unknown_patient_returns_not_found(doctor, service) -> None:
    with pytest.raises(HTTPException) as exception_info:
        book_appointment(data=_booking_request(doctor.id, patient_id=4242), current_user=doctor, service=service)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Patient not found.'


def test_resolve_reschedule_request_rejects_unknown_action() -> None:
    with pytest.raises(ValidationError):
        ResolveRescheduleRequest(action='postpone')


def test_book_appointment_uses_current_patient(doctor, patient, other_patient, service) -> None:
    response = book_appointment(
        data=_booking_request(doctor.id, patient_id=other_patient.id),
        current_user=patient,
        service=service,
    )

    assert response.patient_id == patient.id
    assert response.status == 'pending'
    assert response.reschedule.status == 'none'


def test_book_appointment_returns_conflict_for_taken_slot(doctor, patient, other_patient, service) -> None:
    book_appointment(data=_booking_request(doctor.id), current_user=patient, service=service)

    with pytest.raises(HTTPException) as exception_info:
        book_appointment(data=_booking_request(doctor.id), current_user=other_patient, service=service)

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail == 'Time slot is already booked.'


def test_book_appointment_returns_bad_request_outside_hours(doctor, patient, service) -> None:
    with pytest.raises(HTTPException) as exception_info:
        book_appointment(data=_booking_request(doctor.id, slot_time='20:00'), current_user=patient, service=service)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Doctor is not available at the requested time.'


def test_book_appointment_requires_patient_id_for_staff(doctor, service) -> None:
    with pytest.raises(HTTPException) as exception_info:
        book_appointment(data=_booking_request(doctor.id), current_user=doctor, service=service)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Patient ID is required.'


def test_book_appointment_returns_not_found_for_unknown_doctor(patient, service) -> None:
    with pytest.raises(HTTPException) as exception_info:
        book_appointment(data=_booking_request(999), current_user=patient, service=service)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Doctor not found.'


def test_get_appointment_rejects_other_patient(doctor, patient, other_patient, service) -> None:
    booked = book_appointment(data=_booking_request(doctor.id), current_user=patient, service=service)

    with pytest.raises(HTTPException) as exception_info:
        get_appointment(appointment_id=booked.id, current_user=other_patient, service=service)

    assert exception_info.value.status_code == 403


def test_get_appointment_returns_not_found_when_missing(patient, service) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_appointment(appointment_id=999, current_user=patient, service=service)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Appointment not found.'


def test_confirm_appointment_is_doctor_only(doctor, patient, service) -> None:
    booked = book_appointment(data=_booking_request(doctor.id), current_user=patient, service=service)

    with pytest.raises(HTTPException) as exception_info:
        confirm_appointment(appointment_id=booked.id, current_user=patient, service=service)
    assert exception_info.value.status_code == 403

    confirmed = confirm_appointment(appointment_id=booked.id, current_user=doctor, service=service)
    assert confirmed.status == 'confirmed'


def test_confirm_appointment_rejects_other_doctor(doctor, patient, make_user, service) -> None:
    other_doctor = make_user(ROLE_DOCTOR)
    booked = book_appointment(data=_booking_request(doctor.id), current_user=patient, service=service)

    with pytest.raises(HTTPException) as exception_info:
        confirm_appointment(appointment_id=booked.id, current_user=other_doctor, service=service)

    assert exception_info.value.status_code == 403


def test_cancel_appointment_twice_returns_bad_request(doctor, patient, service) -> None:
    booked = book_appointment(data=_booking_request(doctor.id), current_user=patient, service=service)
    cancelled = cancel_appointment(
        appointment_id=booked.id,
        data=CancelAppointmentRequest(reason='Travelling'),
        current_user=patient,
        service=service,
    )
    assert cancelled.status == 'cancelled'
    assert cancelled.cancelled_by == patient.id

    with pytest.raises(HTTPException) as exception_info:
        cancel_appointment(appointment_id=booked.id, data=None, current_user=patient, service=service)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Appointment is already cancelled.'


def test_reschedule_round_trip_through_routes(doctor, patient, service) -> None:
    booked = book_appointment(data=_booking_request(doctor.id), current_user=patient, service=service)

    requested = request_reschedule(
        appointment_id=booked.id,
        data=RescheduleAppointmentRequest(new_date=WEDNESDAY, new_time='15:00', reason='Work meeting'),
        current_user=patient,
        service=service,
    )
    assert requested.reschedule.status == 'pending'
    assert requested.date == MONDAY

    with pytest.raises(HTTPException) as exception_info:
        resolve_reschedule(
            appointment_id=booked.id,
            data=ResolveRescheduleRequest(action='approve'),
            current_user=patient,
            service=service,
        )
    assert exception_info.value.status_code == 403

    approved = resolve_reschedule(
        appointment_id=booked.id,
        data=ResolveRescheduleRequest(action='approve'),
        current_user=doctor,
        service=service,
    )
    assert approved.reschedule.status == 'approved'
    assert approved.date == WEDNESDAY
    assert approved.time == '15:00'


def test_admin_can_resolve_reschedule(doctor, patient, make_user, service) -> None:
    admin = make_user(ROLE_ADMIN)
    booked = book_appointment(data=_booking_request(doctor.id), current_user=patient, service=service)
    request_reschedule(
        appointment_id=booked.id,
        data=RescheduleAppointmentRequest(new_date=WEDNESDAY, new_time='15:00', reason='Work meeting'),
        current_user=patient,
        service=service,
    )

    rejected = resolve_reschedule(
        appointment_id=booked.id,
        data=ResolveRescheduleRequest(action='reject'),
        current_user=admin,
        service=service,
    )

    assert rejected.reschedule.status == 'rejected'
    assert rejected.date == MONDAY


def test_get_available_slots_lists_open_times(doctor, patient, service) -> None:
    book_appointment(data=_booking_request(doctor.id, slot_time='09:00'), current_user=patient, service=service)

    response = get_available_slots(doctor_id=doctor.id, slot_date=MONDAY, service=service)

    assert response.slots[0] == '09:30'
    assert '09:00' not in response.slots
    assert response.slots[-1] == '16:30'


def test_list_my_appointments_rejects_admin(make_user, service) -> None:
    admin = make_user(ROLE_ADMIN)

    with pytest.raises(HTTPException) as exception_info:
        list_my_appointments(start_date=None, end_date=None, current_user=admin, service=service)

    assert exception_info.value.status_code == 403


def test_list_my_appointments_for_patient(doctor, patient, service) -> None:
    booked = book_appointment(data=_booking_request(doctor.id), current_user=patient, service=service)

    appointments = list_my_appointments(start_date=None, end_date=None, current_user=patient, service=service)

    assert [appointment.id for appointment in appointments] == [booked.id]


def test_get_doctor_schedule_validates_range(doctor, service) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_doctor_schedule(
            start_date=WEDNESDAY,
            end_date=MONDAY,
            appointment_status=None,
            current_user=doctor,
            service=service,
        )

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Start date must be on or before end date.'


def test_get_doctor_schedule_returns_own_appointments(doctor, patient, service) -> None:
    booked = book_appointment(data=_booking_request(doctor.id), current_user=patient, service=service)

    schedule = get_doctor_schedule(
        start_date=MONDAY,
        end_date=WEDNESDAY,
        appointment_status='pending',
        current_user=doctor,
        service=service,
    )

    assert [appointment.id for appointment in schedule] == [booked.id]
