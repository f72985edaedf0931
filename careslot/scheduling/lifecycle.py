"""Appointment lifecycle: pending -> confirmed -> completed, and pending|confirmed -> cancelled.

Transitions are conditional single-row UPDATEs guarded by the statuses they
are legal from, so two concurrent transitions on one appointment cannot both
apply. When the guard matches nothing, the row is re-read and the caller is
told why against the state that won.
"""

import logging
from datetime import date, datetime, timezone

from sqlalchemy.orm import Session

from careslot.core.errors import InvalidTransition, NotFound
from careslot.models.appointment import (
    ACTIVE_STATUSES,
    RESCHEDULE_NONE,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_CONFIRMED,
    STATUS_PENDING,
    Appointment,
)
from careslot.models.user import ROLE_PATIENT, User
from careslot.scheduling.conflicts import ensure_slot_bookable, guard_slot_write
from careslot.scheduling.schemas import PreConsultationForm

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_appointment(appointment_id: int, db: Session) -> Appointment:
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        raise NotFound('Appointment not found.')
    return appointment


def reload_appointment(appointment_id: int, db: Session) -> Appointment:
    db.expire_all()
    return get_appointment(appointment_id, db)


def get_patient(patient_id: int, db: Session) -> User:
    patient = db.query(User).filter(User.id == patient_id, User.role == ROLE_PATIENT).first()
    if patient is None:
        raise NotFound('Patient not found.')
    return patient


def apply_update(appointment_id: int, values: dict, db: Session, *criteria) -> int:
    return db.query(Appointment).filter(Appointment.id == appointment_id, *criteria).update(
        values,
        synchronize_session=False,
    )


def create_appointment(
    patient_id: int,
    doctor_id: int,
    slot_date: date,
    slot_time: str,
    reason: str,
    form: PreConsultationForm,
    db: Session,
    notes: str | None = None,
) -> Appointment:
    get_patient(patient_id, db)
    ensure_slot_bookable(doctor_id, slot_date, slot_time, db)

    appointment = Appointment(
        patient_id=patient_id,
        doctor_id=doctor_id,
        date=slot_date,
        time=slot_time,
        status=STATUS_PENDING,
        reason=reason,
        notes=notes,
        pre_consultation_form=form.model_dump(),
        reschedule_status=RESCHEDULE_NONE,
    )
    with guard_slot_write(db):
        db.add(appointment)
    db.refresh(appointment)

    logger.info(
        'Booked appointment %s for patient %s with doctor %s on %s at %s',
        appointment.id,
        patient_id,
        doctor_id,
        slot_date,
        slot_time,
    )
    return appointment


def confirm_appointment(appointment_id: int, db: Session) -> Appointment:
    updated = apply_update(
        appointment_id,
        {Appointment.status: STATUS_CONFIRMED},
        db,
        Appointment.status == STATUS_PENDING,
    )
    if not updated:
        reload_appointment(appointment_id, db)
        raise InvalidTransition('Only pending appointments can be confirmed.')

    db.commit()
    logger.info('Confirmed appointment %s', appointment_id)
    return get_appointment(appointment_id, db)


def cancel_appointment(appointment_id: int, actor_id: int, reason: str | None, db: Session) -> Appointment:
    updated = apply_update(
        appointment_id,
        {
            Appointment.status: STATUS_CANCELLED,
            Appointment.cancelled_at: utcnow(),
            Appointment.cancelled_by: actor_id,
            Appointment.cancellation_reason: reason,
        },
        db,
        Appointment.status.in_(ACTIVE_STATUSES),
    )
    if not updated:
        current = reload_appointment(appointment_id, db)
        if current.status == STATUS_CANCELLED:
            raise InvalidTransition('Appointment is already cancelled.')
        raise InvalidTransition('Cannot cancel a completed appointment.')

    db.commit()
    logger.info('Cancelled appointment %s by user %s', appointment_id, actor_id)
    return get_appointment(appointment_id, db)


def complete_appointment(appointment_id: int, db: Session) -> Appointment:
    updated = apply_update(
        appointment_id,
        {Appointment.status: STATUS_COMPLETED},
        db,
        Appointment.status == STATUS_CONFIRMED,
    )
    if not updated:
        reload_appointment(appointment_id, db)
        raise InvalidTransition('Only confirmed appointments can be completed.')

    db.commit()
    logger.info('Completed appointment %s', appointment_id)
    return get_appointment(appointment_id, db)


def update_appointment(
    appointment_id: int,
    db: Session,
    slot_date: date | None = None,
    slot_time: str | None = None,
    reason: str | None = None,
    notes: str | None = None,
) -> Appointment:
    appointment = get_appointment(appointment_id, db)
    values: dict = {}
    criteria = []

    if reason is not None:
        values[Appointment.reason] = reason
    if notes is not None:
        values[Appointment.notes] = notes

    new_date = slot_date or appointment.date
    new_time = slot_time or appointment.time
    if (new_date, new_time) != (appointment.date, appointment.time):
        if appointment.status not in ACTIVE_STATUSES:
            raise InvalidTransition(f'Cannot move a {appointment.status} appointment.')

        ensure_slot_bookable(appointment.doctor_id, new_date, new_time, db, excluding_appointment_id=appointment.id)
        values[Appointment.date] = new_date
        values[Appointment.time] = new_time
        criteria.append(Appointment.status.in_(ACTIVE_STATUSES))

    if not values:
        return appointment

    with guard_slot_write(db):
        updated = apply_update(appointment_id, values, db, *criteria)
        if not updated:
            current = reload_appointment(appointment_id, db)
            raise InvalidTransition(f'Cannot move a {current.status} appointment.')

    logger.info('Updated appointment %s', appointment_id)
    return get_appointment(appointment_id, db)
