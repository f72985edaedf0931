"""Reschedule negotiation nested inside an appointment: none -> pending -> approved | rejected.

A proposal never holds the slot it names. The appointment keeps its
authoritative date and time until the proposal is approved. Approval checks
the proposed slot against the bookings that exist at approval time.
"""

import logging
from datetime import date

from sqlalchemy.orm import Session

from careslot.core.errors import InvalidTransition
from careslot.models.appointment import (
    ACTIVE_STATUSES,
    RESCHEDULE_APPROVED,
    RESCHEDULE_PENDING,
    RESCHEDULE_REJECTED,
    Appointment,
)
from careslot.scheduling.conflicts import ensure_slot_bookable, guard_slot_write
from careslot.scheduling.lifecycle import apply_update, get_appointment, reload_appointment, utcnow

logger = logging.getLogger(__name__)

ACTION_APPROVE = 'approve'
ACTION_REJECT = 'reject'
RESCHEDULE_ACTIONS = (ACTION_APPROVE, ACTION_REJECT)


def _ensure_can_request(appointment: Appointment) -> None:
    if appointment.status not in ACTIVE_STATUSES:
        raise InvalidTransition(f'Cannot reschedule a {appointment.status} appointment.')
    if appointment.reschedule_status == RESCHEDULE_PENDING:
        raise InvalidTransition('Appointment already has a pending reschedule request.')


def _ensure_pending(appointment: Appointment) -> None:
    if appointment.reschedule_status != RESCHEDULE_PENDING:
        raise InvalidTransition('No pending reschedule request for this appointment.')


def request_reschedule(
    appointment_id: int,
    new_date: date,
    new_time: str,
    requested_by: int,
    reason: str,
    db: Session,
) -> Appointment:
    appointment = get_appointment(appointment_id, db)
    _ensure_can_request(appointment)

    ensure_slot_bookable(appointment.doctor_id, new_date, new_time, db, excluding_appointment_id=appointment.id)

    updated = apply_update(
        appointment_id,
        {
            Appointment.reschedule_status: RESCHEDULE_PENDING,
            Appointment.reschedule_requested_at: utcnow(),
            Appointment.reschedule_requested_by: requested_by,
            Appointment.reschedule_reason: reason,
            Appointment.reschedule_new_date: new_date,
            Appointment.reschedule_new_time: new_time,
            Appointment.reschedule_resolved_at: None,
            Appointment.reschedule_resolved_by: None,
        },
        db,
        Appointment.status.in_(ACTIVE_STATUSES),
        Appointment.reschedule_status != RESCHEDULE_PENDING,
    )
    if not updated:
        _ensure_can_request(reload_appointment(appointment_id, db))
        raise InvalidTransition()

    db.commit()
    logger.info(
        'Reschedule requested for appointment %s by user %s to %s at %s',
        appointment_id,
        requested_by,
        new_date,
        new_time,
    )
    return get_appointment(appointment_id, db)


def resolve_reschedule(appointment_id: int, action: str, resolved_by: int, db: Session) -> Appointment:
    if action not in RESCHEDULE_ACTIONS:
        raise ValueError('Action must be "approve" or "reject".')

    appointment = get_appointment(appointment_id, db)
    _ensure_pending(appointment)

    if action == ACTION_REJECT:
        return _reject(appointment_id, resolved_by, db)

    if appointment.status not in ACTIVE_STATUSES:
        raise InvalidTransition(f'Cannot reschedule a {appointment.status} appointment.')

    new_date = appointment.reschedule_new_date
    new_time = appointment.reschedule_new_time
    ensure_slot_bookable(appointment.doctor_id, new_date, new_time, db, excluding_appointment_id=appointment.id)

    with guard_slot_write(db):
        updated = apply_update(
            appointment_id,
            {
                Appointment.date: new_date,
                Appointment.time: new_time,
                Appointment.reschedule_status: RESCHEDULE_APPROVED,
                Appointment.reschedule_resolved_at: utcnow(),
                Appointment.reschedule_resolved_by: resolved_by,
            },
            db,
            Appointment.status.in_(ACTIVE_STATUSES),
            Appointment.reschedule_status == RESCHEDULE_PENDING,
        )
        if not updated:
            current = reload_appointment(appointment_id, db)
            _ensure_pending(current)
            raise InvalidTransition(f'Cannot reschedule a {current.status} appointment.')

    logger.info('Reschedule approved for appointment %s by user %s', appointment_id, resolved_by)
    return get_appointment(appointment_id, db)


def _reject(appointment_id: int, resolved_by: int, db: Session) -> Appointment:
    updated = apply_update(
        appointment_id,
        {
            Appointment.reschedule_status: RESCHEDULE_REJECTED,
            Appointment.reschedule_resolved_at: utcnow(),
            Appointment.reschedule_resolved_by: resolved_by,
        },
        db,
        Appointment.reschedule_status == RESCHEDULE_PENDING,
    )
    if not updated:
        _ensure_pending(reload_appointment(appointment_id, db))
        raise InvalidTransition()

    db.commit()
    logger.info('Reschedule rejected for appointment %s by user %s', appointment_id, resolved_by)
    return get_appointment(appointment_id, db)
