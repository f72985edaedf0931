"""Booking conflict guard.

The partial unique index on ``(doctor_id, date, time)`` for pending and
confirmed appointments is what prevents double booking. The lookups here run
before a write so the caller gets a specific error instead of a constraint
failure; ``guard_slot_write`` maps a violation of that index which slips past
them onto the same ``SlotConflict``. Other integrity failures propagate.
"""

import logging
from contextlib import contextmanager
from datetime import date

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from careslot.core.errors import DoctorUnavailable, SlotConflict
from careslot.models.appointment import ACTIVE_SLOT_INDEX, ACTIVE_STATUSES, Appointment
from careslot.scheduling.availability import get_availability
from careslot.scheduling.slots import generate_slots, is_within_hours, weekday_name

logger = logging.getLogger(__name__)

_ACTIVE_SLOT_COLUMNS = 'appointments.doctor_id, appointments.date, appointments.time'


def get_booked_times(
    doctor_id: int,
    slot_date: date,
    db: Session,
    excluding_appointment_id: int | None = None,
) -> set[str]:
    query = db.query(Appointment.time).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.date == slot_date,
        Appointment.status.in_(ACTIVE_STATUSES),
    )
    if excluding_appointment_id is not None:
        query = query.filter(Appointment.id != excluding_appointment_id)

    return {booked_time for (booked_time,) in query.all()}


def is_slot_free(
    doctor_id: int,
    slot_date: date,
    slot_time: str,
    db: Session,
    excluding_appointment_id: int | None = None,
) -> bool:
    return slot_time not in get_booked_times(doctor_id, slot_date, db, excluding_appointment_id)


def get_available_slots(doctor_id: int, slot_date: date, db: Session) -> list[str]:
    template = get_availability(doctor_id, db)
    booked_times = get_booked_times(doctor_id, slot_date, db)

    return [slot for slot in generate_slots(template, weekday_name(slot_date)) if slot not in booked_times]


def ensure_slot_bookable(
    doctor_id: int,
    slot_date: date,
    slot_time: str,
    db: Session,
    excluding_appointment_id: int | None = None,
) -> None:
    template = get_availability(doctor_id, db)
    if not is_within_hours(template, weekday_name(slot_date), slot_time):
        raise DoctorUnavailable()

    if not is_slot_free(doctor_id, slot_date, slot_time, db, excluding_appointment_id):
        raise SlotConflict()


def is_active_slot_violation(exc: IntegrityError) -> bool:
    """True when the failed write collided with another active booking of the slot."""
    diag = getattr(exc.orig, 'diag', None)
    constraint_name = getattr(diag, 'constraint_name', None)
    if constraint_name is not None:
        return constraint_name == ACTIVE_SLOT_INDEX

    # sqlite names the indexed columns rather than the index
    message = str(exc.orig)
    return ACTIVE_SLOT_INDEX in message or _ACTIVE_SLOT_COLUMNS in message


@contextmanager
def guard_slot_write(db: Session):
    """Run a write that moves an appointment onto a slot, committing at the end."""
    try:
        yield
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if not is_active_slot_violation(exc):
            raise
        logger.warning('Slot write rejected by the active slot constraint: %s', exc.orig)
        raise SlotConflict() from exc
