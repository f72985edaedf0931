import logging
from typing import Protocol

from careslot.models.appointment import Appointment

logger = logging.getLogger(__name__)

APPOINTMENT_BOOKED = 'appointment_booked'
APPOINTMENT_CONFIRMED = 'appointment_confirmed'
APPOINTMENT_CANCELLED = 'appointment_cancelled'
APPOINTMENT_COMPLETED = 'appointment_completed'
RESCHEDULE_REQUESTED = 'reschedule_requested'
RESCHEDULE_APPROVED = 'reschedule_approved'
RESCHEDULE_REJECTED = 'reschedule_rejected'


class Notifier(Protocol):
    """Receives scheduling events after they have been committed."""

    def notify(self, event: str, appointment: Appointment) -> None:
        ...


class LoggingNotifier:
    def notify(self, event: str, appointment: Appointment) -> None:
        logger.info(
            '%s: appointment %s (patient %s, doctor %s) on %s at %s',
            event,
            appointment.id,
            appointment.patient_id,
            appointment.doctor_id,
            appointment.date,
            appointment.time,
        )


def dispatch(notifier: Notifier, event: str, appointment: Appointment) -> None:
    # delivery failures must not undo a committed scheduling change
    try:
        notifier.notify(event, appointment)
    except Exception:
        logger.exception('Notification %s failed for appointment %s', event, appointment.id)
