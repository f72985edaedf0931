import logging
from dataclasses import dataclass, field
from datetime import date
from functools import wraps

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from careslot.core.errors import StorageUnavailable
from careslot.models.appointment import Appointment
from careslot.scheduling import availability, conflicts, lifecycle, notifications, reschedule
from careslot.scheduling.notifications import LoggingNotifier, Notifier
from careslot.scheduling.schemas import DayHours, PreConsultationForm

logger = logging.getLogger(__name__)


def _storage_guard(method):
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Storage failure during %s', method.__name__)
            raise StorageUnavailable() from exc

    return wrapper


@dataclass
class SchedulingService:
    """Entry point for every scheduling operation; one call, one transaction."""

    db: Session
    notifier: Notifier = field(default_factory=LoggingNotifier)

    @_storage_guard
    def get_availability(self, doctor_id: int) -> dict[str, DayHours]:
        return availability.get_availability(doctor_id, self.db)

    @_storage_guard
    def set_availability(self, doctor_id: int, template: dict) -> dict[str, DayHours]:
        return availability.set_availability(doctor_id, template, self.db)

    @_storage_guard
    def get_available_slots(self, doctor_id: int, slot_date: date) -> list[str]:
        return conflicts.get_available_slots(doctor_id, slot_date, self.db)

    @_storage_guard
    def get_appointment(self, appointment_id: int) -> Appointment:
        return lifecycle.get_appointment(appointment_id, self.db)

    @_storage_guard
    def book_appointment(
        self,
        patient_id: int,
        doctor_id: int,
        slot_date: date,
        slot_time: str,
        reason: str,
        form: PreConsultationForm,
        notes: str | None = None,
    ) -> Appointment:
        appointment = lifecycle.create_appointment(
            patient_id,
            doctor_id,
            slot_date,
            slot_time,
            reason,
            form,
            self.db,
            notes=notes,
        )
        notifications.dispatch(self.notifier, notifications.APPOINTMENT_BOOKED, appointment)
        return appointment

    @_storage_guard
    def update_appointment(
        self,
        appointment_id: int,
        slot_date: date | None = None,
        slot_time: str | None = None,
        reason: str | None = None,
        notes: str | None = None,
    ) -> Appointment:
        return lifecycle.update_appointment(
            appointment_id,
            self.db,
            slot_date=slot_date,
            slot_time=slot_time,
            reason=reason,
            notes=notes,
        )

    @_storage_guard
    def confirm_appointment(self, appointment_id: int) -> Appointment:
        appointment = lifecycle.confirm_appointment(appointment_id, self.db)
        notifications.dispatch(self.notifier, notifications.APPOINTMENT_CONFIRMED, appointment)
        return appointment

    @_storage_guard
    def cancel_appointment(self, appointment_id: int, actor_id: int, reason: str | None = None) -> Appointment:
        appointment = lifecycle.cancel_appointment(appointment_id, actor_id, reason, self.db)
        notifications.dispatch(self.notifier, notifications.APPOINTMENT_CANCELLED, appointment)
        return appointment

    @_storage_guard
    def complete_appointment(self, appointment_id: int) -> Appointment:
        appointment = lifecycle.complete_appointment(appointment_id, self.db)
        notifications.dispatch(self.notifier, notifications.APPOINTMENT_COMPLETED, appointment)
        return appointment

    @_storage_guard
    def request_reschedule(
        self,
        appointment_id: int,
        new_date: date,
        new_time: str,
        requested_by: int,
        reason: str,
    ) -> Appointment:
        appointment = reschedule.request_reschedule(appointment_id, new_date, new_time, requested_by, reason, self.db)
        notifications.dispatch(self.notifier, notifications.RESCHEDULE_REQUESTED, appointment)
        return appointment

    @_storage_guard
    def resolve_reschedule(self, appointment_id: int, action: str, resolved_by: int) -> Appointment:
        appointment = reschedule.resolve_reschedule(appointment_id, action, resolved_by, self.db)
        event = (
            notifications.RESCHEDULE_APPROVED
            if action == reschedule.ACTION_APPROVE
            else notifications.RESCHEDULE_REJECTED
        )
        notifications.dispatch(self.notifier, event, appointment)
        return appointment

    @_storage_guard
    def get_doctor_schedule(
        self,
        doctor_id: int,
        start_date: date,
        end_date: date,
        status: str | None = None,
    ) -> list[Appointment]:
        availability.get_doctor(doctor_id, self.db)

        query = self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.date >= start_date,
            Appointment.date <= end_date,
        )
        if status is not None:
            query = query.filter(Appointment.status == status)

        return query.order_by(Appointment.date.asc(), Appointment.time.asc()).all()

    @_storage_guard
    def get_patient_appointments(
        self,
        patient_id: int,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[Appointment]:
        query = self.db.query(Appointment).filter(Appointment.patient_id == patient_id)
        if start_date is not None:
            query = query.filter(Appointment.date >= start_date)
        if end_date is not None:
            query = query.filter(Appointment.date <= end_date)

        return query.order_by(Appointment.date.desc(), Appointment.time.desc()).all()
