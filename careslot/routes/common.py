from fastapi import Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from careslot.core.errors import SchedulingError, StorageUnavailable
from careslot.database import ensure_appointment_schema, get_db
from careslot.models.appointment import Appointment
from careslot.models.user import ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT, User
from careslot.scheduling.notifications import LoggingNotifier
from careslot.services.scheduling_service import SchedulingService

SERVICE_ERRORS = (SchedulingError, StorageUnavailable)


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=StorageUnavailable.default_message,
        ) from exc


def get_scheduling_service(db: Session = Depends(get_db)) -> SchedulingService:
    return SchedulingService(db=db, notifier=LoggingNotifier())


def to_http_exception(exc: SchedulingError | StorageUnavailable) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


def ensure_participant(appointment: Appointment, user: User) -> None:
    if user.role == ROLE_ADMIN:
        return
    if user.role == ROLE_PATIENT and appointment.patient_id == user.id:
        return
    if user.role == ROLE_DOCTOR and appointment.doctor_id == user.id:
        return

    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail='You do not have access to this appointment.',
    )
