import logging

from pydantic import ValidationError
from sqlalchemy.orm import Session

from careslot.core.errors import NotFound
from careslot.models.user import ROLE_DOCTOR, User
from careslot.scheduling.schemas import DayHours
from careslot.scheduling.slots import WEEKDAYS

logger = logging.getLogger(__name__)

DEFAULT_AVAILABILITY = {
    'monday': {'start': '09:00', 'end': '17:00', 'available': True},
    'tuesday': {'start': '09:00', 'end': '17:00', 'available': True},
    'wednesday': {'start': '09:00', 'end': '17:00', 'available': True},
    'thursday': {'start': '09:00', 'end': '17:00', 'available': True},
    'friday': {'start': '09:00', 'end': '17:00', 'available': True},
    'saturday': {'start': '09:00', 'end': '13:00', 'available': False},
    'sunday': {'start': '09:00', 'end': '13:00', 'available': False},
}


def normalize_template(raw_template: dict | None) -> dict[str, DayHours]:
    """Return a complete template; missing or invalid days become unavailable."""
    raw_template = raw_template or {}
    template: dict[str, DayHours] = {}

    for weekday in WEEKDAYS:
        entry = raw_template.get(weekday)
        if isinstance(entry, DayHours):
            template[weekday] = entry
            continue

        if entry is None:
            template[weekday] = DayHours(available=False)
            continue

        try:
            template[weekday] = DayHours.model_validate(entry)
        except ValidationError:
            logger.warning('Ignoring invalid %s availability entry: %r', weekday, entry)
            template[weekday] = DayHours(available=False)

    return template


def serialize_template(template: dict[str, DayHours]) -> dict[str, dict]:
    return {weekday: hours.model_dump() for weekday, hours in template.items()}


def get_doctor(doctor_id: int, db: Session) -> User:
    doctor = db.query(User).filter(User.id == doctor_id, User.role == ROLE_DOCTOR).first()
    if doctor is None:
        raise NotFound('Doctor not found.')
    return doctor


def get_availability(doctor_id: int, db: Session) -> dict[str, DayHours]:
    doctor = get_doctor(doctor_id, db)
    if doctor.availability is None:
        return normalize_template(DEFAULT_AVAILABILITY)
    return normalize_template(doctor.availability)


def set_availability(doctor_id: int, template: dict, db: Session) -> dict[str, DayHours]:
    doctor = get_doctor(doctor_id, db)
    normalized = normalize_template(template)

    doctor.availability = serialize_template(normalized)
    db.commit()

    logger.info('Updated availability for doctor %s', doctor_id)
    return normalized
