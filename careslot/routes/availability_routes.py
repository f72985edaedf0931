from fastapi import APIRouter, Depends
from pydantic import BaseModel

from careslot.auth.dependencies import get_current_user, require_role
from careslot.models.user import ROLE_DOCTOR, User
from careslot.routes.common import SERVICE_ERRORS, ensure_database_ready, get_scheduling_service, to_http_exception
from careslot.scheduling.schemas import DayHours
from careslot.services.scheduling_service import SchedulingService

router = APIRouter(tags=['availability'])


class AvailabilityTemplate(BaseModel):
    monday: DayHours | None = None
    tuesday: DayHours | None = None
    wednesday: DayHours | None = None
    thursday: DayHours | None = None
    friday: DayHours | None = None
    saturday: DayHours | None = None
    sunday: DayHours | None = None


class AvailabilityResponse(BaseModel):
    doctor_id: int
    availability: dict[str, DayHours]


@router.get('/doctors/{doctor_id}', response_model=AvailabilityResponse)
def get_doctor_availability(
    doctor_id: int,
    service: SchedulingService = Depends(get_scheduling_service),
):
    ensure_database_ready()

    try:
        template = service.get_availability(doctor_id)
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc

    return AvailabilityResponse(doctor_id=doctor_id, availability=template)


@router.put('/doctors/me', response_model=AvailabilityResponse)
def set_my_availability(
    data: AvailabilityTemplate,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    require_role(current_user, ROLE_DOCTOR, detail='Only doctors can set their availability.')
    ensure_database_ready()

    submitted = {weekday: hours for weekday, hours in data if hours is not None}

    try:
        template = service.set_availability(current_user.id, submitted)
    except SERVICE_ERRORS as exc:
        raise to_http_exception(exc) from exc

    return AvailabilityResponse(doctor_id=current_user.id, availability=template)

