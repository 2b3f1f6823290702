from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from booking.auth.dependencies import get_current_user
from booking.core.errors import BookingError
from booking.core.timeutils import parse_iso_date
from booking.database import get_db
from booking.models.user import User
from booking.routes.common import ensure_database_ready, raise_database_unavailable, raise_http_error
from booking.scheduling.slots import compute_available_slots
from booking.services.specialists import set_weekly_availability

router = APIRouter(tags=['availability'])


class AvailableSlotResponse(BaseModel):
    startTime: str
    endTime: str


class AvailabilityRuleRequest(BaseModel):
    day_of_week: str
    start_time: str
    end_time: str
    is_available: bool = True

    @field_validator('day_of_week')
    @classmethod
    def normalize_day_of_week(cls, value: str) -> str:
        return value.strip().lower()


class WeeklyAvailabilityRequest(BaseModel):
    rules: list[AvailabilityRuleRequest]


class AvailabilityRuleResponse(BaseModel):
    day_of_week: str
    start_time: str
    end_time: str
    is_available: bool

    class Config:
        from_attributes = True


class SpecialistAvailabilityResponse(BaseModel):
    id: int
    business_id: int
    is_active: bool
    availability_rules: list[AvailabilityRuleResponse]

    class Config:
        from_attributes = True


@router.get('/{specialist_id}/available-slots', response_model=list[AvailableSlotResponse])
def list_available_slots(
    specialist_id: int,
    date: str = Query(..., description='UTC calendar date, YYYY-MM-DD'),
    service_id: int | None = Query(default=None, alias='serviceId'),
    db: Session = Depends(get_db),
):
    try:
        requested_date = parse_iso_date(date)
    except BookingError as exc:
        raise_http_error(exc)

    ensure_database_ready()

    try:
        slots = compute_available_slots(db, specialist_id, requested_date, service_id)
    except BookingError as exc:
        raise_http_error(exc)
    except SQLAlchemyError as exc:
        raise_database_unavailable(exc)

    return [AvailableSlotResponse(**slot.as_dict()) for slot in slots]


@router.put('/{specialist_id}/availability', response_model=SpecialistAvailabilityResponse)
def replace_weekly_availability(
    specialist_id: int,
    data: WeeklyAvailabilityRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return set_weekly_availability(db, specialist_id, current_user.id, current_user.role, data.rules)
    except BookingError as exc:
        db.rollback()
        raise_http_error(exc)
    except SQLAlchemyError as exc:
        db.rollback()
        raise_database_unavailable(exc)
