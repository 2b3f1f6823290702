from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_serializer, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from booking.auth.dependencies import get_current_user
from booking.core.errors import BookingError
from booking.core.timeutils import isoformat_utc, parse_iso_date
from booking.database import get_db
from booking.models.reservation import RESERVATION_STATUSES
from booking.models.user import User
from booking.routes.common import ensure_database_ready, raise_database_unavailable, raise_http_error
from booking.scheduling.slots import get_booked_intervals
from booking.services import reservations as reservation_service

router = APIRouter(tags=['reservations'])

MAX_RESERVATION_TEXT_LENGTH = 500


def _normalize_text(value: str | None, field_name: str) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > MAX_RESERVATION_TEXT_LENGTH:
        raise ValueError(f'{field_name} must be {MAX_RESERVATION_TEXT_LENGTH} characters or fewer.')

    return normalized


class CreateReservationRequest(BaseModel):
    business_id: int
    specialist_id: int
    service_id: int
    start_time: datetime
    notes: str | None = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_text(value, 'Notes')


class UpdateReservationStatusRequest(BaseModel):
    status: str
    cancellation_reason: str | None = None
    notes: str | None = None

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in RESERVATION_STATUSES:
            raise ValueError(f'Status must be one of: {", ".join(RESERVATION_STATUSES)}.')
        return normalized

    @field_validator('cancellation_reason')
    @classmethod
    def validate_cancellation_reason(cls, value: str | None) -> str | None:
        return _normalize_text(value, 'Cancellation reason')

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_text(value, 'Notes')


class ReservationResponse(BaseModel):
    id: int
    client_id: int
    business_id: int
    specialist_id: int
    service_id: int
    start_time: datetime
    end_time: datetime
    status: str
    notes: str | None = None
    cancellation_reason: str | None = None
    reminder_sent: bool

    class Config:
        from_attributes = True

    @field_serializer('start_time', 'end_time')
    def serialize_instant(self, value: datetime) -> str:
        return isoformat_utc(value)


class BookedIntervalResponse(BaseModel):
    start: str
    end: str


class BookedIntervalsResponse(BaseModel):
    serviceDurationMinutes: int
    bookedSlots: list[BookedIntervalResponse]


@router.get('/availability', response_model=BookedIntervalsResponse)
def check_availability(
    specialist: int = Query(...),
    service: int = Query(...),
    date: str = Query(...),
    db: Session = Depends(get_db),
):
    try:
        requested_date = parse_iso_date(date)
    except BookingError as exc:
        raise_http_error(exc)

    ensure_database_ready()

    try:
        return get_booked_intervals(db, specialist, service, requested_date)
    except BookingError as exc:
        raise_http_error(exc)
    except SQLAlchemyError as exc:
        raise_database_unavailable(exc)


@router.post('', response_model=ReservationResponse, status_code=status.HTTP_201_CREATED)
def create_reservation(
    data: CreateReservationRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return reservation_service.create_reservation(
            db,
            client_id=current_user.id,
            business_id=data.business_id,
            specialist_id=data.specialist_id,
            service_id=data.service_id,
            start_time=data.start_time,
            notes=data.notes,
        )
    except BookingError as exc:
        raise_http_error(exc)
    except SQLAlchemyError as exc:
        db.rollback()
        raise_database_unavailable(exc)


@router.get('', response_model=list[ReservationResponse])
def list_reservations(
    status_filter: str | None = Query(default=None, alias='status'),
    specialist: int | None = Query(default=None),
    start_date: datetime | None = Query(default=None, alias='startDate'),
    end_date: datetime | None = Query(default=None, alias='endDate'),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return reservation_service.list_reservations(
            db,
            actor_id=current_user.id,
            actor_role=current_user.role,
            status=status_filter,
            specialist_id=specialist,
            start_from=start_date,
            start_to=end_date,
        )
    except BookingError as exc:
        raise_http_error(exc)
    except SQLAlchemyError as exc:
        raise_database_unavailable(exc)


@router.get('/{reservation_id}', response_model=ReservationResponse)
def get_reservation(
    reservation_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return reservation_service.get_reservation(db, reservation_id, current_user.id, current_user.role)
    except BookingError as exc:
        raise_http_error(exc)
    except SQLAlchemyError as exc:
        raise_database_unavailable(exc)


@router.patch('/{reservation_id}/status', response_model=ReservationResponse)
def update_reservation_status(
    reservation_id: int,
    data: UpdateReservationStatusRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return reservation_service.update_reservation_status(
            db,
            reservation_id,
            actor_id=current_user.id,
            actor_role=current_user.role,
            new_status=data.status,
            cancellation_reason=data.cancellation_reason,
            notes=data.notes,
        )
    except BookingError as exc:
        raise_http_error(exc)
    except SQLAlchemyError as exc:
        db.rollback()
        raise_database_unavailable(exc)
