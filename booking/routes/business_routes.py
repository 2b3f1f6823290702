from decimal import Decimal

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from booking.auth.dependencies import get_current_user
from booking.core.errors import BookingError
from booking.database import get_db
from booking.models.user import User
from booking.routes.common import ensure_database_ready, raise_database_unavailable, raise_http_error
from booking.services import businesses as business_service

router = APIRouter(tags=['businesses'])


class CreateServiceRequest(BaseModel):
    name: str
    duration_minutes: int
    price: Decimal = Decimal('0')
    description: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Name is required.')
        return normalized


class UpdateServiceRequest(BaseModel):
    name: str | None = None
    duration_minutes: int | None = None
    price: Decimal | None = None
    description: str | None = None
    is_active: bool | None = None


class ServiceResponse(BaseModel):
    id: int
    business_id: int
    name: str
    description: str | None = None
    duration_minutes: int
    price: Decimal
    is_active: bool

    class Config:
        from_attributes = True


class CreateSpecialistRequest(BaseModel):
    user_id: int
    specialty: str
    bio: str | None = None
    service_ids: list[int] = []


class UpdateSpecialistRequest(BaseModel):
    specialty: str | None = None
    bio: str | None = None
    service_ids: list[int] | None = None
    is_active: bool | None = None


class SpecialistResponse(BaseModel):
    id: int
    user_id: int
    business_id: int
    specialty: str
    bio: str | None = None
    is_active: bool
    service_ids: list[int]


def _specialist_response(specialist) -> SpecialistResponse:
    return SpecialistResponse(
        id=specialist.id,
        user_id=specialist.user_id,
        business_id=specialist.business_id,
        specialty=specialist.specialty,
        bio=specialist.bio,
        is_active=specialist.is_active,
        service_ids=[item.id for item in specialist.services],
    )


def _run(db: Session, operation, *args):
    ensure_database_ready()

    try:
        return operation(db, *args)
    except BookingError as exc:
        db.rollback()
        raise_http_error(exc)
    except SQLAlchemyError as exc:
        db.rollback()
        raise_database_unavailable(exc)


@router.get('/{business_id}/services', response_model=list[ServiceResponse])
def list_services(business_id: int, db: Session = Depends(get_db)):
    return _run(db, business_service.list_business_services, business_id)


@router.post('/{business_id}/services', response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
def create_service(
    business_id: int,
    data: CreateServiceRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _run(
        db,
        business_service.create_service,
        business_id,
        current_user.id,
        current_user.role,
        data.name,
        data.duration_minutes,
        data.price,
        data.description,
    )


@router.patch('/{business_id}/services/{service_id}', response_model=ServiceResponse)
def update_service(
    business_id: int,
    service_id: int,
    data: UpdateServiceRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _run(
        db,
        business_service.update_service,
        business_id,
        service_id,
        current_user.id,
        current_user.role,
        data.model_dump(exclude_unset=True),
    )


@router.delete('/{business_id}/services/{service_id}', response_model=ServiceResponse)
def deactivate_service(
    business_id: int,
    service_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _run(db, business_service.deactivate_service, business_id, service_id, current_user.id, current_user.role)


@router.get('/{business_id}/specialists', response_model=list[SpecialistResponse])
def list_specialists(business_id: int, db: Session = Depends(get_db)):
    specialists = _run(db, business_service.list_business_specialists, business_id)
    return [_specialist_response(specialist) for specialist in specialists]


@router.post('/{business_id}/specialists', response_model=SpecialistResponse, status_code=status.HTTP_201_CREATED)
def create_specialist(
    business_id: int,
    data: CreateSpecialistRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    specialist = _run(
        db,
        business_service.create_specialist,
        business_id,
        current_user.id,
        current_user.role,
        data.user_id,
        data.specialty,
        data.bio,
        data.service_ids,
    )
    return _specialist_response(specialist)


@router.patch('/{business_id}/specialists/{specialist_id}', response_model=SpecialistResponse)
def update_specialist(
    business_id: int,
    specialist_id: int,
    data: UpdateSpecialistRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    specialist = _run(
        db,
        business_service.update_specialist,
        business_id,
        specialist_id,
        current_user.id,
        current_user.role,
        data.model_dump(exclude_unset=True),
    )
    return _specialist_response(specialist)


@router.delete('/{business_id}/specialists/{specialist_id}', response_model=SpecialistResponse)
def deactivate_specialist(
    business_id: int,
    specialist_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    specialist = _run(
        db, business_service.deactivate_specialist, business_id, specialist_id, current_user.id, current_user.role,
    )
    return _specialist_response(specialist)
