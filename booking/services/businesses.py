"""
Catalogue management for a business

Owners (and admins) create, update and deactivate the services a business
offers and the specialists who provide them. Deletion is a soft delete through
``is_active`` so existing reservations keep their references.
"""

import logging
from decimal import Decimal, InvalidOperation

from sqlalchemy.orm import Session

from booking.core.errors import ForbiddenError, InvalidInputError, InvalidRelationshipError, NotFoundError
from booking.models.business import Business
from booking.models.service import MAX_SERVICE_DURATION_MINUTES, MIN_SERVICE_DURATION_MINUTES, Service
from booking.models.specialist import Specialist
from booking.models.user import User

logger = logging.getLogger(__name__)

SERVICE_FIELDS = ('name', 'description', 'duration_minutes', 'price', 'is_active')
SPECIALIST_FIELDS = ('specialty', 'bio', 'service_ids', 'is_active')


def get_managed_business(db: Session, business_id: int, actor_id: int, actor_role: str) -> Business:
    business = db.get(Business, business_id)
    if business is None:
        raise NotFoundError('Business not found.')
    if actor_role != 'admin' and business.owner_id != actor_id:
        raise ForbiddenError('You are not authorized to manage this business.')
    return business


def _require_text(value, field_name: str) -> str:
    normalized = (value or '').strip()
    if not normalized:
        raise InvalidInputError(f'{field_name} is required.')
    return normalized


def validate_duration(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError('Duration must be a whole number of minutes.')
    if not MIN_SERVICE_DURATION_MINUTES <= value <= MAX_SERVICE_DURATION_MINUTES:
        raise InvalidInputError(
            f'Duration must be between {MIN_SERVICE_DURATION_MINUTES} and {MAX_SERVICE_DURATION_MINUTES} minutes.'
        )
    return value


def validate_price(value) -> Decimal:
    try:
        price = Decimal(str(value))
    except InvalidOperation as exc:
        raise InvalidInputError('Price must be a number.') from exc
    if not price.is_finite() or price < 0:
        raise InvalidInputError('Price cannot be negative.')
    return price


def _get_business_service(db: Session, business_id: int, service_id: int) -> Service:
    service = db.get(Service, service_id)
    if service is None or service.business_id != business_id:
        raise NotFoundError('Service not found.')
    return service


def _get_business_specialist(db: Session, business_id: int, specialist_id: int) -> Specialist:
    specialist = db.get(Specialist, specialist_id)
    if specialist is None or specialist.business_id != business_id:
        raise NotFoundError('Specialist not found.')
    return specialist


def _resolve_services(db: Session, business_id: int, service_ids) -> list[Service]:
    unique_ids = list(dict.fromkeys(service_ids))
    if not unique_ids:
        return []
    services = db.query(Service).filter(Service.id.in_(unique_ids)).all()
    if len(services) != len(unique_ids) or any(item.business_id != business_id for item in services):
        raise InvalidRelationshipError('One or more services do not belong to this business.')
    by_id = {item.id: item for item in services}
    return [by_id[service_id] for service_id in unique_ids]


def list_business_services(db: Session, business_id: int) -> list[Service]:
    return db.query(Service).filter(
        Service.business_id == business_id,
        Service.is_active.is_(True),
    ).order_by(Service.id.asc()).all()


def create_service(
    db: Session,
    business_id: int,
    actor_id: int,
    actor_role: str,
    name: str,
    duration_minutes: int,
    price=0,
    description: str | None = None,
) -> Service:
    business = get_managed_business(db, business_id, actor_id, actor_role)

    service = Service(
        business_id=business.id,
        name=_require_text(name, 'Name'),
        description=description,
        duration_minutes=validate_duration(duration_minutes),
        price=validate_price(price),
        is_active=True,
    )
    db.add(service)
    db.commit()
    db.refresh(service)

    logger.info('Service %s created for business %s', service.id, business.id)
    return service


def update_service(
    db: Session,
    business_id: int,
    service_id: int,
    actor_id: int,
    actor_role: str,
    changes: dict,
) -> Service:
    get_managed_business(db, business_id, actor_id, actor_role)
    service = _get_business_service(db, business_id, service_id)

    unknown = set(changes) - set(SERVICE_FIELDS)
    if unknown:
        raise InvalidInputError(f'Unknown service fields: {", ".join(sorted(unknown))}.')

    if 'name' in changes:
        service.name = _require_text(changes['name'], 'Name')
    if 'description' in changes:
        service.description = changes['description']
    if 'duration_minutes' in changes:
        # Existing reservations keep the end time fixed at creation.
        service.duration_minutes = validate_duration(changes['duration_minutes'])
    if 'price' in changes:
        service.price = validate_price(changes['price'])
    if 'is_active' in changes:
        service.is_active = bool(changes['is_active'])

    db.commit()
    db.refresh(service)
    logger.info('Service %s updated', service.id)
    return service


def deactivate_service(db: Session, business_id: int, service_id: int, actor_id: int, actor_role: str) -> Service:
    get_managed_business(db, business_id, actor_id, actor_role)
    service = _get_business_service(db, business_id, service_id)

    service.is_active = False
    db.commit()
    db.refresh(service)
    logger.info('Service %s deactivated', service.id)
    return service


def list_business_specialists(db: Session, business_id: int) -> list[Specialist]:
    return db.query(Specialist).filter(
        Specialist.business_id == business_id,
        Specialist.is_active.is_(True),
    ).order_by(Specialist.id.asc()).all()


def create_specialist(
    db: Session,
    business_id: int,
    actor_id: int,
    actor_role: str,
    user_id: int,
    specialty: str,
    bio: str | None = None,
    service_ids=(),
) -> Specialist:
    business = get_managed_business(db, business_id, actor_id, actor_role)

    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise NotFoundError('User not found.')

    specialist = Specialist(
        user_id=user.id,
        business_id=business.id,
        specialty=_require_text(specialty, 'Specialty'),
        bio=bio,
        is_active=True,
    )
    specialist.services = _resolve_services(db, business.id, service_ids)
    db.add(specialist)
    db.commit()
    db.refresh(specialist)

    logger.info('Specialist %s created for business %s', specialist.id, business.id)
    return specialist


def update_specialist(
    db: Session,
    business_id: int,
    specialist_id: int,
    actor_id: int,
    actor_role: str,
    changes: dict,
) -> Specialist:
    get_managed_business(db, business_id, actor_id, actor_role)
    specialist = _get_business_specialist(db, business_id, specialist_id)

    unknown = set(changes) - set(SPECIALIST_FIELDS)
    if unknown:
        raise InvalidInputError(f'Unknown specialist fields: {", ".join(sorted(unknown))}.')

    if 'specialty' in changes:
        specialist.specialty = _require_text(changes['specialty'], 'Specialty')
    if 'bio' in changes:
        specialist.bio = changes['bio']
    if 'service_ids' in changes:
        specialist.services = _resolve_services(db, business_id, changes['service_ids'] or [])
    if 'is_active' in changes:
        specialist.is_active = bool(changes['is_active'])

    db.commit()
    db.refresh(specialist)
    logger.info('Specialist %s updated', specialist.id)
    return specialist


def deactivate_specialist(
    db: Session,
    business_id: int,
    specialist_id: int,
    actor_id: int,
    actor_role: str,
) -> Specialist:
    get_managed_business(db, business_id, actor_id, actor_role)
    specialist = _get_business_specialist(db, business_id, specialist_id)

    specialist.is_active = False
    db.commit()
    db.refresh(specialist)
    logger.info('Specialist %s deactivated', specialist.id)
    return specialist
