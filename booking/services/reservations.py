import logging
from contextlib import contextmanager
from datetime import datetime, timedelta
from threading import Lock
from weakref import WeakValueDictionary

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from booking.core import config
from booking.core.errors import (
    BookingError,
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    InvalidRelationshipError,
    NotFoundError,
)
from booking.core.timeutils import to_naive_utc
from booking.models.reservation import (
    ACTIVE_STATUSES,
    RESERVATION_STATUSES,
    STATUS_CANCELLED,
    STATUS_CONFIRMED,
    STATUS_PENDING,
    Reservation,
)
from booking.models.service import Service
from booking.models.specialist import Specialist
from booking.scheduling.overlap import find_conflicting_reservation
from booking.services.notifications import (
    EVENT_CANCELLED,
    EVENT_CONFIRMED,
    EVENT_CREATED,
    ReservationNotice,
    get_notification_service,
)

logger = logging.getLogger(__name__)

ROLE_ADMIN = 'admin'
ROLE_CLIENT = 'client'
ROLE_SPECIALIST = 'specialist'

STATUS_NOTIFICATIONS = {
    STATUS_CONFIRMED: EVENT_CONFIRMED,
    STATUS_CANCELLED: EVENT_CANCELLED,
}

_specialist_locks: WeakValueDictionary = WeakValueDictionary()
_specialist_locks_guard = Lock()


@contextmanager
def specialist_booking_lock(specialist_id: int):
    """Serializes check-then-insert for one specialist within this process.

    Entries drop out of the registry once no caller holds the lock.
    """
    with _specialist_locks_guard:
        lock = _specialist_locks.get(specialist_id)
        if lock is None:
            lock = Lock()
            _specialist_locks[specialist_id] = lock
    with lock:
        yield


def _notify(notifier, event: str, reservation: Reservation) -> None:
    try:
        notice = ReservationNotice.from_reservation(reservation)
        (notifier or get_notification_service()).send_in_background(event, notice)
    except Exception:
        logger.exception('Could not queue %s notification for reservation %s', event, reservation.id)


def _check_relationships(specialist: Specialist, service: Service, business_id: int) -> None:
    if specialist.business_id != business_id:
        raise InvalidRelationshipError('Specialist does not belong to this business.')
    if service.business_id != business_id:
        raise InvalidRelationshipError('Service does not belong to this business.')
    providable_ids = {item.id for item in specialist.services}
    if providable_ids and service.id not in providable_ids:
        raise InvalidRelationshipError('Specialist cannot provide this service.')


def create_reservation(
    db: Session,
    client_id: int,
    business_id: int,
    specialist_id: int,
    service_id: int,
    start_time: datetime,
    notes: str | None = None,
    notifier=None,
    strict_relationships: bool | None = None,
) -> Reservation:
    if start_time is None:
        raise InvalidInputError('Start time is required.')
    if strict_relationships is None:
        strict_relationships = config.STRICT_RESERVATION_RELATIONSHIPS

    start = to_naive_utc(start_time)

    with specialist_booking_lock(specialist_id):
        try:
            specialist = db.query(Specialist).filter(Specialist.id == specialist_id).with_for_update().first()
            if specialist is None or not specialist.is_active:
                raise NotFoundError('Specialist not found or inactive.')

            service = db.get(Service, service_id)
            if service is None or not service.is_active:
                raise NotFoundError('Service not found or inactive.')

            if strict_relationships:
                _check_relationships(specialist, service, business_id)

            end = start + timedelta(minutes=service.duration_minutes)

            if find_conflicting_reservation(db, specialist.id, start, end) is not None:
                raise ConflictError('Time slot is already booked.')

            reservation = Reservation(
                client_id=client_id,
                business_id=business_id,
                specialist_id=specialist.id,
                service_id=service.id,
                start_time=start,
                end_time=end,
                status=STATUS_PENDING,
                notes=notes,
                reminder_sent=False,
            )
            db.add(reservation)
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise ConflictError('Time slot is already booked.', detected_by='constraint') from exc
        except BookingError:
            db.rollback()
            raise

    db.refresh(reservation)
    logger.info(
        'Reservation %s created for specialist %s at %s',
        reservation.id, reservation.specialist_id, reservation.start_time.isoformat(),
    )
    _notify(notifier, EVENT_CREATED, reservation)
    return reservation


def can_transition(actor_role: str, actor_id: int, reservation, target_status: str) -> bool:
    """
    Authorization matrix for status changes.

    The reservation's client may only cancel; the specialist's own user and
    admins may set any status; everyone else is refused.
    """
    if actor_id == reservation.client_id:
        return target_status == STATUS_CANCELLED
    if actor_role == ROLE_ADMIN:
        return True
    specialist = reservation.specialist
    return specialist is not None and specialist.user_id == actor_id


def update_reservation_status(
    db: Session,
    reservation_id: int,
    actor_id: int,
    actor_role: str,
    new_status: str,
    cancellation_reason: str | None = None,
    notes: str | None = None,
    notifier=None,
) -> Reservation:
    if new_status not in RESERVATION_STATUSES:
        raise InvalidInputError(f'Status must be one of: {", ".join(RESERVATION_STATUSES)}.')

    reservation = db.get(Reservation, reservation_id)
    if reservation is None:
        raise NotFoundError('Reservation not found.')

    if not can_transition(actor_role, actor_id, reservation, new_status):
        if actor_id == reservation.client_id:
            raise ForbiddenError('Clients can only cancel reservations.')
        raise ForbiddenError('Unauthorized to modify this reservation.')

    previous_status = reservation.status
    reactivating = previous_status not in ACTIVE_STATUSES and new_status in ACTIVE_STATUSES

    with specialist_booking_lock(reservation.specialist_id):
        try:
            if reactivating and find_conflicting_reservation(
                db,
                reservation.specialist_id,
                reservation.start_time,
                reservation.end_time,
                exclude_reservation_id=reservation.id,
            ) is not None:
                raise ConflictError('Time slot is already booked.')

            reservation.status = new_status
            if cancellation_reason:
                reservation.cancellation_reason = cancellation_reason
            if notes is not None:
                reservation.notes = notes
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise ConflictError('Time slot is already booked.', detected_by='constraint') from exc
        except BookingError:
            db.rollback()
            raise

    db.refresh(reservation)

    event = STATUS_NOTIFICATIONS.get(new_status)
    if event is not None and new_status != previous_status:
        _notify(notifier, event, reservation)
    return reservation


def get_reservation(db: Session, reservation_id: int, actor_id: int, actor_role: str) -> Reservation:
    reservation = db.get(Reservation, reservation_id)
    if reservation is None:
        raise NotFoundError('Reservation not found.')
    if actor_role == ROLE_CLIENT and reservation.client_id != actor_id:
        raise ForbiddenError('Not authorized to view this reservation.')
    return reservation


def list_reservations(
    db: Session,
    actor_id: int,
    actor_role: str,
    status: str | None = None,
    specialist_id: int | None = None,
    start_from: datetime | None = None,
    start_to: datetime | None = None,
) -> list[Reservation]:
    query = db.query(Reservation)

    if actor_role == ROLE_CLIENT:
        query = query.filter(Reservation.client_id == actor_id)
    elif actor_role == ROLE_SPECIALIST:
        own_specialist = db.query(Specialist).filter(Specialist.user_id == actor_id).first()
        if own_specialist is None:
            return []
        query = query.filter(Reservation.specialist_id == own_specialist.id)

    if status:
        if status not in RESERVATION_STATUSES:
            raise InvalidInputError(f'Status must be one of: {", ".join(RESERVATION_STATUSES)}.')
        query = query.filter(Reservation.status == status)
    if specialist_id is not None:
        query = query.filter(Reservation.specialist_id == specialist_id)
    if start_from is not None:
        query = query.filter(Reservation.start_time >= to_naive_utc(start_from))
    if start_to is not None:
        query = query.filter(Reservation.start_time <= to_naive_utc(start_to))

    return query.order_by(Reservation.start_time.asc()).all()
