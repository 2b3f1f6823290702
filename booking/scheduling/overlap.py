"""
Overlap detection

Every caller that decides whether two reservations clash goes through
``intervals_overlap`` so the availability listing and the booking guard can
never disagree.
"""

from datetime import datetime

from sqlalchemy.orm import Session

from booking.models.reservation import ACTIVE_STATUSES, Reservation


def intervals_overlap(
    a_start: datetime,
    a_end: datetime,
    b_start: datetime,
    b_end: datetime,
) -> bool:
    """
    Half-open interval intersection test for [a_start, a_end) and [b_start, b_end).

    Intervals that only touch at a boundary do not overlap, so back-to-back
    bookings are allowed.
    """
    return a_start < b_end and b_start < a_end


def find_active_reservations(
    db: Session,
    specialist_id: int,
    range_start: datetime,
    range_end: datetime,
) -> list[Reservation]:
    """Active reservations of a specialist intersecting [range_start, range_end), by start time."""
    return db.query(Reservation).filter(
        Reservation.specialist_id == specialist_id,
        Reservation.status.in_(ACTIVE_STATUSES),
        Reservation.start_time < range_end,
        Reservation.end_time > range_start,
    ).order_by(Reservation.start_time.asc()).all()


def find_conflicting_reservation(
    db: Session,
    specialist_id: int,
    start_time: datetime,
    end_time: datetime,
    exclude_reservation_id: int | None = None,
) -> Reservation | None:
    candidates = find_active_reservations(db, specialist_id, start_time, end_time)
    for reservation in candidates:
        if exclude_reservation_id is not None and reservation.id == exclude_reservation_id:
            continue
        if intervals_overlap(start_time, end_time, reservation.start_time, reservation.end_time):
            return reservation
    return None


def is_slot_available(db: Session, specialist_id: int, start_time: datetime, end_time: datetime) -> bool:
    return find_conflicting_reservation(db, specialist_id, start_time, end_time) is None
