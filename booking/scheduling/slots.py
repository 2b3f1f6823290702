"""
Slot generation

Turns a specialist's weekly rule for one UTC day into back-to-back slots of
the service duration, then removes the ones taken by active reservations and,
for today, the ones already started.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta

from sqlalchemy.orm import Session

from booking.core import config
from booking.core.errors import NotFoundError
from booking.core.timeutils import isoformat_utc, parse_clock, to_naive_utc, utc_day_bounds, utc_now, weekday_name
from booking.models.service import Service
from booking.models.specialist import Specialist, WeeklyAvailabilityRule
from booking.scheduling.overlap import find_active_reservations, intervals_overlap


@dataclass(frozen=True)
class AvailableSlot:
    start_time: datetime
    end_time: datetime

    def as_dict(self) -> dict:
        return {'startTime': isoformat_utc(self.start_time), 'endTime': isoformat_utc(self.end_time)}


def generate_candidate_slots(
    window_start: datetime,
    window_end: datetime,
    duration_minutes: int,
) -> list[AvailableSlot]:
    """Contiguous slots from window_start; a trailing slot that would pass window_end is dropped."""
    if duration_minutes <= 0:
        return []

    step = timedelta(minutes=duration_minutes)
    slots: list[AvailableSlot] = []
    current_start = window_start

    while current_start < window_end:
        current_end = current_start + step
        if current_end > window_end:
            break
        slots.append(AvailableSlot(start_time=current_start, end_time=current_end))
        current_start = current_end

    return slots


def find_day_rule(specialist: Specialist, on_date: date) -> WeeklyAvailabilityRule | None:
    day = weekday_name(on_date)
    for rule in specialist.availability_rules:
        if rule.day_of_week == day and rule.is_available:
            return rule
    return None


def get_active_specialist(db: Session, specialist_id: int) -> Specialist:
    specialist = db.get(Specialist, specialist_id)
    if specialist is None or not specialist.is_active:
        raise NotFoundError('Specialist not found or inactive.')
    return specialist


def resolve_slot_duration(db: Session, service_id: int | None) -> int:
    if service_id is None:
        return config.DEFAULT_SLOT_DURATION_MINUTES
    service = db.get(Service, service_id)
    if service is None:
        raise NotFoundError('Service not found.')
    return service.duration_minutes


def compute_available_slots(
    db: Session,
    specialist_id: int,
    on_date: date,
    service_id: int | None = None,
    now: datetime | None = None,
) -> list[AvailableSlot]:
    specialist = get_active_specialist(db, specialist_id)
    duration_minutes = resolve_slot_duration(db, service_id)

    rule = find_day_rule(specialist, on_date)
    if rule is None:
        return []

    window_start = datetime.combine(on_date, parse_clock(rule.start_time))
    window_end = datetime.combine(on_date, parse_clock(rule.end_time))
    candidates = generate_candidate_slots(window_start, window_end, duration_minutes)

    day_start, day_end = utc_day_bounds(on_date)
    reservations = find_active_reservations(db, specialist.id, day_start, day_end)

    available = [
        slot
        for slot in candidates
        if not any(
            intervals_overlap(slot.start_time, slot.end_time, reservation.start_time, reservation.end_time)
            for reservation in reservations
        )
    ]

    current_time = to_naive_utc(now) if now is not None else utc_now()
    if on_date == current_time.date():
        available = [slot for slot in available if slot.start_time > current_time]

    return available


def get_booked_intervals(
    db: Session,
    specialist_id: int,
    service_id: int,
    on_date: date,
) -> dict:
    """Service duration plus the day's active reservation intervals for a specialist."""
    service = db.get(Service, service_id)
    if service is None:
        raise NotFoundError('Service not found.')

    day_start, day_end = utc_day_bounds(on_date)
    reservations = find_active_reservations(db, specialist_id, day_start, day_end)

    return {
        'serviceDurationMinutes': service.duration_minutes,
        'bookedSlots': [
            {'start': isoformat_utc(reservation.start_time), 'end': isoformat_utc(reservation.end_time)}
            for reservation in reservations
        ],
    }
