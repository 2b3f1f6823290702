"""Validation of a specialist's weekly availability rules, applied on write."""

from dataclasses import dataclass
from typing import Iterable

from booking.core.errors import InvalidInputError
from booking.core.timeutils import DAY_NAMES, parse_clock


@dataclass(frozen=True)
class AvailabilityRule:
    day_of_week: str
    start_time: str
    end_time: str
    is_available: bool = True


def validate_weekly_availability(rules: Iterable) -> list[AvailabilityRule]:
    """
    Normalize and check a full weekly schedule.

    Each item needs ``day_of_week``, ``start_time``, ``end_time`` and optionally
    ``is_available``. A day may appear once; an available rule must open before
    it closes.
    """
    normalized: list[AvailabilityRule] = []
    seen_days: set[str] = set()

    for rule in rules:
        day = (rule.day_of_week or '').strip().lower()
        if day not in DAY_NAMES:
            raise InvalidInputError(f'Invalid day of week {rule.day_of_week!r}.')
        if day in seen_days:
            raise InvalidInputError(f'Availability for {day} is declared more than once.')
        seen_days.add(day)

        opens = parse_clock(rule.start_time)
        closes = parse_clock(rule.end_time)
        is_available = True if rule.is_available is None else bool(rule.is_available)
        if is_available and opens >= closes:
            raise InvalidInputError(f'Availability for {day} must start before it ends.')

        normalized.append(
            AvailabilityRule(
                day_of_week=day,
                start_time=opens.strftime('%H:%M'),
                end_time=closes.strftime('%H:%M'),
                is_available=is_available,
            )
        )

    return sorted(normalized, key=lambda item: DAY_NAMES.index(item.day_of_week))
