from datetime import datetime

import pytest

from booking.scheduling.overlap import find_conflicting_reservation, intervals_overlap, is_slot_available


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2030, 1, 7, hour, minute)


@pytest.mark.parametrize(
    ('a', 'b', 'expected'),
    [
        ((at(9), at(10)), (at(10), at(11)), False),
        ((at(10), at(11)), (at(9), at(10)), False),
        ((at(9), at(10)), (at(9, 30), at(10, 30)), True),
        ((at(9, 30), at(10, 30)), (at(9), at(10)), True),
        ((at(9), at(12)), (at(10), at(11)), True),
        ((at(10), at(11)), (at(9), at(12)), True),
        ((at(9), at(10)), (at(9), at(10)), True),
        ((at(9), at(10)), (at(11), at(12)), False),
    ],
)
def test_intervals_overlap_uses_half_open_bounds(a, b, expected) -> None:
    assert intervals_overlap(a[0], a[1], b[0], b[1]) is expected


@pytest.mark.parametrize('new_start_hour', [8, 9, 10, 11, 12])
@pytest.mark.parametrize('new_length', [1, 2, 3])
def test_intervals_overlap_matches_three_clause_booking_check(new_start_hour: int, new_length: int) -> None:
    existing_start, existing_end = at(10), at(12)
    new_start, new_end = at(new_start_hour), at(new_start_hour + new_length)

    three_clause = (
        (new_start < existing_end and new_start >= existing_start)
        or (new_end > existing_start and new_end <= existing_end)
        or (new_start <= existing_start and new_end >= existing_end)
    )

    assert intervals_overlap(new_start, new_end, existing_start, existing_end) is three_clause


def test_find_conflicting_reservation_ignores_terminal_statuses(factory, clinic) -> None:
    _, specialist, service = clinic
    factory.reservation(specialist, service, at(14), at(15), status='cancelled')
    factory.reservation(specialist, service, at(14), at(15), status='completed')
    factory.reservation(specialist, service, at(14), at(15), status='no-show')

    assert find_conflicting_reservation(factory.db, specialist.id, at(14), at(15)) is None


def test_find_conflicting_reservation_returns_active_clash(factory, clinic) -> None:
    _, specialist, service = clinic
    pending = factory.reservation(specialist, service, at(14), at(15), status='pending')

    conflict = find_conflicting_reservation(factory.db, specialist.id, at(14, 30), at(15, 30))

    assert conflict is not None
    assert conflict.id == pending.id


def test_find_conflicting_reservation_can_exclude_itself(factory, clinic) -> None:
    _, specialist, service = clinic
    existing = factory.reservation(specialist, service, at(14), at(15))

    assert find_conflicting_reservation(
        factory.db, specialist.id, at(14), at(15), exclude_reservation_id=existing.id
    ) is None


def test_is_slot_available_allows_back_to_back(factory, clinic) -> None:
    _, specialist, service = clinic
    factory.reservation(specialist, service, at(9), at(10))

    assert is_slot_available(factory.db, specialist.id, at(10), at(11)) is True
    assert is_slot_available(factory.db, specialist.id, at(9, 59), at(11)) is False


def test_other_specialists_do_not_conflict(factory, clinic) -> None:
    business, specialist, service = clinic
    other = factory.specialist(business)
    factory.reservation(other, service, at(9), at(10))

    assert is_slot_available(factory.db, specialist.id, at(9), at(10)) is True
