import threading
from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from booking.models.reservation import Reservation
from booking.services.reminders import (
    ReminderScheduler,
    find_reservations_needing_reminder,
    seconds_until_next_hour,
    send_upcoming_reminders,
)

NOW = datetime(2030, 1, 6, 10, 0)


@pytest.fixture
def make_booking(factory, clinic):
    _, specialist, service = clinic

    def _make(hours_ahead: float, status: str = 'confirmed', reminder_sent: bool = False) -> Reservation:
        start = NOW + timedelta(hours=hours_ahead)
        return factory.reservation(
            specialist, service, start, start + timedelta(hours=1), status=status, reminder_sent=reminder_sent,
        )

    return _make


def test_window_is_half_open_between_24_and_25_hours(factory, make_booking) -> None:
    at_lower_bound = make_booking(24)
    inside = make_booking(24.5)
    make_booking(25)
    make_booking(23.9)

    selected = find_reservations_needing_reminder(factory.db, NOW)

    assert [item.id for item in selected] == [at_lower_bound.id, inside.id]


def test_only_confirmed_unreminded_reservations_are_selected(factory, make_booking) -> None:
    make_booking(24.25, status='pending')
    make_booking(24.5, status='cancelled')
    make_booking(24.75, reminder_sent=True)

    assert find_reservations_needing_reminder(factory.db, NOW) == []


def test_sweep_marks_reminder_sent_and_is_idempotent(factory, make_booking, notifier) -> None:
    reservation = make_booking(24.5)

    first = send_upcoming_reminders(factory.db, notifier, now=NOW)
    second = send_upcoming_reminders(factory.db, notifier, now=NOW)

    assert first == 1
    assert second == 0
    assert notifier.reminders == [reservation.id]
    assert factory.db.get(Reservation, reservation.id).reminder_sent is True


def test_undelivered_reminder_is_retried_on_next_sweep(factory, make_booking, notifier) -> None:
    reservation = make_booking(24.5)
    notifier.deliver = False

    assert send_upcoming_reminders(factory.db, notifier, now=NOW) == 0
    assert factory.db.get(Reservation, reservation.id).reminder_sent is False

    notifier.deliver = True
    assert send_upcoming_reminders(factory.db, notifier, now=NOW + timedelta(minutes=20)) == 1


def test_one_failing_reminder_does_not_stop_the_batch(factory, make_booking, notifier) -> None:
    broken = make_booking(24.1)
    healthy = make_booking(24.6)
    notifier.fail_for.add(broken.id)

    sent = send_upcoming_reminders(factory.db, notifier, now=NOW)

    assert sent == 1
    assert factory.db.get(Reservation, broken.id).reminder_sent is False
    assert factory.db.get(Reservation, healthy.id).reminder_sent is True


def test_seconds_until_next_hour() -> None:
    assert seconds_until_next_hour(datetime(2030, 1, 6, 10, 45, 30)) == 14 * 60 + 30
    assert seconds_until_next_hour(datetime(2030, 1, 6, 10, 0)) == 3600


def test_scheduler_trigger_runs_a_sweep(factory, make_booking, notifier) -> None:
    reservation = make_booking(24.5)
    session_factory = sessionmaker(bind=factory.db.get_bind())
    scheduler = ReminderScheduler(session_factory, notifier, clock=lambda: NOW)

    assert scheduler.trigger() == 1
    assert notifier.reminders == [reservation.id]


def test_scheduler_trigger_skips_while_a_sweep_is_running(factory, notifier) -> None:
    scheduler = ReminderScheduler(sessionmaker(bind=factory.db.get_bind()), notifier, clock=lambda: NOW)
    scheduler._sweep_lock.acquire()
    try:
        assert scheduler.trigger() is None
    finally:
        scheduler._sweep_lock.release()


def test_scheduler_start_is_idempotent_and_stop_joins(factory, notifier) -> None:
    scheduler = ReminderScheduler(sessionmaker(bind=factory.db.get_bind()), notifier, clock=lambda: NOW)

    scheduler.start()
    first_thread = scheduler._thread
    scheduler.start()

    assert scheduler.is_running
    assert scheduler._thread is first_thread

    scheduler.stop()
    assert not scheduler.is_running
    scheduler.stop()


def test_scheduler_stop_keeps_a_thread_that_is_still_sweeping(factory, notifier) -> None:
    scheduler = ReminderScheduler(sessionmaker(bind=factory.db.get_bind()), notifier, clock=lambda: NOW)
    release = threading.Event()
    busy_thread = threading.Thread(target=release.wait, daemon=True)
    busy_thread.start()
    scheduler._thread = busy_thread

    try:
        scheduler.stop(timeout=0.05)

        assert scheduler._thread is busy_thread
        assert scheduler.is_running

        scheduler.start()
        assert scheduler._thread is busy_thread
    finally:
        release.set()

    scheduler.stop()
    assert not scheduler.is_running
    assert scheduler._thread is None
