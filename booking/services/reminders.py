"""
Reminder sweep

Sends a reminder for every confirmed reservation starting between 24 and 25
hours from now. The window width matches the hourly tick, so a reliably
running scheduler visits each reservation once; a missed tick is not retried.
"""

import logging
from datetime import datetime, timedelta
from threading import Event, Lock, Thread

from sqlalchemy.orm import Session

from booking.core import config
from booking.core.timeutils import to_naive_utc, utc_now
from booking.models.reservation import STATUS_CONFIRMED, Reservation
from booking.services.notifications import ReservationNotice

logger = logging.getLogger(__name__)


def reminder_window(now: datetime) -> tuple[datetime, datetime]:
    window_start = now + timedelta(hours=config.REMINDER_LEAD_HOURS)
    return window_start, window_start + timedelta(hours=config.REMINDER_WINDOW_HOURS)


def find_reservations_needing_reminder(db: Session, now: datetime) -> list[Reservation]:
    window_start, window_end = reminder_window(now)
    return db.query(Reservation).filter(
        Reservation.status == STATUS_CONFIRMED,
        Reservation.reminder_sent.is_(False),
        Reservation.start_time >= window_start,
        Reservation.start_time < window_end,
    ).order_by(Reservation.start_time.asc()).all()


def send_upcoming_reminders(db: Session, notifier, now: datetime | None = None) -> int:
    """
    Run one sweep and return how many reminders were delivered.

    ``reminder_sent`` is only set after a successful delivery, so a failed
    reservation is picked up again on the next tick while still inside the window.
    """
    current_time = to_naive_utc(now) if now is not None else utc_now()
    reservations = find_reservations_needing_reminder(db, current_time)
    logger.info('Found %s reservations needing reminders', len(reservations))

    sent = 0
    for reservation in reservations:
        try:
            delivered = notifier.notify_reservation_reminder(ReservationNotice.from_reservation(reservation))
            if not delivered:
                logger.warning('Reminder for reservation %s was not delivered', reservation.id)
                continue
            reservation.reminder_sent = True
            db.commit()
            sent += 1
            logger.info('Reminder sent for reservation %s', reservation.id)
        except Exception:
            db.rollback()
            logger.exception('Failed to send reminder for reservation %s', reservation.id)

    return sent


def seconds_until_next_hour(now: datetime) -> float:
    next_hour = now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
    return (next_hour - now).total_seconds()


class ReminderScheduler:
    """Runs the reminder sweep at the top of every hour on a daemon thread."""

    def __init__(self, session_factory, notifier, clock=utc_now):
        self._session_factory = session_factory
        self._notifier = notifier
        self._clock = clock
        self._thread: Thread | None = None
        self._stop_event = Event()
        self._lifecycle_lock = Lock()
        self._sweep_lock = Lock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lifecycle_lock:
            if self.is_running:
                logger.info('Reminder scheduler is already running')
                return
            self._stop_event.clear()
            self._thread = Thread(target=self._run, name='reminder-scheduler', daemon=True)
            self._thread.start()
        logger.info('Reminder scheduler started - will run every hour')

    def stop(self, timeout: float | None = 5.0) -> None:
        with self._lifecycle_lock:
            if self._thread is None:
                return
            self._stop_event.set()
            self._thread.join(timeout)
            if self._thread.is_alive():
                # Keep the handle so start() cannot launch a second loop beside it.
                logger.warning('Reminder scheduler still finishing a sweep after %ss', timeout)
                return
            self._thread = None
        logger.info('Reminder scheduler stopped')

    def trigger(self) -> int | None:
        """Run a sweep now; returns None when another sweep is still in progress."""
        if not self._sweep_lock.acquire(blocking=False):
            logger.warning('Reminder sweep already running, skipping')
            return None
        try:
            db = self._session_factory()
            try:
                return send_upcoming_reminders(db, self._notifier, now=self._clock())
            finally:
                db.close()
        finally:
            self._sweep_lock.release()

    def _run(self) -> None:
        while not self._stop_event.wait(seconds_until_next_hour(self._clock())):
            logger.info('Running reminder check...')
            try:
                self.trigger()
            except Exception:
                logger.exception('Reminder sweep failed')
