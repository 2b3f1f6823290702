"""
Reservation e-mails sent through Resend.

Delivery is best effort: every public method returns True/False and never
raises, so a mail problem cannot fail the reservation change that caused it.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime
from html import escape

import resend
from pydantic import BaseModel

from booking.core import config

logger = logging.getLogger(__name__)

EVENT_CREATED = 'created'
EVENT_CONFIRMED = 'confirmed'
EVENT_CANCELLED = 'cancelled'
EVENT_REMINDER = 'reminder'


class ReservationNotice(BaseModel):
    """Flattened view of a reservation with the names the e-mails need."""

    reservation_id: int
    client_name: str
    client_email: str
    specialist_name: str
    specialist_email: str | None = None
    service_name: str
    business_name: str
    start_time: datetime
    end_time: datetime
    notes: str | None = None
    cancellation_reason: str | None = None

    @classmethod
    def from_reservation(cls, reservation) -> 'ReservationNotice':
        specialist_user = reservation.specialist.user
        return cls(
            reservation_id=reservation.id,
            client_name=reservation.client.name,
            client_email=reservation.client.email,
            specialist_name=specialist_user.name,
            specialist_email=specialist_user.email,
            service_name=reservation.service.name,
            business_name=reservation.business.name,
            start_time=reservation.start_time,
            end_time=reservation.end_time,
            notes=reservation.notes,
            cancellation_reason=reservation.cancellation_reason,
        )

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)


def _format_when(value: datetime) -> str:
    return value.strftime('%A, %B %d, %Y at %H:%M UTC')


def _render(title: str, greeting_name: str, intro: str, notice: ReservationNotice, extra: str = '') -> str:
    rows = [
        ('Client', notice.client_name),
        ('Specialist', notice.specialist_name),
        ('Service', notice.service_name),
        ('Business', notice.business_name),
        ('When', _format_when(notice.start_time)),
        ('Duration', f'{notice.duration_minutes} minutes'),
    ]
    details = ''.join(f'<p><strong>{label}:</strong> {escape(value)}</p>' for label, value in rows)
    return (
        '<!DOCTYPE html><html><body style="font-family: Arial, sans-serif; color: #333;">'
        f'<h2>{escape(title)}</h2>'
        f'<p>Hello <strong>{escape(greeting_name)}</strong>,</p>'
        f'<p>{escape(intro)}</p>'
        f'<div style="border-left: 4px solid #2196F3; padding: 10px 15px;">{details}{extra}</div>'
        '<p style="font-size: 12px; color: #777;">This is an automated message, please do not reply.</p>'
        '</body></html>'
    )


def _optional_line(label: str, value: str | None) -> str:
    if not value:
        return ''
    return f'<p><strong>{label}:</strong> {escape(value)}</p>'


class NotificationService:
    def __init__(
        self,
        api_key: str | None = None,
        from_address: str | None = None,
        timeout_seconds: float | None = None,
        max_attempts: int | None = None,
    ):
        self.api_key = api_key if api_key is not None else config.RESEND_API_KEY
        self.from_address = from_address or config.EMAIL_FROM_ADDRESS
        self.timeout_seconds = timeout_seconds or config.NOTIFICATION_TIMEOUT_SECONDS
        self.max_attempts = max(1, max_attempts or config.NOTIFICATION_MAX_ATTEMPTS)
        self._delivery_pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix='mail-send')
        self._background_pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix='mail-queue')

        if self.api_key:
            resend.api_key = self.api_key
        else:
            logger.warning('RESEND_API_KEY not configured. Reservation e-mails are disabled.')

    def _send_email(self, to: str, subject: str, html: str) -> None:
        resend.Emails.send({
            'from': self.from_address,
            'to': [to],
            'subject': subject,
            'html': html,
        })

    def deliver(self, to: str | None, subject: str, html: str) -> bool:
        """Send one e-mail with a bounded wait per attempt; False once all attempts fail."""
        if not self.api_key:
            logger.info('E-mail not sent, provider not configured: %s', subject)
            return False
        if not to:
            logger.warning('E-mail not sent, no recipient address: %s', subject)
            return False

        for attempt in range(1, self.max_attempts + 1):
            future = self._delivery_pool.submit(self._send_email, to, subject, html)
            try:
                future.result(timeout=self.timeout_seconds)
            except FutureTimeoutError:
                future.cancel()
                logger.warning(
                    'E-mail to %s timed out after %ss (attempt %s/%s)',
                    to, self.timeout_seconds, attempt, self.max_attempts,
                )
            except Exception:
                logger.exception('E-mail to %s failed (attempt %s/%s)', to, attempt, self.max_attempts)
            else:
                logger.info('E-mail sent to %s: %s', to, subject)
                return True

        logger.error('Giving up on e-mail to %s: %s', to, subject)
        return False

    def notify_reservation_created(self, notice: ReservationNotice) -> bool:
        html = _render(
            'New reservation',
            notice.specialist_name,
            'A new reservation was added to your agenda and is waiting for confirmation.',
            notice,
            _optional_line('Client e-mail', notice.client_email) + _optional_line('Client notes', notice.notes),
        )
        return self.deliver(notice.specialist_email, f'New reservation - {notice.client_name}', html)

    def notify_reservation_confirmed(self, notice: ReservationNotice) -> bool:
        html = _render(
            'Reservation confirmed',
            notice.client_name,
            'Your reservation has been confirmed.',
            notice,
        )
        return self.deliver(notice.client_email, f'Reservation confirmed - {notice.specialist_name}', html)

    def notify_reservation_cancelled(self, notice: ReservationNotice) -> bool:
        html = _render(
            'Reservation cancelled',
            notice.client_name,
            'Your reservation has been cancelled.',
            notice,
            _optional_line('Reason', notice.cancellation_reason),
        )
        return self.deliver(notice.client_email, f'Reservation cancelled - {notice.business_name}', html)

    def notify_reservation_reminder(self, notice: ReservationNotice) -> bool:
        html = _render(
            'Reservation reminder',
            notice.client_name,
            'This is a reminder of your upcoming reservation.',
            notice,
        )
        return self.deliver(notice.client_email, f'Reminder: reservation with {notice.specialist_name}', html)

    def send_in_background(self, event: str, notice: ReservationNotice) -> None:
        handlers = {
            EVENT_CREATED: self.notify_reservation_created,
            EVENT_CONFIRMED: self.notify_reservation_confirmed,
            EVENT_CANCELLED: self.notify_reservation_cancelled,
            EVENT_REMINDER: self.notify_reservation_reminder,
        }
        handler = handlers.get(event)
        if handler is None:
            logger.error('Unknown notification event %r for reservation %s', event, notice.reservation_id)
            return
        self._background_pool.submit(handler, notice)

    def shutdown(self) -> None:
        self._background_pool.shutdown(wait=True)
        self._delivery_pool.shutdown(wait=False)


_notification_service: NotificationService | None = None


def get_notification_service() -> NotificationService:
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService()
    return _notification_service
