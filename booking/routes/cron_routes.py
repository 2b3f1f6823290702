import logging

from fastapi import APIRouter, Header, HTTPException, Request, status

from booking.core import config
from booking.services.reminders import ReminderScheduler

router = APIRouter(tags=['notifications'])

logger = logging.getLogger(__name__)


def get_reminder_scheduler(request: Request) -> ReminderScheduler:
    scheduler = getattr(request.app.state, 'reminder_scheduler', None)
    if scheduler is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Reminder scheduler is not configured.',
        )
    return scheduler


def verify_cron_secret(provided_secret: str | None) -> None:
    if config.APP_ENV.lower() != 'production' or not config.CRON_SECRET:
        return
    if provided_secret != config.CRON_SECRET:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Unauthorized')


@router.post('/send-reminders')
def send_reminders(request: Request, x_cron_secret: str | None = Header(default=None)):
    verify_cron_secret(x_cron_secret)
    scheduler = get_reminder_scheduler(request)

    sent = scheduler.trigger()
    if sent is None:
        return {'status': 'skipped', 'message': 'A reminder sweep is already running'}

    logger.info('Manual reminder sweep delivered %s reminders', sent)
    return {'status': 'success', 'message': 'Reminders sent successfully', 'data': {'sent': sent}}
