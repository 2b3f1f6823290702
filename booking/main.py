import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from booking.core import config
from booking.database import Base, SessionLocal, engine, ensure_reservation_schema
from booking.models import reservation  # noqa: F401
from booking.routes import availability_routes, business_routes, cron_routes, reservation_routes
from booking.services.notifications import get_notification_service
from booking.services.reminders import ReminderScheduler

logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_application() -> None:
    config.validate_runtime_config()

    try:
        Base.metadata.create_all(bind=engine)
        ensure_reservation_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')

    app.state.reminder_scheduler = ReminderScheduler(SessionLocal, get_notification_service())
    if config.REMINDER_SCHEDULER_ENABLED:
        app.state.reminder_scheduler.start()


@app.on_event('shutdown')
def shutdown_application() -> None:
    scheduler = getattr(app.state, 'reminder_scheduler', None)
    if scheduler is not None:
        scheduler.stop()
    get_notification_service().shutdown()


@app.get('/')
def root():
    return {'status': 'Reservations API Running'}


app.include_router(business_routes.router, prefix='/businesses')
app.include_router(availability_routes.router, prefix='/specialists')
app.include_router(reservation_routes.router, prefix='/reservations')
app.include_router(cron_routes.router, prefix='/cron')
