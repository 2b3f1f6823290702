import os
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')
os.environ.setdefault('RESEND_API_KEY', '')

from booking.database import Base  # noqa: E402
from booking.models.business import Business  # noqa: E402
from booking.models.reservation import Reservation  # noqa: E402
from booking.models.service import Service  # noqa: E402
from booking.models.specialist import Specialist, WeeklyAvailabilityRule  # noqa: E402
from booking.models.user import User  # noqa: E402


class FakeNotifier:
    def __init__(self, deliver: bool = True):
        self.deliver = deliver
        self.queued: list[tuple[str, int]] = []
        self.reminders: list[int] = []
        self.fail_for: set[int] = set()

    def send_in_background(self, event, notice) -> None:
        self.queued.append((event, notice.reservation_id))

    def notify_reservation_reminder(self, notice) -> bool:
        if notice.reservation_id in self.fail_for:
            raise RuntimeError('mail provider exploded')
        self.reminders.append(notice.reservation_id)
        return self.deliver


class Factory:
    def __init__(self, db):
        self.db = db
        self._counter = 0

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    def user(self, role: str = 'client', name: str | None = None) -> User:
        number = self._next()
        user = User(name=name or f'{role.title()} {number}', email=f'{role}{number}@example.com', role=role)
        self.db.add(user)
        self.db.commit()
        return user

    def business(self, owner: User | None = None) -> Business:
        business = Business(owner_id=(owner or self.user('owner')).id, name=f'Business {self._next()}')
        self.db.add(business)
        self.db.commit()
        return business

    def service(self, business: Business, duration_minutes: int = 60, is_active: bool = True) -> Service:
        service = Service(
            business_id=business.id,
            name=f'Service {self._next()}',
            duration_minutes=duration_minutes,
            price=50,
            is_active=is_active,
        )
        self.db.add(service)
        self.db.commit()
        return service

    def specialist(
        self,
        business: Business,
        rules: list[tuple[str, str, str, bool]] | None = None,
        services: list[Service] | None = None,
        user: User | None = None,
        is_active: bool = True,
    ) -> Specialist:
        if rules is None:
            rules = [('monday', '09:00', '17:00', True)]
        specialist = Specialist(
            user_id=(user or self.user('specialist')).id,
            business_id=business.id,
            specialty='General',
            is_active=is_active,
        )
        for day, start, end, available in rules:
            specialist.availability_rules.append(
                WeeklyAvailabilityRule(day_of_week=day, start_time=start, end_time=end, is_available=available)
            )
        specialist.services = list(services or [])
        self.db.add(specialist)
        self.db.commit()
        return specialist

    def reservation(
        self,
        specialist: Specialist,
        service: Service,
        start_time: datetime,
        end_time: datetime,
        status: str = 'confirmed',
        client: User | None = None,
        reminder_sent: bool = False,
    ) -> Reservation:
        reservation = Reservation(
            client_id=(client or self.user('client')).id,
            business_id=specialist.business_id,
            specialist_id=specialist.id,
            service_id=service.id,
            start_time=start_time,
            end_time=end_time,
            status=status,
            reminder_sent=reminder_sent,
        )
        self.db.add(reservation)
        self.db.commit()
        return reservation


@pytest.fixture
def db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def clinic(factory):
    """A business with one specialist open Monday 09:00-17:00 and a 60 minute service."""
    business = factory.business()
    service = factory.service(business, duration_minutes=60)
    specialist = factory.specialist(business, services=[service])
    return business, specialist, service


@pytest.fixture
def file_session_factory(tmp_path):
    """Sessions on a shared on-disk SQLite database, usable from several threads."""
    engine = create_engine(f'sqlite:///{tmp_path / "booking.db"}', connect_args={'check_same_thread': False})
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def file_factory(file_session_factory):
    session = file_session_factory()
    try:
        yield Factory(session)
    finally:
        session.close()
