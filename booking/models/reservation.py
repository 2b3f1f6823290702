"""Reservation model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import relationship

from booking.database import Base
from booking.models import business, service, specialist, user  # noqa: F401

STATUS_PENDING = 'pending'
STATUS_CONFIRMED = 'confirmed'
STATUS_COMPLETED = 'completed'
STATUS_CANCELLED = 'cancelled'
STATUS_NO_SHOW = 'no-show'

RESERVATION_STATUSES = (
    STATUS_PENDING,
    STATUS_CONFIRMED,
    STATUS_COMPLETED,
    STATUS_CANCELLED,
    STATUS_NO_SHOW,
)
# Only these statuses block a specialist's time.
ACTIVE_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED)

_ACTIVE_STATUS_CLAUSE = text("status IN ('pending', 'confirmed')")


class Reservation(Base):
    """A client's booking of a specialist's service; end_time is fixed at creation."""
    __tablename__ = "reservations"
    __table_args__ = (
        Index(
            "uq_reservations_active_specialist_start",
            "specialist_id",
            "start_time",
            unique=True,
            sqlite_where=_ACTIVE_STATUS_CLAUSE,
            postgresql_where=_ACTIVE_STATUS_CLAUSE,
        ),
    )

    id = Column(Integer, primary_key=True)
    client_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    business_id = Column(Integer, ForeignKey("businesses.id"), index=True, nullable=False)
    specialist_id = Column(Integer, ForeignKey("specialists.id"), index=True, nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    start_time = Column(DateTime, index=True, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(String(16), default=STATUS_PENDING, index=True, nullable=False)
    notes = Column(String(500))
    cancellation_reason = Column(String(500))
    reminder_sent = Column(Boolean, default=False, nullable=False)

    client = relationship("User")
    business = relationship("Business")
    specialist = relationship("Specialist")
    service = relationship("Service")
