"""Specialist and weekly availability model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Table, UniqueConstraint
from sqlalchemy.orm import relationship

from booking.database import Base
from booking.models import business, service, user  # noqa: F401

specialist_services = Table(
    "specialist_services",
    Base.metadata,
    Column("specialist_id", Integer, ForeignKey("specialists.id"), primary_key=True),
    Column("service_id", Integer, ForeignKey("services.id"), primary_key=True),
)


class Specialist(Base):
    """A professional working for a business, tied to a user account."""
    __tablename__ = "specialists"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    business_id = Column(Integer, ForeignKey("businesses.id"), index=True, nullable=False)
    specialty = Column(String(200), nullable=False)
    bio = Column(String(1000))
    is_active = Column(Boolean, default=True, nullable=False)

    user = relationship("User")
    business = relationship("Business")
    services = relationship("Service", secondary=specialist_services)
    availability_rules = relationship(
        "WeeklyAvailabilityRule",
        back_populates="specialist",
        order_by="WeeklyAvailabilityRule.id",
        cascade="all, delete-orphan",
    )


class WeeklyAvailabilityRule(Base):
    """Recurring open hours of a specialist for one day of the week (HH:MM, UTC)."""
    __tablename__ = "weekly_availability_rules"
    __table_args__ = (
        UniqueConstraint("specialist_id", "day_of_week", name="uq_availability_specialist_day"),
    )

    id = Column(Integer, primary_key=True)
    specialist_id = Column(Integer, ForeignKey("specialists.id"), index=True, nullable=False)
    day_of_week = Column(String(9), nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)

    specialist = relationship("Specialist", back_populates="availability_rules")
