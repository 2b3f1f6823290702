"""Service model definitions."""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from booking.database import Base
from booking.models import business  # noqa: F401

MIN_SERVICE_DURATION_MINUTES = 5
MAX_SERVICE_DURATION_MINUTES = 480


class Service(Base):
    """A bookable service; its duration sets slot length and reservation end time."""
    __tablename__ = "services"
    __table_args__ = (
        CheckConstraint(
            f"duration_minutes >= {MIN_SERVICE_DURATION_MINUTES} AND duration_minutes <= {MAX_SERVICE_DURATION_MINUTES}",
            name="ck_services_duration_range",
        ),
        CheckConstraint("price >= 0", name="ck_services_price_positive"),
    )

    id = Column(Integer, primary_key=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), index=True, nullable=False)
    name = Column(String(200), nullable=False)
    description = Column(String(1000))
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)

    business = relationship("Business")
