"""Business model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from booking.database import Base
from booking.models import user  # noqa: F401


class Business(Base):
    """A business that employs specialists and offers services."""
    __tablename__ = "businesses"

    id = Column(Integer, primary_key=True)
    owner_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    name = Column(String(200), nullable=False)
    email = Column(String)
    address = Column(String(300))
    is_active = Column(Boolean, default=True, nullable=False)

    owner = relationship("User")
