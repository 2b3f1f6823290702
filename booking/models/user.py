"""User model definitions."""

from sqlalchemy import Boolean, Column, Integer, String
from booking.database import Base

USER_ROLES = ('admin', 'owner', 'specialist', 'client')


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String)
    role = Column(String, nullable=False, default='client')  # admin/owner/specialist/client
    phone = Column(String)
    is_active = Column(Boolean, default=True, nullable=False)
