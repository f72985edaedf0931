"""User model definitions."""

from sqlalchemy import JSON, Column, Integer, String
from careslot.database import Base

ROLE_PATIENT = 'patient'
ROLE_DOCTOR = 'doctor'
ROLE_ADMIN = 'admin'


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    name = Column(String)
    role = Column(String)  # patient/doctor/admin
    availability = Column(JSON)  # weekly template, doctors only
