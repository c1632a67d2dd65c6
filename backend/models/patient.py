"""Patient model definitions."""

from sqlalchemy import Column, Date, DateTime, Integer, String, func
from backend.database import Base


class Patient(Base):
    """Represents a registered patient."""
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    rut = Column(String, unique=True, index=True)
    first_name = Column(String)
    last_name = Column(String)
    phone = Column(String)
    email = Column(String)
    date_of_birth = Column(Date)
    created_at = Column(DateTime, server_default=func.now())
