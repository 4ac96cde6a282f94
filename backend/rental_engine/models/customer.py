import uuid

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.orm import relationship

from rental_engine.database import Base
from rental_engine.utils.timezone import utcnow


class Customer(Base):
    """Customers are managed elsewhere; the engine only checks existence and shows names."""
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(50), nullable=True)
    document_number = Column(String(50), nullable=True, unique=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    rentals = relationship("Rental", back_populates="customer", lazy="select")
