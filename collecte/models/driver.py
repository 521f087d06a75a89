"""
Driver model. Owned by the upstream dispatch module; read here for provider linkage.
"""
from sqlalchemy import Column, String, Boolean, ForeignKey, Integer
from sqlalchemy.orm import relationship
from collecte.db.base import BaseModel


class Driver(BaseModel):
    """Driver model, optionally attached to a provider."""
    __tablename__ = "drivers"

    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(30), unique=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=True, index=True)

    # Relationships
    provider = relationship("Provider", back_populates="drivers")
    orders = relationship("Order", back_populates="driver")
