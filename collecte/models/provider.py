"""
Provider (prestataire) model: a company or independent operator supplying drivers.
"""
from sqlalchemy import Column, String, Boolean, Enum as SQLEnum
from sqlalchemy.orm import relationship
from collecte.db.base import BaseModel
import enum


class ProviderType(str, enum.Enum):
    """Provider legal/commercial type."""
    SOCIETE_TAXI = "societe_taxi"
    SOCIETE_TOURISME = "societe_tourisme"
    PATENTE_TAXI = "patente_taxi"
    PATENTE_TOURISME = "patente_tourisme"
    AGENCE_LOCATION = "agence_location"
    LOUEUR_INDIVIDUEL = "loueur_individuel"


class Provider(BaseModel):
    """Provider model. Logs into its dashboard with a 6-digit access code."""
    __tablename__ = "providers"

    name = Column(String(200), nullable=False)
    type = Column(SQLEnum(ProviderType), nullable=False)
    email = Column(String(100), nullable=True)
    phone = Column(String(30), nullable=True)
    code_hash = Column(String(255), nullable=False)  # bcrypt hash of the 6-digit code
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    drivers = relationship("Driver", back_populates="provider")
    settlements = relationship("SettlementRecord", back_populates="provider")
