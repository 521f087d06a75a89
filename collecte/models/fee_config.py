"""
Fee configuration model: the single active set of percentages applied to rides.
"""
from sqlalchemy import Column, String, Numeric
from collecte.db.base import BaseModel

DEFAULT_FEE_CONFIG_KEY = "default"


class FeeConfig(BaseModel):
    """Singleton row holding service fee and commission percentages (0-100)."""
    __tablename__ = "fee_configs"

    key = Column(String(20), unique=True, nullable=False, default=DEFAULT_FEE_CONFIG_KEY)
    service_fee_percent = Column(Numeric(5, 2), nullable=False, default=15)  # Charged on provider rides
    provider_commission_percent = Column(Numeric(5, 2), nullable=False, default=0)  # Retained on provider revenue
    employee_commission_percent = Column(Numeric(5, 2), nullable=False, default=0)  # Retained on salaried driver earnings
