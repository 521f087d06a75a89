"""
Payment receipt model: one row per reconciled external payment.
"""
from sqlalchemy import Column, String, ForeignKey, Integer
from sqlalchemy.orm import relationship
from collecte.db.base import BaseModel


class PaymentReceipt(BaseModel):
    """Records that an external payment was applied, making replays detectable."""
    __tablename__ = "payment_receipts"

    external_payment_id = Column(String(100), unique=True, nullable=False, index=True)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False, index=True)
    amount_captured = Column(Integer, nullable=False)
    amount_applied = Column(Integer, nullable=False)
    amount_unapplied = Column(Integer, nullable=False, default=0)  # Overpayment beyond total debt
    records_touched = Column(Integer, nullable=False, default=0)

    # Relationships
    provider = relationship("Provider")
