"""
Settlement models: commission owed by one provider for one driver's rides in one month.
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Integer, Index
from sqlalchemy.orm import relationship
from collecte.db.base import BaseModel


class SettlementRecord(BaseModel):
    """
    One (provider, driver, period) bucket.

    While unpaid, the stored amounts are only the last computed values; readers
    recompute them from the linked orders. Once paid they are frozen.
    """
    __tablename__ = "settlement_records"

    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False, index=True)
    period = Column(String(7), nullable=False)  # "YYYY-MM"
    amount_due = Column(Integer, nullable=False, default=0)
    service_fee_component = Column(Integer, nullable=False, default=0)
    provider_commission_component = Column(Integer, nullable=False, default=0)
    amount_paid = Column(Integer, nullable=False, default=0)
    is_paid = Column(Boolean, nullable=False, default=False, index=True)
    paid_at = Column(DateTime, nullable=True)
    marked_by_admin_at = Column(DateTime, nullable=True)
    # "provider:driver:period" while unpaid, NULL once paid: one open record per tuple
    open_key = Column(String(40), nullable=True, unique=True)

    # Relationships
    provider = relationship("Provider", back_populates="settlements")
    driver = relationship("Driver")
    order_links = relationship(
        "SettlementOrder",
        back_populates="settlement",
        cascade="all, delete-orphan",
        order_by="SettlementOrder.order_id",
    )

    __table_args__ = (
        Index("ix_settlement_tuple", "provider_id", "driver_id", "period"),
    )

    @staticmethod
    def open_key_for(provider_id: int, driver_id: int, period: str) -> str:
        return f"{provider_id}:{driver_id}:{period}"

    @property
    def order_ids(self) -> list:
        return [link.order_id for link in self.order_links]


class SettlementOrder(BaseModel):
    """Link between a settlement record and one order it bills."""
    __tablename__ = "settlement_orders"

    settlement_id = Column(Integer, ForeignKey("settlement_records.id"), nullable=False, index=True)
    # Unique: an order is billed by at most one settlement record
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, unique=True)

    # Relationships
    settlement = relationship("SettlementRecord", back_populates="order_links")
