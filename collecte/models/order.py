"""
Order (ride) model. The order ledger is written by the dispatch module;
the settlement engine only reads completed orders.
"""
from sqlalchemy import Column, String, ForeignKey, Integer
from sqlalchemy.orm import relationship
from collecte.db.base import BaseModel

# Terminal status of a ride whose payment has been collected
ORDER_STATUS_COMPLETED = "payment_confirmed"


class Order(BaseModel):
    """Ride order with its total price in minor currency units (XPF)."""
    __tablename__ = "orders"

    client_name = Column(String(200), nullable=True)
    total_price = Column(Integer, nullable=False)
    payment_method = Column(String(20), nullable=True)  # "card", "cash", "tpe"
    status = Column(String(30), nullable=False, default="pending", index=True)
    assigned_driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=True, index=True)

    # Relationships
    driver = relationship("Driver", back_populates="orders")

    @property
    def is_completed(self) -> bool:
        return self.status == ORDER_STATUS_COMPLETED
