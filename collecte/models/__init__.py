"""Models package - Import all models for SQLAlchemy registration."""
from collecte.models.provider import Provider, ProviderType
from collecte.models.driver import Driver
from collecte.models.order import Order, ORDER_STATUS_COMPLETED
from collecte.models.fee_config import FeeConfig, DEFAULT_FEE_CONFIG_KEY
from collecte.models.settlement import SettlementRecord, SettlementOrder
from collecte.models.payment import PaymentReceipt

__all__ = [
    "Provider",
    "ProviderType",
    "Driver",
    "Order",
    "ORDER_STATUS_COMPLETED",
    "FeeConfig",
    "DEFAULT_FEE_CONFIG_KEY",
    "SettlementRecord",
    "SettlementOrder",
    "PaymentReceipt",
]
