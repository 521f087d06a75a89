"""
Pydantic schemas for settlement records.
"""
from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime


class SettlementResponse(BaseModel):
    """Settlement with amounts resolved for display (live if unpaid, frozen if paid)."""
    id: int
    provider_id: int
    driver_id: int
    period: str  # "YYYY-MM"
    amount_due: int
    service_fee_component: int
    provider_commission_component: int
    amount_paid: int
    amount_remaining: int
    is_paid: bool
    order_ids: List[int] = []
    paid_at: Optional[datetime] = None
    marked_by_admin_at: Optional[datetime] = None
    created_at: datetime


class SettlementListResponse(BaseModel):
    """Schema for a list of settlements."""
    collectes: List[SettlementResponse]


class SettlementOrderLine(BaseModel):
    """Order billed by a settlement. Fees are omitted for paid settlements."""
    id: int
    created_at: datetime
    client_name: Optional[str] = None
    total_price: int
    payment_method: Optional[str] = None
    status: str
    service_fee: Optional[int] = None
    provider_commission: Optional[int] = None


class PartyRef(BaseModel):
    """Short reference to a provider or driver."""
    id: int
    name: str


class SettlementDetailResponse(BaseModel):
    """Settlement with its provider, driver and orders."""
    collecte: SettlementResponse
    provider: Optional[PartyRef] = None
    driver: Optional[PartyRef] = None
    courses: List[SettlementOrderLine] = []


class RecomputeSummaryResponse(BaseModel):
    """Result of rebuilding unpaid settlements."""
    created: int
    orders_processed: int
    orders_skipped: int
    total_amount: int
    closed: int = 0  # Unpaid records already covered by earlier payments
    message: str


class AttachOrderResponse(BaseModel):
    """Result of attaching a completed order to its settlement."""
    status: str  # created, updated, already_billed, not_completed, unresolved_driver
    settlement: Optional[SettlementResponse] = None


class OutstandingBalanceResponse(BaseModel):
    """What a provider still owes, priced with the current fee configuration."""
    total_due: int
    total_paid: int
    remaining: int
    unpaid_count: int
