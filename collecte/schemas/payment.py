"""
Pydantic schemas for provider commission payments.
"""
from pydantic import BaseModel, Field
from typing import List, Literal


class PaymentIntentRequest(BaseModel):
    """Pay the whole outstanding balance or half of it."""
    option: Literal["full", "half"]


class PaymentIntentResponse(BaseModel):
    client_secret: str
    payment_intent_id: str
    amount: int


class ConfirmPaymentRequest(BaseModel):
    payment_intent_id: str = Field(min_length=1)


class AllocationResponse(BaseModel):
    """Share of a payment applied to one settlement."""
    settlement_id: int
    period: str
    applied: int
    amount_paid: int
    amount_due: int
    is_paid: bool


class ConfirmPaymentResponse(BaseModel):
    message: str
    amount_captured: int
    applied: int
    unapplied: int
    allocations: List[AllocationResponse] = []
