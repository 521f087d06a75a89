"""
Settlement engine error taxonomy.

Services raise these; API routes translate them into HTTP responses.
"""
from typing import Optional


class SettlementError(Exception):
    """Base class for settlement engine errors."""


class ConfigMissingError(SettlementError):
    """Fee configuration is unavailable. Aggregation must not assume 0%."""

    def __init__(self, message: str = "Fee configuration is not available"):
        super().__init__(message)


class ConcurrentUpdateConflict(SettlementError):
    """A settlement record changed between read and write."""

    def __init__(self, settlement_id: Optional[int] = None):
        self.settlement_id = settlement_id
        if settlement_id is None:
            super().__init__("Settlement was modified concurrently")
        else:
            super().__init__(f"Settlement {settlement_id} was modified concurrently")


class PaymentNotConfirmedError(SettlementError):
    """Reconciliation was invoked without a verified successful capture."""


class DuplicatePaymentError(SettlementError):
    """The external payment has already been reconciled."""

    def __init__(self, external_payment_id: str):
        self.external_payment_id = external_payment_id
        super().__init__(f"Payment {external_payment_id} already processed")


class SettlementNotFoundError(SettlementError):
    """No settlement record with the given id."""

    def __init__(self, settlement_id: int):
        self.settlement_id = settlement_id
        super().__init__(f"Settlement {settlement_id} not found")


class SettlementAlreadyPaidError(SettlementError):
    """The settlement record is already paid and frozen."""

    def __init__(self, settlement_id: int):
        self.settlement_id = settlement_id
        super().__init__(f"Settlement {settlement_id} is already paid")


class PaymentGatewayError(SettlementError):
    """The external payment processor call failed."""
