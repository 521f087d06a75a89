"""
Provider (prestataire) fee collection routes: balances and card payments.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from collecte.api.dependencies import get_current_provider, get_current_fee_config
from collecte.api.routes.admin_collecte import load_settlement, settlement_detail
from collecte.core.exceptions import (
    DuplicatePaymentError,
    PaymentGatewayError,
    PaymentNotConfirmedError,
)
from collecte.db.session import get_db
from collecte.models.provider import Provider
from collecte.schemas.payment import (
    ConfirmPaymentRequest,
    ConfirmPaymentResponse,
    PaymentIntentRequest,
    PaymentIntentResponse,
)
from collecte.schemas.settlement import (
    OutstandingBalanceResponse,
    SettlementDetailResponse,
    SettlementListResponse,
)
from collecte.services import payment_gateway, settlement_service, settlement_store
from collecte.services.fee_config_service import FeeConfigValues
from collecte.services.reconciliation_service import reconcile_payment

router = APIRouter(prefix="/prestataire/collecte", tags=["prestataire-collecte"])


def require_payments_enabled():
    """Card payments need a configured payment processor."""
    if not payment_gateway.is_enabled():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Card payment is not available"
        )


@router.get("", response_model=SettlementListResponse)
async def list_my_settlements(
    provider: Provider = Depends(get_current_provider),
    db: Session = Depends(get_db),
    config: FeeConfigValues = Depends(get_current_fee_config)
):
    """List the provider's settlements, unpaid ones priced with the current fees."""
    records = settlement_store.list_all_for(db, provider.id)
    views = settlement_service.view_settlements(db, records, config)
    return {"collectes": [view.to_dict() for view in views]}


@router.get("/summary", response_model=OutstandingBalanceResponse)
async def get_my_balance(
    provider: Provider = Depends(get_current_provider),
    db: Session = Depends(get_db),
    config: FeeConfigValues = Depends(get_current_fee_config)
):
    """Commissions still owed by the provider."""
    balance = settlement_service.provider_outstanding(db, provider.id, config)
    return {
        "total_due": balance.total_due,
        "total_paid": balance.total_paid,
        "remaining": balance.remaining,
        "unpaid_count": balance.unpaid_count,
    }


@router.get("/{settlement_id}", response_model=SettlementDetailResponse)
async def get_my_settlement(
    settlement_id: int,
    provider: Provider = Depends(get_current_provider),
    db: Session = Depends(get_db),
    config: FeeConfigValues = Depends(get_current_fee_config)
):
    """Get one of the provider's settlements with its orders."""
    record = load_settlement(settlement_id, db)
    if record.provider_id != provider.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied to this settlement"
        )
    return settlement_detail(db, record, config)


@router.post("/payment-intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    request: PaymentIntentRequest,
    provider: Provider = Depends(get_current_provider),
    db: Session = Depends(get_db),
    config: FeeConfigValues = Depends(get_current_fee_config)
):
    """Start a card payment for the whole outstanding balance or half of it."""
    require_payments_enabled()

    balance = settlement_service.provider_outstanding(db, provider.id, config)
    amount = settlement_service.payment_intent_amount(balance.remaining, request.option)
    if amount <= 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Nothing to pay"
        )

    try:
        return payment_gateway.create_payment_intent(amount, provider.id)
    except PaymentGatewayError:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Payment could not be created"
        )


@router.post("/confirm-payment", response_model=ConfirmPaymentResponse)
async def confirm_payment(
    request: ConfirmPaymentRequest,
    provider: Provider = Depends(get_current_provider),
    db: Session = Depends(get_db),
    config: FeeConfigValues = Depends(get_current_fee_config)
):
    """Verify a card payment with the processor and apply it to the settlements."""
    require_payments_enabled()

    try:
        confirmation = payment_gateway.retrieve_payment_intent(request.payment_intent_id)
    except PaymentGatewayError:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Payment could not be verified"
        )

    if confirmation.provider_id != provider.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Payment not authorized"
        )

    try:
        result = reconcile_payment(db, confirmation, config)
    except PaymentNotConfirmedError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Payment did not succeed"
        )
    except DuplicatePaymentError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Payment already processed"
        )

    return {
        "message": "Payment recorded",
        "amount_captured": result.amount_captured,
        "applied": result.applied,
        "unapplied": result.unapplied,
        "allocations": [
            {
                "settlement_id": a.settlement_id,
                "period": a.period,
                "applied": a.applied,
                "amount_paid": a.amount_paid,
                "amount_due": a.amount_due,
                "is_paid": a.is_paid,
            }
            for a in result.allocations
        ],
    }
