"""
Payment reconciliation: distribute a captured payment over a provider's
unpaid settlements, oldest period first.
"""
from dataclasses import dataclass, field
from typing import List, Optional
import logging
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from collecte.core.config import settings
from collecte.core.exceptions import (
    ConfigMissingError,
    ConcurrentUpdateConflict,
    DuplicatePaymentError,
    PaymentNotConfirmedError,
)
from collecte.models.payment import PaymentReceipt
from collecte.services.fee_config_service import FeeConfigValues
from collecte.services.settlement_service import is_covered, live_amounts
from collecte.services.settlement_store import list_unpaid_for, mark_payment_applied

logger = logging.getLogger(__name__)

PAYMENT_STATUS_SUCCEEDED = "succeeded"


@dataclass(frozen=True)
class PaymentConfirmation:
    """A capture reported by the payment processor."""
    external_payment_id: str
    amount_captured: int
    provider_id: int
    status: str = PAYMENT_STATUS_SUCCEEDED


@dataclass
class Allocation:
    """Share of a payment applied to one settlement."""
    settlement_id: int
    period: str
    applied: int
    amount_paid: int
    amount_due: int
    is_paid: bool


@dataclass
class ReconciliationResult:
    external_payment_id: str
    provider_id: int
    amount_captured: int
    applied: int = 0
    unapplied: int = 0
    allocations: List[Allocation] = field(default_factory=list)


def is_already_reconciled(db: Session, external_payment_id: str) -> bool:
    return db.query(PaymentReceipt).filter(
        PaymentReceipt.external_payment_id == external_payment_id
    ).first() is not None


def _check_confirmed(confirmation: PaymentConfirmation) -> None:
    if confirmation.status != PAYMENT_STATUS_SUCCEEDED:
        raise PaymentNotConfirmedError(
            f"Payment {confirmation.external_payment_id} is not captured (status {confirmation.status})"
        )
    if confirmation.amount_captured <= 0:
        raise PaymentNotConfirmedError(
            f"Payment {confirmation.external_payment_id} has no captured amount"
        )


def _apply_payment(db: Session, confirmation: PaymentConfirmation, config: FeeConfigValues) -> ReconciliationResult:
    if is_already_reconciled(db, confirmation.external_payment_id):
        raise DuplicatePaymentError(confirmation.external_payment_id)

    result = ReconciliationResult(
        external_payment_id=confirmation.external_payment_id,
        provider_id=confirmation.provider_id,
        amount_captured=confirmation.amount_captured,
    )
    remaining = confirmation.amount_captured

    for record in list_unpaid_for(db, confirmation.provider_id):
        true_due = live_amounts(db, record.order_ids, config)
        already_paid = record.amount_paid
        if true_due.amount_due == 0 and already_paid > 0:
            # Orders moved away after a partial payment; left for an admin
            continue
        covered = is_covered(record, true_due)
        if remaining <= 0 and not covered:
            continue

        owed = max(0, true_due.amount_due - already_paid)
        to_apply = min(remaining, owed)
        new_amount_paid = already_paid + to_apply
        is_paid = new_amount_paid >= true_due.amount_due

        mark_payment_applied(
            db,
            settlement_id=record.id,
            expected_amount_paid=already_paid,
            additional_amount_paid=to_apply,
            is_paid=is_paid,
            frozen=true_due if is_paid else None,
        )
        result.allocations.append(Allocation(
            settlement_id=record.id,
            period=record.period,
            applied=to_apply,
            amount_paid=new_amount_paid,
            amount_due=true_due.amount_due,
            is_paid=is_paid,
        ))
        remaining -= to_apply

    result.applied = confirmation.amount_captured - remaining
    result.unapplied = remaining

    db.add(PaymentReceipt(
        external_payment_id=confirmation.external_payment_id,
        provider_id=confirmation.provider_id,
        amount_captured=confirmation.amount_captured,
        amount_applied=result.applied,
        amount_unapplied=result.unapplied,
        records_touched=len(result.allocations),
    ))
    db.flush()
    return result


def reconcile_payment(
    db: Session,
    confirmation: PaymentConfirmation,
    config: FeeConfigValues,
    max_attempts: Optional[int] = None,
) -> ReconciliationResult:
    """
    Apply a captured payment to the provider's unpaid settlements.

    Runs in one transaction together with the payment receipt, so a payment
    is applied entirely or not at all and at most once per external id.
    Compare-and-set conflicts are retried; if every attempt conflicts the
    conflict is raised to the caller.
    """
    _check_confirmed(confirmation)
    if config is None:
        raise ConfigMissingError()

    attempts = max_attempts or settings.RECONCILE_MAX_RETRIES
    for attempt in range(1, attempts + 1):
        try:
            result = _apply_payment(db, confirmation, config)
            db.commit()
        except ConcurrentUpdateConflict:
            db.rollback()
            logger.warning(
                f"Reconciliation of {confirmation.external_payment_id} conflicted "
                f"(attempt {attempt}/{attempts})"
            )
            if attempt == attempts:
                raise
            continue
        except IntegrityError:
            # A concurrent replay inserted the receipt first
            db.rollback()
            raise DuplicatePaymentError(confirmation.external_payment_id)
        except Exception:
            db.rollback()
            raise

        if result.unapplied > 0:
            logger.warning(
                f"Payment {confirmation.external_payment_id} exceeds provider {confirmation.provider_id} "
                f"debt: {result.unapplied} XPF left unapplied"
            )
        logger.info(
            f"Payment {confirmation.external_payment_id} reconciled for provider {confirmation.provider_id}: "
            f"{result.applied} XPF over {len(result.allocations)} settlement(s)"
        )
        return result
