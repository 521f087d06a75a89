"""
Tests for applying captured payments to unpaid settlements.
"""
from datetime import datetime
import pytest
from collecte.core.exceptions import (
    ConcurrentUpdateConflict,
    DuplicatePaymentError,
    PaymentNotConfirmedError,
)
from collecte.models import PaymentReceipt
from collecte.services.order_ledger import get_orders_by_ids
from collecte.services import reconciliation_service, settlement_service, settlement_store
from collecte.services.reconciliation_service import PaymentConfirmation, reconcile_payment


@pytest.fixture
def two_periods(db, fee_config, make_provider, make_driver, make_order):
    """A provider owing 1000 for January and 2000 for February."""
    provider = make_provider()
    driver = make_driver(provider)
    make_order(driver, 5000, datetime(2024, 1, 15))
    make_order(driver, 10000, datetime(2024, 2, 15))
    settlement_service.recompute_unpaid_settlements(db, fee_config)
    january, february = settlement_store.list_unpaid_for(db, provider.id)
    return provider, january, february


def payment(provider, amount, payment_id="pi_001", status="succeeded"):
    return PaymentConfirmation(
        external_payment_id=payment_id,
        amount_captured=amount,
        provider_id=provider.id,
        status=status,
    )


def test_payment_applied_oldest_period_first(db, fee_config, two_periods):
    provider, january, february = two_periods

    result = reconcile_payment(db, payment(provider, 1500), fee_config)

    db.refresh(january)
    db.refresh(february)
    assert (january.amount_paid, january.is_paid) == (1000, True)
    assert january.paid_at is not None
    assert (february.amount_paid, february.is_paid) == (500, False)
    assert result.applied == 1500
    assert result.unapplied == 0
    assert [a.settlement_id for a in result.allocations] == [january.id, february.id]


def test_payment_replay_is_rejected(db, fee_config, two_periods):
    provider, january, february = two_periods
    reconcile_payment(db, payment(provider, 1500), fee_config)

    with pytest.raises(DuplicatePaymentError):
        reconcile_payment(db, payment(provider, 1500), fee_config)

    db.refresh(february)
    assert february.amount_paid == 500
    assert db.query(PaymentReceipt).count() == 1


def test_fee_change_between_payments_uses_current_due(db, fee_config, set_fees, two_periods):
    provider, january, february = two_periods
    reconcile_payment(db, payment(provider, 500, "pi_partial"), fee_config)

    # January now costs 20% + 5% of 5000
    config = set_fees(20)
    result = reconcile_payment(db, payment(provider, 750, "pi_rest"), config)

    db.refresh(january)
    assert january.is_paid is True
    assert january.amount_paid == 1250
    assert january.amount_due == 1250
    assert january.service_fee_component == 1000
    assert january.provider_commission_component == 250
    assert result.allocations[0].applied == 750


def test_paid_record_is_frozen_after_fee_change(db, fee_config, set_fees, two_periods):
    provider, january, february = two_periods
    reconcile_payment(db, payment(provider, 1000), fee_config)

    config = set_fees(30, 10)
    db.refresh(january)
    view = settlement_service.view_settlement(db, january, config)

    assert view.fees.amount_due == 1000
    assert view.amount_remaining == 0
    assert settlement_service.view_settlement(db, february, config).fees.amount_due == 4000


def test_overpayment_is_kept_unapplied(db, fee_config, two_periods):
    provider, january, february = two_periods

    result = reconcile_payment(db, payment(provider, 3500), fee_config)

    assert result.applied == 3000
    assert result.unapplied == 500
    assert settlement_store.list_unpaid_for(db, provider.id) == []
    receipt = db.query(PaymentReceipt).one()
    assert receipt.amount_captured == 3500
    assert receipt.amount_applied == 3000
    assert receipt.amount_unapplied == 500
    assert receipt.records_touched == 2


def test_payment_without_debt_is_recorded(db, fee_config, make_provider):
    provider = make_provider()

    result = reconcile_payment(db, payment(provider, 1000), fee_config)

    assert result.allocations == []
    assert result.unapplied == 1000
    assert db.query(PaymentReceipt).count() == 1


def test_other_providers_are_untouched(db, fee_config, two_periods, make_provider, make_driver, make_order):
    provider, january, february = two_periods
    other = make_provider()
    make_order(make_driver(other), 10000, datetime(2023, 12, 1))
    settlement_service.recompute_unpaid_settlements(db, fee_config)

    reconcile_payment(db, payment(provider, 1000), fee_config)

    other_records = settlement_store.list_unpaid_for(db, other.id)
    assert len(other_records) == 1
    assert other_records[0].amount_paid == 0


@pytest.mark.parametrize("status,amount", [
    ("requires_payment_method", 1500),
    ("processing", 1500),
    ("succeeded", 0),
])
def test_unconfirmed_payment_mutates_nothing(db, fee_config, two_periods, status, amount):
    provider, january, february = two_periods

    with pytest.raises(PaymentNotConfirmedError):
        reconcile_payment(db, payment(provider, amount, status=status), fee_config)

    db.refresh(january)
    assert january.amount_paid == 0
    assert db.query(PaymentReceipt).count() == 0


def test_conflict_is_retried(db, fee_config, two_periods, monkeypatch):
    provider, january, february = two_periods
    real_mark = reconciliation_service.mark_payment_applied
    calls = {"n": 0}

    def flaky(db, settlement_id, **kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            raise ConcurrentUpdateConflict(settlement_id)
        return real_mark(db, settlement_id, **kwargs)

    monkeypatch.setattr(reconciliation_service, "mark_payment_applied", flaky)

    result = reconcile_payment(db, payment(provider, 1500), fee_config)

    assert result.applied == 1500
    assert calls["n"] == 3
    db.refresh(february)
    assert february.amount_paid == 500


def test_conflict_raised_when_retries_exhausted(db, fee_config, two_periods, monkeypatch):
    provider, january, february = two_periods

    def always_conflict(db, settlement_id, **kwargs):
        raise ConcurrentUpdateConflict(settlement_id)

    monkeypatch.setattr(reconciliation_service, "mark_payment_applied", always_conflict)

    with pytest.raises(ConcurrentUpdateConflict):
        reconcile_payment(db, payment(provider, 1500), fee_config, max_attempts=2)

    db.refresh(january)
    assert january.amount_paid == 0
    assert db.query(PaymentReceipt).count() == 0


def test_covered_record_closed_by_next_payment(db, fee_config, set_fees, two_periods):
    """After fees drop below what was already paid, the next payment closes the record."""
    provider, january, february = two_periods
    reconcile_payment(db, payment(provider, 500, "pi_partial"), fee_config)

    # January now costs 5% of 5000, February 5% of 10000
    config = set_fees(5, 0)
    result = reconcile_payment(db, payment(provider, 300, "pi_next"), config)

    db.refresh(january)
    db.refresh(february)
    assert january.is_paid is True
    assert january.amount_paid == 500
    assert january.amount_due == 250
    assert (february.amount_paid, february.is_paid) == (300, False)
    assert [(a.settlement_id, a.applied) for a in result.allocations] == [(january.id, 0), (february.id, 300)]
    assert result.unapplied == 0


def test_record_without_orders_keeps_its_payment(db, fee_config, two_periods):
    provider, january, february = two_periods
    reconcile_payment(db, payment(provider, 500, "pi_partial"), fee_config)
    for order in get_orders_by_ids(db, january.order_ids):
        order.status = "cancelled"
    db.commit()
    settlement_service.recompute_unpaid_settlements(db, fee_config)
    february = settlement_store.get_unpaid_for_tuple(db, provider.id, january.driver_id, "2024-02")

    result = reconcile_payment(db, payment(provider, 2000, "pi_rest"), fee_config)

    db.refresh(january)
    assert january.is_paid is False
    assert january.amount_paid == 500
    assert [a.settlement_id for a in result.allocations] == [february.id]
