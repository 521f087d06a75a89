"""
Tests for the settlement record store.
"""
from datetime import datetime
import pytest
from sqlalchemy.exc import IntegrityError
from collecte.core.exceptions import ConcurrentUpdateConflict
from collecte.models import SettlementOrder, SettlementRecord
from collecte.services import settlement_store
from collecte.services.fee_calculator import FeeBreakdown


@pytest.fixture
def linked(make_provider, make_driver, make_order):
    provider = make_provider()
    driver = make_driver(provider)
    orders = [make_order(driver) for _ in range(3)]
    return provider, driver, orders


def test_upsert_creates_then_replaces_unpaid_record(db, linked):
    provider, driver, orders = linked

    first = settlement_store.upsert_unpaid(
        db, provider.id, driver.id, "2024-03", [orders[0].id], FeeBreakdown(1500, 500)
    )
    db.commit()
    second = settlement_store.upsert_unpaid(
        db, provider.id, driver.id, "2024-03", [orders[0].id, orders[1].id], FeeBreakdown(3000, 1000)
    )
    db.commit()

    assert second.id == first.id
    assert second.order_ids == [orders[0].id, orders[1].id]
    assert second.amount_due == 4000
    assert len(settlement_store.list_unpaid_for(db, provider.id)) == 1


def test_order_cannot_be_linked_twice(db, linked):
    provider, driver, orders = linked
    settlement_store.upsert_unpaid(db, provider.id, driver.id, "2024-03", [orders[0].id], FeeBreakdown(1500, 500))
    db.commit()

    db.add(SettlementOrder(settlement_id=1, order_id=orders[0].id))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_list_unpaid_oldest_period_first(db, linked):
    provider, driver, orders = linked
    for period, order in [("2024-03", orders[0]), ("2024-01", orders[1]), ("2024-02", orders[2])]:
        settlement_store.upsert_unpaid(db, provider.id, driver.id, period, [order.id], FeeBreakdown(100, 0))
    db.commit()

    periods = [r.period for r in settlement_store.list_unpaid_for(db, provider.id)]
    assert periods == ["2024-01", "2024-02", "2024-03"]
    periods = [r.period for r in settlement_store.list_all_for(db, provider.id)]
    assert periods == ["2024-03", "2024-02", "2024-01"]


def test_mark_payment_applied_freezes_on_paid(db, linked):
    provider, driver, orders = linked
    record = settlement_store.upsert_unpaid(
        db, provider.id, driver.id, "2024-03", [orders[0].id], FeeBreakdown(1500, 500)
    )
    db.commit()
    paid_at = datetime(2024, 4, 2, 9, 30)

    settlement_store.mark_payment_applied(
        db, record.id, expected_amount_paid=0, additional_amount_paid=2400,
        is_paid=True, paid_at=paid_at, frozen=FeeBreakdown(1800, 600)
    )
    db.commit()
    db.refresh(record)

    assert record.is_paid is True
    assert record.amount_paid == 2400
    assert record.amount_due == 2400
    assert record.service_fee_component == 1800
    assert record.provider_commission_component == 600
    assert record.paid_at == paid_at


def test_mark_payment_applied_compare_and_set(db, linked):
    """A writer holding a stale amount_paid loses."""
    provider, driver, orders = linked
    record = settlement_store.upsert_unpaid(
        db, provider.id, driver.id, "2024-03", [orders[0].id], FeeBreakdown(1500, 500)
    )
    db.commit()

    settlement_store.mark_payment_applied(db, record.id, 0, 500, is_paid=False)
    db.commit()

    with pytest.raises(ConcurrentUpdateConflict):
        settlement_store.mark_payment_applied(db, record.id, 0, 500, is_paid=False)
    db.rollback()

    db.refresh(record)
    assert record.amount_paid == 500


def test_paid_record_cannot_receive_payments(db, linked):
    provider, driver, orders = linked
    record = settlement_store.upsert_unpaid(
        db, provider.id, driver.id, "2024-03", [orders[0].id], FeeBreakdown(1500, 500)
    )
    db.commit()
    settlement_store.mark_payment_applied(db, record.id, 0, 2000, is_paid=True, frozen=FeeBreakdown(1500, 500))
    db.commit()

    with pytest.raises(ConcurrentUpdateConflict):
        settlement_store.mark_payment_applied(db, record.id, 2000, 100, is_paid=False)
    db.rollback()


def test_reset_unpaid_keeps_paid(db, linked):
    provider, driver, orders = linked
    paid = settlement_store.upsert_unpaid(
        db, provider.id, driver.id, "2024-01", [orders[0].id], FeeBreakdown(1500, 500)
    )
    db.commit()
    settlement_store.mark_payment_applied(db, paid.id, 0, 2000, is_paid=True, frozen=FeeBreakdown(1500, 500))
    settlement_store.upsert_unpaid(db, provider.id, driver.id, "2024-02", [orders[1].id], FeeBreakdown(1500, 500))
    db.commit()

    deleted, kept = settlement_store.reset_unpaid(db)
    db.commit()

    assert deleted == 1
    assert kept == []
    remaining = settlement_store.list_all_for(db, provider.id)
    assert [r.id for r in remaining] == [paid.id]
    assert settlement_store.billed_order_ids(db) == {orders[0].id}
    assert settlement_store.billed_order_ids(db, paid_only=True) == {orders[0].id}


def test_reset_unpaid_keeps_partly_paid_records(db, linked):
    provider, driver, orders = linked
    record = settlement_store.upsert_unpaid(
        db, provider.id, driver.id, "2024-03", [orders[0].id, orders[1].id], FeeBreakdown(3000, 1000)
    )
    db.commit()
    settlement_store.mark_payment_applied(db, record.id, 0, 500, is_paid=False)
    db.commit()

    deleted, kept = settlement_store.reset_unpaid(db)

    assert deleted == 0
    assert [r.id for r in kept] == [record.id]
    assert record.order_ids == []
    assert record.amount_paid == 500
    assert settlement_store.get_unpaid_for_tuple(db, provider.id, driver.id, "2024-03") is record


def test_one_open_record_per_tuple(db, linked):
    """The database refuses a second unpaid record for the same tuple."""
    provider, driver, orders = linked
    settlement_store.upsert_unpaid(db, provider.id, driver.id, "2024-03", [orders[0].id], FeeBreakdown(1500, 500))
    db.commit()

    db.add(SettlementRecord(
        provider_id=provider.id,
        driver_id=driver.id,
        period="2024-03",
        amount_paid=0,
        is_paid=False,
        open_key=SettlementRecord.open_key_for(provider.id, driver.id, "2024-03"),
    ))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_paid_record_releases_its_tuple(db, linked):
    provider, driver, orders = linked
    paid = settlement_store.upsert_unpaid(
        db, provider.id, driver.id, "2024-03", [orders[0].id], FeeBreakdown(1500, 500)
    )
    db.commit()
    settlement_store.mark_payment_applied(db, paid.id, 0, 2000, is_paid=True, frozen=FeeBreakdown(1500, 500))
    db.commit()

    fresh = settlement_store.upsert_unpaid(
        db, provider.id, driver.id, "2024-03", [orders[1].id], FeeBreakdown(1500, 500)
    )
    db.commit()
    db.refresh(paid)

    assert paid.open_key is None
    assert paid.updated_at is not None
    assert paid.paid_at is not None
    assert fresh.id != paid.id
    assert fresh.open_key == f"{provider.id}:{driver.id}:2024-03"
