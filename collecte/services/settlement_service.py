"""
Settlement service: fee collection owed by providers to the platform.

Unpaid settlements are always priced from their orders and the current fee
configuration; paid settlements keep the amounts frozen when they were paid.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional
import logging
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from collecte.core.config import settings
from collecte.core.exceptions import (
    ConfigMissingError,
    ConcurrentUpdateConflict,
    SettlementAlreadyPaidError,
    SettlementNotFoundError,
)
from collecte.core.utils import period_key, round_half_up
from collecte.models.order import Order
from collecte.models.settlement import SettlementOrder, SettlementRecord
from collecte.services.fee_calculator import FeeBreakdown, compute_due, compute_order_fees, group_orders
from collecte.services.fee_config_service import FeeConfigValues
from collecte.services.order_ledger import (
    get_completed_orders,
    get_orders_by_ids,
    get_provider_for_driver,
    provider_resolver,
)
from collecte.services import settlement_store

logger = logging.getLogger(__name__)

PAYMENT_OPTION_FULL = "full"
PAYMENT_OPTION_HALF = "half"

ATTACH_CREATED = "created"
ATTACH_UPDATED = "updated"
ATTACH_ALREADY_BILLED = "already_billed"
ATTACH_NOT_COMPLETED = "not_completed"
ATTACH_UNRESOLVED = "unresolved_driver"


# ---------------------------------------------------------------------------
# Amount resolution
# ---------------------------------------------------------------------------

def frozen_amounts(record: SettlementRecord) -> FeeBreakdown:
    """Amounts stored on a paid record. Never recomputed."""
    return FeeBreakdown(
        service_fee=record.service_fee_component,
        provider_commission=record.provider_commission_component,
    )


def live_amounts(db: Session, order_ids: Iterable[int], config: FeeConfigValues) -> FeeBreakdown:
    """Price the given orders under the current configuration."""
    if config is None:
        raise ConfigMissingError()
    return compute_due(get_orders_by_ids(db, order_ids), config)


def resolve_amounts(db: Session, record: SettlementRecord, config: FeeConfigValues) -> FeeBreakdown:
    """Amounts to show or collect for a record: frozen when paid, live otherwise."""
    if record.is_paid:
        return frozen_amounts(record)
    return live_amounts(db, record.order_ids, config)


@dataclass
class SettlementView:
    """A settlement record with its resolved amounts."""
    record: SettlementRecord
    fees: FeeBreakdown

    @property
    def amount_remaining(self) -> int:
        return max(0, self.fees.amount_due - self.record.amount_paid)

    def to_dict(self) -> dict:
        record = self.record
        return {
            "id": record.id,
            "provider_id": record.provider_id,
            "driver_id": record.driver_id,
            "period": record.period,
            "amount_due": self.fees.amount_due,
            "service_fee_component": self.fees.service_fee,
            "provider_commission_component": self.fees.provider_commission,
            "amount_paid": record.amount_paid,
            "amount_remaining": self.amount_remaining,
            "is_paid": record.is_paid,
            "order_ids": record.order_ids,
            "paid_at": record.paid_at,
            "marked_by_admin_at": record.marked_by_admin_at,
            "created_at": record.created_at,
        }


def view_settlement(db: Session, record: SettlementRecord, config: FeeConfigValues) -> SettlementView:
    return SettlementView(record=record, fees=resolve_amounts(db, record, config))


def view_settlements(db: Session, records: List[SettlementRecord], config: FeeConfigValues) -> List[SettlementView]:
    return [view_settlement(db, record, config) for record in records]


def settlement_order_lines(db: Session, record: SettlementRecord, config: FeeConfigValues) -> List[dict]:
    """
    Orders billed by a record. Per-order fees are only given for unpaid
    records: a paid record's breakdown is its frozen total.
    """
    lines = []
    for order in get_orders_by_ids(db, record.order_ids):
        line = {
            "id": order.id,
            "created_at": order.created_at,
            "client_name": order.client_name,
            "total_price": order.total_price,
            "payment_method": order.payment_method,
            "status": order.status,
            "service_fee": None,
            "provider_commission": None,
        }
        if not record.is_paid:
            fees = compute_order_fees(order.total_price, config)
            line["service_fee"] = fees.service_fee
            line["provider_commission"] = fees.provider_commission
        lines.append(line)
    return lines


def is_covered(record: SettlementRecord, fees: FeeBreakdown) -> bool:
    """
    An unpaid record whose live amount is already met by what was paid,
    typically after fees were lowered following a partial payment.
    """
    return record.amount_paid > 0 and 0 < fees.amount_due <= record.amount_paid


def close_covered_settlements(db: Session, config: FeeConfigValues, provider_id: Optional[int] = None) -> int:
    """
    Mark covered unpaid records as paid at their live amount. Flushes only.

    Any surplus over the live amount stays in amount_paid and is logged.
    """
    query = db.query(SettlementRecord).filter(
        SettlementRecord.is_paid == False,  # noqa: E712
        SettlementRecord.amount_paid > 0
    )
    if provider_id is not None:
        query = query.filter(SettlementRecord.provider_id == provider_id)

    closed = 0
    for record in query.all():
        fees = live_amounts(db, record.order_ids, config)
        if not is_covered(record, fees):
            continue
        settlement_store.mark_payment_applied(
            db,
            settlement_id=record.id,
            expected_amount_paid=record.amount_paid,
            additional_amount_paid=0,
            is_paid=True,
            frozen=fees,
        )
        closed += 1
        surplus = record.amount_paid - fees.amount_due
        if surplus > 0:
            logger.warning(f"Settlement {record.id} closed with {surplus} XPF paid above its current amount")
        else:
            logger.info(f"Settlement {record.id} closed: already covered by previous payments")
    return closed


def get_settlement(db: Session, settlement_id: int) -> SettlementRecord:
    record = settlement_store.get_by_id(db, settlement_id)
    if not record:
        raise SettlementNotFoundError(settlement_id)
    return record


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

@dataclass
class AttachResult:
    """Outcome of attaching one completed order to its settlement."""
    status: str
    settlement: Optional[SettlementRecord] = None


def record_completed_order(
    db: Session,
    order_id: int,
    config: FeeConfigValues,
    max_attempts: Optional[int] = None,
) -> AttachResult:
    """
    Append a newly completed order to the unpaid settlement of its
    (provider, driver, period), creating the settlement if needed.

    Losing an insert race (same order, or a second open record for the
    tuple) rolls back and retries against the winner's state.
    """
    if config is None:
        raise ConfigMissingError()

    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise ValueError("Order not found")

    attempts = max_attempts or settings.RECONCILE_MAX_RETRIES
    for attempt in range(1, attempts + 1):
        if db.query(SettlementOrder).filter(SettlementOrder.order_id == order_id).first():
            return AttachResult(status=ATTACH_ALREADY_BILLED)

        if not order.is_completed:
            return AttachResult(status=ATTACH_NOT_COMPLETED)

        provider_id = None
        if order.assigned_driver_id is not None:
            provider_id = get_provider_for_driver(db, order.assigned_driver_id)
        if provider_id is None:
            logger.info(f"Order {order_id} not billed: driver {order.assigned_driver_id} has no provider")
            return AttachResult(status=ATTACH_UNRESOLVED)

        period = period_key(order.created_at)
        existing = settlement_store.get_unpaid_for_tuple(db, provider_id, order.assigned_driver_id, period)
        order_ids = (existing.order_ids if existing else []) + [order.id]

        try:
            record = settlement_store.upsert_unpaid(
                db,
                provider_id=provider_id,
                driver_id=order.assigned_driver_id,
                period=period,
                order_ids=order_ids,
                fees=live_amounts(db, order_ids, config),
            )
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info(f"Settlement of order {order_id} changed concurrently (attempt {attempt}/{attempts})")
            continue

        db.refresh(record)
        logger.info(
            f"Order {order_id} added to settlement {record.id} "
            f"(provider {provider_id}, driver {order.assigned_driver_id}, period {period}), "
            f"amount due {record.amount_due} XPF"
        )
        return AttachResult(status=ATTACH_UPDATED if existing else ATTACH_CREATED, settlement=record)

    raise ConcurrentUpdateConflict()


@dataclass
class RecomputeSummary:
    created: int
    orders_processed: int
    orders_skipped: int
    total_amount: int
    closed: int = 0


def recompute_unpaid_settlements(db: Session, config: FeeConfigValues) -> RecomputeSummary:
    """
    Rebuild every unpaid settlement from the order ledger.

    Unpaid records are regenerated in one transaction; paid records and the
    orders they bill are left alone. Partly paid records keep their row and
    amount_paid and are refilled with the orders of their tuple.
    """
    if config is None:
        raise ConfigMissingError()

    logger.info("Recalculating unpaid settlements from completed orders")
    try:
        deleted, kept = settlement_store.reset_unpaid(db)

        paid_order_ids = settlement_store.billed_order_ids(db, paid_only=True)
        orders = [order for order in get_completed_orders(db) if order.id not in paid_order_ids]
        aggregation = group_orders(orders, provider_resolver(db), config)

        groups = sorted(
            aggregation.groups.values(),
            key=lambda g: (g.period, g.provider_id, g.driver_id)
        )
        for group in groups:
            settlement_store.upsert_unpaid(
                db,
                provider_id=group.provider_id,
                driver_id=group.driver_id,
                period=group.period,
                order_ids=group.order_ids,
                fees=group.fees,
            )

        for record in kept:
            if record.order_links:
                continue
            # No billable order left for the tuple: the payment stays on record
            record.service_fee_component = 0
            record.provider_commission_component = 0
            record.amount_due = 0
            logger.warning(
                f"Settlement {record.id} has no orders left but keeps {record.amount_paid} XPF paid"
            )
        db.flush()

        closed = close_covered_settlements(db, config)
        db.commit()
    except Exception:
        db.rollback()
        logger.error("Settlement recalculation failed, changes rolled back", exc_info=True)
        raise

    summary = RecomputeSummary(
        created=len(groups),
        orders_processed=aggregation.orders_processed,
        orders_skipped=aggregation.orders_skipped,
        total_amount=aggregation.total_amount,
        closed=closed,
    )
    logger.info(
        f"Settlements recalculated: {deleted} unpaid removed, {len(kept)} partly paid kept, "
        f"{summary.created} built, {summary.closed} closed, "
        f"{summary.orders_processed} orders, {summary.orders_skipped} skipped, "
        f"{summary.total_amount} XPF total"
    )
    return summary


# ---------------------------------------------------------------------------
# Manual settlement and balances
# ---------------------------------------------------------------------------

def mark_settlement_paid(db: Session, settlement_id: int, config: FeeConfigValues) -> SettlementRecord:
    """
    Close a settlement collected outside the card flow (cash, transfer).

    The live amount is frozen and recorded as fully paid.
    """
    record = get_settlement(db, settlement_id)
    if record.is_paid:
        raise SettlementAlreadyPaidError(settlement_id)

    fees = live_amounts(db, record.order_ids, config)
    try:
        settlement_store.mark_payment_applied(
            db,
            settlement_id=record.id,
            expected_amount_paid=record.amount_paid,
            additional_amount_paid=max(0, fees.amount_due - record.amount_paid),
            is_paid=True,
            frozen=fees,
            marked_by_admin=True,
        )
        db.commit()
    except ConcurrentUpdateConflict:
        db.rollback()
        raise

    db.refresh(record)
    logger.info(f"Settlement {settlement_id} marked paid by admin: {record.amount_due} XPF")
    return record


@dataclass
class OutstandingBalance:
    total_due: int
    total_paid: int
    remaining: int
    unpaid_count: int


def provider_outstanding(db: Session, provider_id: int, config: FeeConfigValues) -> OutstandingBalance:
    """What a provider still owes, priced live."""
    views = view_settlements(db, settlement_store.list_unpaid_for(db, provider_id), config)
    return OutstandingBalance(
        total_due=sum(view.fees.amount_due for view in views),
        total_paid=sum(view.record.amount_paid for view in views),
        remaining=sum(view.amount_remaining for view in views),
        unpaid_count=len(views),
    )


def payment_intent_amount(remaining: int, option: str) -> int:
    """Amount to charge for a full or half payment of the outstanding balance."""
    if option == PAYMENT_OPTION_HALF:
        return round_half_up(Decimal(remaining) / 2)
    if option == PAYMENT_OPTION_FULL:
        return remaining
    raise ValueError(f"Unknown payment option: {option}")
