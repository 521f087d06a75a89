"""
Settlement record store.

Functions here flush but never commit: the calling service owns the
transaction so multi-record operations stay atomic.
"""
from datetime import datetime
from typing import Iterable, List, Optional, Set, Tuple
import logging
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session
from collecte.core.exceptions import ConcurrentUpdateConflict
from collecte.models.settlement import SettlementRecord, SettlementOrder
from collecte.services.fee_calculator import FeeBreakdown

logger = logging.getLogger(__name__)


def list_unpaid_for(db: Session, provider_id: int) -> List[SettlementRecord]:
    """Unpaid records of a provider, oldest period first (payment allocation order)."""
    return db.query(SettlementRecord).filter(
        SettlementRecord.provider_id == provider_id,
        SettlementRecord.is_paid == False  # noqa: E712
    ).order_by(
        SettlementRecord.period,
        SettlementRecord.created_at,
        SettlementRecord.id
    ).all()


def list_all_for(db: Session, provider_id: int) -> List[SettlementRecord]:
    """All records of a provider, newest first."""
    return db.query(SettlementRecord).filter(
        SettlementRecord.provider_id == provider_id
    ).order_by(
        SettlementRecord.period.desc(),
        SettlementRecord.created_at.desc(),
        SettlementRecord.id.desc()
    ).all()


def list_all(db: Session, is_paid: Optional[bool] = None) -> List[SettlementRecord]:
    """All records, newest first, optionally filtered by paid status."""
    query = db.query(SettlementRecord)
    if is_paid is not None:
        query = query.filter(SettlementRecord.is_paid == is_paid)
    return query.order_by(
        SettlementRecord.period.desc(),
        SettlementRecord.created_at.desc(),
        SettlementRecord.id.desc()
    ).all()


def get_by_id(db: Session, settlement_id: int) -> Optional[SettlementRecord]:
    return db.query(SettlementRecord).filter(SettlementRecord.id == settlement_id).first()


def get_unpaid_for_tuple(db: Session, provider_id: int, driver_id: int, period: str) -> Optional[SettlementRecord]:
    """The unique unpaid record of a (provider, driver, period) tuple, if any."""
    return db.query(SettlementRecord).filter(
        SettlementRecord.open_key == SettlementRecord.open_key_for(provider_id, driver_id, period)
    ).first()


def billed_order_ids(db: Session, paid_only: bool = False) -> Set[int]:
    """Order ids already linked to a settlement record."""
    query = select(SettlementOrder.order_id)
    if paid_only:
        query = query.join(
            SettlementRecord, SettlementOrder.settlement_id == SettlementRecord.id
        ).where(SettlementRecord.is_paid == True)  # noqa: E712
    return set(db.execute(query).scalars().all())


def upsert_unpaid(
    db: Session,
    provider_id: int,
    driver_id: int,
    period: str,
    order_ids: Iterable[int],
    fees: FeeBreakdown,
) -> SettlementRecord:
    """
    Create or replace the unpaid record of a tuple.

    This is the only path that changes amount_due while a record is unpaid.
    A concurrent insert for the same tuple fails on the unique open_key at flush.
    """
    order_ids = list(dict.fromkeys(order_ids))
    record = get_unpaid_for_tuple(db, provider_id, driver_id, period)
    if record is None:
        record = SettlementRecord(
            provider_id=provider_id,
            driver_id=driver_id,
            period=period,
            amount_paid=0,
            is_paid=False,
            open_key=SettlementRecord.open_key_for(provider_id, driver_id, period),
        )
        db.add(record)

    # Keep existing links so a re-linked order never hits the unique constraint
    wanted = set(order_ids)
    current = {link.order_id: link for link in record.order_links}
    for order_id, link in current.items():
        if order_id not in wanted:
            record.order_links.remove(link)
    for order_id in order_ids:
        if order_id not in current:
            record.order_links.append(SettlementOrder(order_id=order_id))

    record.service_fee_component = fees.service_fee
    record.provider_commission_component = fees.provider_commission
    record.amount_due = fees.amount_due
    db.flush()
    return record


def mark_payment_applied(
    db: Session,
    settlement_id: int,
    expected_amount_paid: int,
    additional_amount_paid: int,
    is_paid: bool,
    paid_at: Optional[datetime] = None,
    frozen: Optional[FeeBreakdown] = None,
    marked_by_admin: bool = False,
) -> None:
    """
    Add a payment to a record with compare-and-set on amount_paid.

    The write only succeeds if the stored amount_paid still equals
    expected_amount_paid and the record is still unpaid; otherwise
    ConcurrentUpdateConflict is raised. A record becoming paid stores the
    frozen amounts it was settled at.
    """
    if is_paid and frozen is None:
        raise ValueError("Frozen amounts are required when a settlement becomes paid")

    values = {
        "amount_paid": expected_amount_paid + additional_amount_paid,
        "is_paid": is_paid,
        "updated_at": func.now(),
    }
    if is_paid:
        values.update({
            "amount_due": frozen.amount_due,
            "service_fee_component": frozen.service_fee,
            "provider_commission_component": frozen.provider_commission,
            "paid_at": paid_at if paid_at is not None else func.now(),
            "open_key": None,
        })
    if marked_by_admin:
        values["marked_by_admin_at"] = func.now()

    result = db.execute(
        update(SettlementRecord)
        .where(
            SettlementRecord.id == settlement_id,
            SettlementRecord.amount_paid == expected_amount_paid,
            SettlementRecord.is_paid == False  # noqa: E712
        )
        .values(**values)
    )
    if result.rowcount != 1:
        logger.warning(f"Compare-and-set failed on settlement {settlement_id}")
        raise ConcurrentUpdateConflict(settlement_id)


def reset_unpaid(db: Session) -> Tuple[int, List[SettlementRecord]]:
    """
    Clear unpaid state before a rebuild.

    Order links of every unpaid record are removed. Unpaid records with no
    payment yet are deleted; partly paid ones are kept (with their
    amount_paid and open_key) so the rebuild can reuse them.
    Returns the number of deleted records and the kept records.
    """
    unpaid_ids = select(SettlementRecord.id).where(SettlementRecord.is_paid == False)  # noqa: E712
    kept = db.query(SettlementRecord).filter(
        SettlementRecord.is_paid == False,  # noqa: E712
        SettlementRecord.amount_paid > 0
    ).all()

    db.query(SettlementOrder).filter(
        SettlementOrder.settlement_id.in_(unpaid_ids)
    ).delete(synchronize_session="fetch")
    deleted = db.query(SettlementRecord).filter(
        SettlementRecord.is_paid == False,  # noqa: E712
        SettlementRecord.amount_paid == 0
    ).delete(synchronize_session="fetch")

    for record in kept:
        db.expire(record, ["order_links"])
    return deleted, kept
