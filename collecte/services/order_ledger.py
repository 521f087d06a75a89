"""
Read-only access to the order ledger and driver/provider linkage.
"""
from sqlalchemy.orm import Session
from typing import Dict, Iterable, List, Optional
from collecte.models.order import Order, ORDER_STATUS_COMPLETED
from collecte.models.driver import Driver


def get_completed_orders(db: Session, order_ids: Optional[Iterable[int]] = None) -> List[Order]:
    """Completed orders, optionally restricted to the given ids, oldest first."""
    query = db.query(Order).filter(Order.status == ORDER_STATUS_COMPLETED)
    if order_ids is not None:
        order_ids = list(order_ids)
        if not order_ids:
            return []
        query = query.filter(Order.id.in_(order_ids))
    return query.order_by(Order.created_at, Order.id).all()


def get_orders_by_ids(db: Session, order_ids: Iterable[int]) -> List[Order]:
    """Orders with the given ids regardless of status. Missing ids are ignored."""
    order_ids = list(order_ids)
    if not order_ids:
        return []
    return db.query(Order).filter(Order.id.in_(order_ids)).order_by(Order.created_at, Order.id).all()


def get_provider_for_driver(db: Session, driver_id: int) -> Optional[int]:
    """Provider id of a driver, or None when the driver is unknown or independent."""
    driver = db.query(Driver).filter(Driver.id == driver_id).first()
    if not driver:
        return None
    return driver.provider_id


def provider_resolver(db: Session):
    """Memoized driver -> provider lookup for bulk scans."""
    cache: Dict[int, Optional[int]] = {}

    def resolve(driver_id: int) -> Optional[int]:
        if driver_id not in cache:
            cache[driver_id] = get_provider_for_driver(db, driver_id)
        return cache[driver_id]

    return resolve
