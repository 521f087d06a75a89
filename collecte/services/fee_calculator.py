"""
Fee calculation and aggregation of completed orders into settlement groups.

Pure functions: no database access. The fee configuration is passed in
explicitly so the same orders can be priced under several configurations.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Tuple
import logging
from collecte.core.exceptions import ConfigMissingError
from collecte.core.utils import round_half_up, period_key
from collecte.services.fee_config_service import FeeConfigValues

logger = logging.getLogger(__name__)

HUNDRED = Decimal(100)

# (provider_id, driver_id, period)
SettlementKey = Tuple[int, int, str]


@dataclass(frozen=True)
class FeeBreakdown:
    """Amount due split into its two fee categories (minor currency units)."""
    service_fee: int = 0
    provider_commission: int = 0

    @property
    def amount_due(self) -> int:
        return self.service_fee + self.provider_commission

    def __add__(self, other: "FeeBreakdown") -> "FeeBreakdown":
        return FeeBreakdown(
            service_fee=self.service_fee + other.service_fee,
            provider_commission=self.provider_commission + other.provider_commission,
        )


@dataclass
class SettlementGroup:
    """Orders of one driver for one provider in one period, with their fees."""
    provider_id: int
    driver_id: int
    period: str
    order_ids: List[int] = field(default_factory=list)
    fees: FeeBreakdown = FeeBreakdown()

    @property
    def key(self) -> SettlementKey:
        return (self.provider_id, self.driver_id, self.period)


@dataclass
class AggregationResult:
    """Groups built from a scan of completed orders."""
    groups: Dict[SettlementKey, SettlementGroup] = field(default_factory=dict)
    orders_processed: int = 0
    orders_skipped: int = 0

    @property
    def total_amount(self) -> int:
        return sum(group.fees.amount_due for group in self.groups.values())


def _require_config(config: Optional[FeeConfigValues]) -> FeeConfigValues:
    if config is None:
        raise ConfigMissingError()
    return config


def compute_order_fees(total_price: int, config: FeeConfigValues) -> FeeBreakdown:
    """
    Fees owed on one order.

    Both components are taken from the order total independently (never
    compounded) and rounded half-up to a whole currency unit.
    """
    config = _require_config(config)
    price = Decimal(total_price)
    return FeeBreakdown(
        service_fee=round_half_up(price * config.service_fee_percent / HUNDRED),
        provider_commission=round_half_up(price * config.provider_commission_percent / HUNDRED),
    )


def compute_due(orders: Iterable, config: FeeConfigValues) -> FeeBreakdown:
    """Sum of per-order fees. Each order is rounded before summing."""
    config = _require_config(config)
    total = FeeBreakdown()
    for order in orders:
        total = total + compute_order_fees(order.total_price, config)
    return total


def group_orders(
    orders: Iterable,
    resolve_provider: Callable[[int], Optional[int]],
    config: FeeConfigValues,
) -> AggregationResult:
    """
    Group completed orders by (provider, driver, period).

    Orders without a driver, or whose driver has no provider, are skipped
    and counted rather than failing the whole aggregation.
    """
    config = _require_config(config)
    result = AggregationResult()

    for order in orders:
        driver_id = order.assigned_driver_id
        if driver_id is None:
            logger.debug(f"Order {order.id} skipped: no assigned driver")
            result.orders_skipped += 1
            continue

        provider_id = resolve_provider(driver_id)
        if provider_id is None:
            logger.info(f"Order {order.id} skipped: driver {driver_id} has no provider")
            result.orders_skipped += 1
            continue

        period = period_key(order.created_at)
        key = (provider_id, driver_id, period)
        group = result.groups.get(key)
        if group is None:
            group = SettlementGroup(provider_id=provider_id, driver_id=driver_id, period=period)
            result.groups[key] = group

        group.order_ids.append(order.id)
        group.fees = group.fees + compute_order_fees(order.total_price, config)
        result.orders_processed += 1

    return result
