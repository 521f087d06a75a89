"""
Fee configuration service: read and update the active fee percentages.
"""
from dataclasses import dataclass
from decimal import Decimal
import logging
from sqlalchemy.orm import Session
from collecte.core.config import settings
from collecte.core.exceptions import ConfigMissingError
from collecte.models.fee_config import FeeConfig, DEFAULT_FEE_CONFIG_KEY
from collecte.schemas.fee_config import UpdateFeeConfigCommand

logger = logging.getLogger(__name__)

PERCENT_MIN = Decimal(0)
PERCENT_MAX = Decimal(100)


@dataclass(frozen=True)
class FeeConfigValues:
    """Snapshot of the fee configuration, fetched once per operation."""
    service_fee_percent: Decimal
    provider_commission_percent: Decimal
    employee_commission_percent: Decimal = Decimal(0)


def clamp_percent(value) -> Decimal:
    """Clamp a percentage into [0, 100]."""
    value = Decimal(str(value))
    return min(max(value, PERCENT_MIN), PERCENT_MAX)


def _to_values(row: FeeConfig) -> FeeConfigValues:
    return FeeConfigValues(
        service_fee_percent=Decimal(str(row.service_fee_percent)),
        provider_commission_percent=Decimal(str(row.provider_commission_percent)),
        employee_commission_percent=Decimal(str(row.employee_commission_percent)),
    )


def _get_row(db: Session):
    return db.query(FeeConfig).filter(FeeConfig.key == DEFAULT_FEE_CONFIG_KEY).first()


def get_fee_config(db: Session) -> FeeConfigValues:
    """
    Return the active fee configuration.

    Raises ConfigMissingError when no configuration row exists; callers must
    never fall back to 0%.
    """
    row = _get_row(db)
    if row is None:
        logger.error("Fee configuration row is missing")
        raise ConfigMissingError()
    return _to_values(row)


def ensure_default_fee_config(db: Session) -> FeeConfigValues:
    """Create the default configuration row if it does not exist yet."""
    row = _get_row(db)
    if row is None:
        row = FeeConfig(
            key=DEFAULT_FEE_CONFIG_KEY,
            service_fee_percent=clamp_percent(settings.DEFAULT_SERVICE_FEE_PERCENT),
            provider_commission_percent=clamp_percent(settings.DEFAULT_PROVIDER_COMMISSION_PERCENT),
            employee_commission_percent=clamp_percent(settings.DEFAULT_EMPLOYEE_COMMISSION_PERCENT),
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        logger.info("Default fee configuration created")
    return _to_values(row)


def update_fee_config(db: Session, command: UpdateFeeConfigCommand) -> FeeConfigValues:
    """
    Apply a partial update. Each percentage is optional and clamped to [0, 100].

    Unpaid settlements pick up the new values on their next read; paid ones
    keep their frozen amounts.
    """
    row = _get_row(db)
    if row is None:
        raise ConfigMissingError()

    if command.service_fee_percent is not None:
        row.service_fee_percent = clamp_percent(command.service_fee_percent)
    if command.provider_commission_percent is not None:
        row.provider_commission_percent = clamp_percent(command.provider_commission_percent)
    if command.employee_commission_percent is not None:
        row.employee_commission_percent = clamp_percent(command.employee_commission_percent)

    db.commit()
    db.refresh(row)

    values = _to_values(row)
    logger.info(
        f"Fee configuration updated: service fee {values.service_fee_percent}%, "
        f"provider commission {values.provider_commission_percent}%, "
        f"employee commission {values.employee_commission_percent}%"
    )
    return values
