"""
Admin fee collection routes.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import Optional
from collecte.api.dependencies import get_current_admin, get_current_fee_config
from collecte.core.exceptions import SettlementAlreadyPaidError, SettlementNotFoundError
from collecte.db.session import get_db
from collecte.models.driver import Driver
from collecte.models.provider import Provider
from collecte.schemas.settlement import (
    AttachOrderResponse,
    RecomputeSummaryResponse,
    SettlementDetailResponse,
    SettlementListResponse,
    SettlementResponse,
)
from collecte.services import settlement_service, settlement_store
from collecte.services.fee_config_service import FeeConfigValues

router = APIRouter(prefix="/admin/collecte", tags=["admin-collecte"])


def load_settlement(settlement_id: int, db: Session):
    """Get a settlement or raise 404."""
    try:
        return settlement_service.get_settlement(db, settlement_id)
    except SettlementNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Settlement not found"
        )


def settlement_detail(db: Session, record, config: FeeConfigValues) -> dict:
    """Settlement with provider, driver and billed orders."""
    provider = db.query(Provider).filter(Provider.id == record.provider_id).first()
    driver = db.query(Driver).filter(Driver.id == record.driver_id).first()
    return {
        "collecte": settlement_service.view_settlement(db, record, config).to_dict(),
        "provider": {"id": provider.id, "name": provider.name} if provider else None,
        "driver": {"id": driver.id, "name": f"{driver.first_name} {driver.last_name}"} if driver else None,
        "courses": settlement_service.settlement_order_lines(db, record, config),
    }


@router.get("", response_model=SettlementListResponse)
async def list_settlements(
    is_paid: Optional[bool] = None,
    admin: dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
    config: FeeConfigValues = Depends(get_current_fee_config)
):
    """List all settlements, unpaid ones priced with the current fees."""
    records = settlement_store.list_all(db, is_paid=is_paid)
    views = settlement_service.view_settlements(db, records, config)
    return {"collectes": [view.to_dict() for view in views]}


@router.post("/recalculate", response_model=RecomputeSummaryResponse)
async def recalculate_settlements(
    admin: dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
    config: FeeConfigValues = Depends(get_current_fee_config)
):
    """Rebuild every unpaid settlement from the completed orders."""
    summary = settlement_service.recompute_unpaid_settlements(db, config)
    return {
        "created": summary.created,
        "orders_processed": summary.orders_processed,
        "orders_skipped": summary.orders_skipped,
        "total_amount": summary.total_amount,
        "closed": summary.closed,
        "message": (
            f"Recalculation done: {summary.created} settlements for "
            f"{summary.orders_processed} orders ({summary.total_amount} XPF)"
        ),
    }


@router.post("/orders/{order_id}", response_model=AttachOrderResponse)
async def attach_completed_order(
    order_id: int,
    admin: dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
    config: FeeConfigValues = Depends(get_current_fee_config)
):
    """Bill a newly completed order to its provider's current settlement."""
    try:
        result = settlement_service.record_completed_order(db, order_id, config)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )

    settlement = None
    if result.settlement is not None:
        settlement = settlement_service.view_settlement(db, result.settlement, config).to_dict()
    return {"status": result.status, "settlement": settlement}


@router.get("/{settlement_id}", response_model=SettlementDetailResponse)
async def get_settlement_detail(
    settlement_id: int,
    admin: dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
    config: FeeConfigValues = Depends(get_current_fee_config)
):
    """Get a settlement with the orders it bills."""
    record = load_settlement(settlement_id, db)
    return settlement_detail(db, record, config)


@router.patch("/{settlement_id}/paid", response_model=SettlementResponse)
async def mark_settlement_paid(
    settlement_id: int,
    admin: dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
    config: FeeConfigValues = Depends(get_current_fee_config)
):
    """Mark a settlement as collected outside card payments."""
    load_settlement(settlement_id, db)
    try:
        record = settlement_service.mark_settlement_paid(db, settlement_id, config)
    except SettlementAlreadyPaidError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Settlement is already paid"
        )
    return settlement_service.view_settlement(db, record, config).to_dict()
