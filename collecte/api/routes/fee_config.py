"""
Fee configuration routes (admin).
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from collecte.api.dependencies import get_current_admin, get_current_fee_config
from collecte.db.session import get_db
from collecte.schemas.fee_config import FeeConfigResponse, UpdateFeeConfigCommand
from collecte.services.fee_config_service import FeeConfigValues, update_fee_config

router = APIRouter(prefix="/admin/fee-config", tags=["fee-config"])


@router.get("", response_model=FeeConfigResponse)
async def get_fee_config(
    admin: dict = Depends(get_current_admin),
    config: FeeConfigValues = Depends(get_current_fee_config)
):
    """Get the active fee percentages."""
    return config


@router.put("", response_model=FeeConfigResponse)
async def put_fee_config(
    command: UpdateFeeConfigCommand,
    admin: dict = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """Update one or more fee percentages. Unpaid settlements follow the new values."""
    return update_fee_config(db, command)
