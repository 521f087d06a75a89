"""
Pydantic schemas for the fee configuration.
"""
from pydantic import BaseModel, Field, model_validator
from typing import Optional, Annotated
from decimal import Decimal

Percent = Annotated[Decimal, Field(ge=0, le=100)]


class UpdateFeeConfigCommand(BaseModel):
    """Partial update: every percentage is optional, each within [0, 100]."""
    service_fee_percent: Optional[Percent] = None
    provider_commission_percent: Optional[Percent] = None
    employee_commission_percent: Optional[Percent] = None

    @model_validator(mode="after")
    def check_not_empty(self):
        """Reject an update that sets nothing."""
        if (
            self.service_fee_percent is None
            and self.provider_commission_percent is None
            and self.employee_commission_percent is None
        ):
            raise ValueError("At least one percentage must be provided")
        return self


class FeeConfigResponse(BaseModel):
    """Schema for fee configuration response."""
    service_fee_percent: Decimal
    provider_commission_percent: Decimal
    employee_commission_percent: Decimal

    class Config:
        from_attributes = True
