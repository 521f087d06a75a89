"""
Pydantic schemas for dashboard authentication.
"""
from pydantic import BaseModel, Field


class AdminLogin(BaseModel):
    """Schema for admin login."""
    password: str


class ProviderLogin(BaseModel):
    """Schema for provider login with its 6-digit access code."""
    provider_id: int
    code: str = Field(pattern=r"^\d{6}$")


class Token(BaseModel):
    """Schema for JWT token response."""
    access_token: str
    token_type: str = "bearer"
