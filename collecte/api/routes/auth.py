"""
Authentication routes for the admin and provider dashboards.
"""
import secrets
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from collecte.core.config import settings
from collecte.core.security import verify_access_code, create_access_token, ROLE_ADMIN, ROLE_PROVIDER
from collecte.db.session import get_db
from collecte.models.provider import Provider
from collecte.schemas.auth import AdminLogin, ProviderLogin, Token

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/admin/login", response_model=Token)
async def admin_login(credentials: AdminLogin):
    """Login to the admin dashboard with the static admin password."""
    if not settings.ADMIN_PASSWORD or not secrets.compare_digest(
        credentials.password.encode("utf-8"), settings.ADMIN_PASSWORD.encode("utf-8")
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect password"
        )

    access_token = create_access_token(data={"sub": "admin", "role": ROLE_ADMIN})
    return {"access_token": access_token, "token_type": "bearer"}


@router.post("/provider/login", response_model=Token)
async def provider_login(credentials: ProviderLogin, db: Session = Depends(get_db)):
    """Login to the provider dashboard with the 6-digit access code."""
    provider = db.query(Provider).filter(Provider.id == credentials.provider_id).first()

    if not provider or not verify_access_code(credentials.code, provider.code_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect provider or code"
        )

    if not provider.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Provider account is inactive"
        )

    access_token = create_access_token(
        data={"sub": f"provider:{provider.id}", "role": ROLE_PROVIDER, "provider_id": provider.id}
    )
    return {"access_token": access_token, "token_type": "bearer"}
