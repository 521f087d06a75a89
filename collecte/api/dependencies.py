"""
Shared API dependencies: bearer-token identities and the fee configuration.
"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from collecte.core.security import decode_access_token, ROLE_ADMIN, ROLE_PROVIDER
from collecte.db.session import get_db
from collecte.models.provider import Provider
from collecte.services.fee_config_service import FeeConfigValues, get_fee_config

bearer_scheme = HTTPBearer(auto_error=False)


def _decode(credentials: HTTPAuthorizationCredentials) -> dict:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return payload


def get_current_admin(credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)) -> dict:
    """Require an admin token."""
    payload = _decode(credentials)
    if payload.get("role") != ROLE_ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return payload


def get_current_provider(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> Provider:
    """Require a provider token and load the active provider."""
    payload = _decode(credentials)
    if payload.get("role") != ROLE_PROVIDER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Provider access required"
        )

    provider = db.query(Provider).filter(Provider.id == payload.get("provider_id")).first()
    if not provider or not provider.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Provider account not found or inactive"
        )
    return provider


def get_current_fee_config(db: Session = Depends(get_db)) -> FeeConfigValues:
    """Fee configuration snapshot for the current request."""
    return get_fee_config(db)
