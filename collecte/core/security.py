"""
Security utilities for JWT authentication and access code hashing.
"""
from datetime import datetime, timedelta
from typing import Optional
import hashlib
import bcrypt
from jose import JWTError, jwt
from collecte.core.config import settings

ROLE_ADMIN = "admin"
ROLE_PROVIDER = "provider"


def _pre_hash_secret(secret: str) -> bytes:
    """
    Pre-hash a secret with SHA256 so bcrypt never sees more than 72 bytes.
    """
    return hashlib.sha256(secret.encode('utf-8')).digest()


def verify_access_code(plain_code: str, code_hash: str) -> bool:
    """Verify a provider access code against its stored hash."""
    pre_hashed = _pre_hash_secret(plain_code)
    return bcrypt.checkpw(pre_hashed, code_hash.encode('utf-8'))


def hash_access_code(code: str) -> str:
    """Hash a provider access code for storage."""
    pre_hashed = _pre_hash_secret(code)
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(pre_hashed, salt)
    return hashed.decode('utf-8')


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt


def decode_access_token(token: str) -> Optional[dict]:
    """Decode and verify a JWT token."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return payload
    except JWTError:
        return None
