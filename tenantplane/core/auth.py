"""
Password hashing and JWT utilities
"""

from datetime import timedelta
from jose import JWTError, jwt
from passlib.context import CryptContext
from typing import Dict, Optional
import uuid

from tenantplane.core.config import Settings
from tenantplane.core.timeutils import utcnow

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(
    settings: Settings,
    user_id: int,
    tenant_id: uuid.UUID,
    role: str,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create JWT access token with user and tenant claims"""
    if expires_delta:
        expire = utcnow() + expires_delta
    else:
        expire = utcnow() + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {
        "sub": str(user_id),
        "tenant_id": str(tenant_id),
        "role": role,
        "exp": expire,
        "iat": utcnow(),
    }

    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(settings: Settings, token: str) -> Optional[Dict]:
    """Decode and validate JWT token"""
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
