"""Token verification for the control API"""
from datetime import datetime, timedelta
from typing import Optional
import secrets

from jose import jwt, JWTError

from lien_sync.config import settings
from lien_sync.exceptions import AuthenticationError


def create_access_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token for an operator"""
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {"sub": subject, "exp": expire, "type": "access"}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate JWT token"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise AuthenticationError(message="Invalid or expired token")

    if payload.get("type") != "access" or not payload.get("sub"):
        raise AuthenticationError(message="Invalid token")
    return payload


def verify_automation_token(token: Optional[str]) -> None:
    """Check the shared secret sent by the external cron trigger"""
    expected = settings.AUTOMATION_TOKEN
    if not expected:
        raise AuthenticationError(message="Scheduled trigger is disabled: AUTOMATION_TOKEN is not set")
    if not token or not secrets.compare_digest(token, expected):
        raise AuthenticationError(message="Invalid automation token")
