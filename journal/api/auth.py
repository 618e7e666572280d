"""
Bearer-token authentication.

Tokens are HS256 JWTs whose `sub` claim carries the user id.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from config.settings import get_settings
from journal.core.exceptions import AuthenticationError
from journal.models.base import get_db
from journal.models.users import User
from journal.utils.logging import get_logger

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(user_id: int, expires_minutes: Optional[int] = None) -> str:
    """Sign an access token for a user."""
    settings = get_settings()
    expires_minutes = expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> int:
    """Verify a token and return the user id it was issued for."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token", error=str(e))
        raise AuthenticationError("Invalid token")

    subject = payload.get("sub", payload.get("id"))
    try:
        return int(subject)
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid token")


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> User:
    """
    Dependency resolving the bearer token to a User.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Unauthorized")

    user_id = decode_access_token(credentials.credentials)
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise AuthenticationError("Unauthorized")
    return user
