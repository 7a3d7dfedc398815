# auth.py

"""Bearer token authentication for order routes.

Tokens are issued by the surrounding login flow (OTP for customers, staff
login for the POS); this module only verifies them and turns their claims
into a :class:`~api.app.domain.values.Principal`.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from config import get_settings

from .domain.values import Principal

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 12

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")


def create_access_token(
    sub: str, role: str, expires_delta: Optional[timedelta] = None
) -> str:
    """Create a signed JWT carrying ``sub`` and ``role`` claims."""

    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    payload = {"sub": sub, "role": role, "exp": expire}
    return jwt.encode(payload, get_settings().secret_key, algorithm=ALGORITHM)


def get_current_principal(token: str = Depends(oauth2_scheme)) -> Principal:
    """Resolve the caller from a bearer token or raise ``HTTPException``."""

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, get_settings().secret_key, algorithms=[ALGORITHM])
    except jwt.PyJWTError as exc:
        logger.info("rejected bearer token: %s", exc.__class__.__name__)
        raise credentials_exception from exc
    sub = payload.get("sub")
    role = payload.get("role")
    if not sub or not role:
        raise credentials_exception
    return Principal(id=str(sub), role=str(role))


def role_required(*roles: str):
    """Dependency factory enforcing that the caller has one of ``roles``."""

    def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient privileges"
            )
        return principal

    return dependency
