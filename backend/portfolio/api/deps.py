"""FastAPI dependency injection — admin auth & content library."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from portfolio.config import settings
from portfolio.services import get_content_library
from portfolio.services.library import ContentLibrary

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.api_prefix}/auth/login",
    auto_error=False,
)


def get_library() -> ContentLibrary:
    """FastAPI dependency — the process-wide content library."""
    return get_content_library()


async def get_current_admin(token: Optional[str] = Depends(oauth2_scheme)) -> str:
    """Validate the Bearer token and return the admin username."""
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No authentication token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.token_algorithm],
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    username: str | None = payload.get("sub")
    if username != settings.admin_username:
        logger.warning("Rejected token for subject %r", username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token does not belong to the admin account",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return username
