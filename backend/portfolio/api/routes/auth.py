"""Auth routes — issues admin tokens."""

import hmac
import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, HTTPException, status
from jose import jwt

from portfolio.config import settings
from portfolio.schemas.auth import LoginRequest, TokenResponse

logger = logging.getLogger(__name__)
router = APIRouter()


def create_access_token(subject: str) -> str:
    expires = datetime.now(timezone.utc) + timedelta(minutes=settings.token_expire_minutes)
    return jwt.encode(
        {"sub": subject, "exp": expires},
        settings.secret_key,
        algorithm=settings.token_algorithm,
    )


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest):
    """
    Exchange the admin credentials for a bearer token.

    Login is disabled until an admin password is configured
    (PORTFOLIO_ADMIN_PASSWORD).
    """
    if not settings.admin_password:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin login is not configured",
        )

    user_ok = hmac.compare_digest(body.username.encode(), settings.admin_username.encode())
    password_ok = hmac.compare_digest(body.password.encode(), settings.admin_password.encode())
    if not (user_ok and password_ok):
        logger.warning("Failed admin login for %r", body.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    logger.info("Admin %s logged in", body.username)
    return TokenResponse(access_token=create_access_token(body.username))
