from __future__ import annotations
import logging
from datetime import timedelta
from functools import lru_cache
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from wallet_ledger.config import get_settings
from wallet_ledger.database import get_db
from wallet_ledger.models.user import User
from wallet_ledger.services.session_tokens import SessionTokens

logger = logging.getLogger(__name__)
security = HTTPBearer(auto_error=False)


@lru_cache()
def get_session_tokens() -> SessionTokens:
    settings = get_settings()
    return SessionTokens(
        settings.jwt_secret,
        expires_in=timedelta(days=settings.token_expire_days),
    )


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
    tokens: SessionTokens = Depends(get_session_tokens),
) -> User:
    # HTTPBearer matches the scheme case-insensitively; only "Bearer" is accepted.
    if credentials is None or credentials.scheme != "Bearer" or not credentials.credentials:
        raise _unauthorized("No token provided")

    try:
        claims = tokens.validate(credentials.credentials)
        if claims is None:
            raise _unauthorized("Invalid or expired token")
        user = await db.get(User, claims.user_id)
    except HTTPException:
        raise
    except Exception:
        # Never leak lookup failures to the client.
        logger.exception("Session guard failed")
        raise _unauthorized("Authentication failed")

    if user is None:
        raise _unauthorized("User not found")
    return user
