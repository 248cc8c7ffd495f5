"""Signed, time-limited session tokens bound to a wallet identity."""
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt
from jose.exceptions import JOSEError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
TOKEN_TYPE = "access"


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    wallet_address: str


class SessionTokens:
    """Issues and validates HS256 session JWTs.

    The secret is handed in at construction. Replacing it invalidates every
    token issued under the previous one.
    """

    def __init__(self, secret_key: str, expires_in: timedelta = timedelta(days=7)):
        if not secret_key:
            raise ValueError("A session token secret is required")
        self._secret_key = secret_key
        self.expires_in = expires_in

    def issue(self, user_id: str, wallet_address: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "wallet": wallet_address,
            "type": TOKEN_TYPE,
            "iat": now,
            "exp": now + self.expires_in,
        }
        return jwt.encode(payload, self._secret_key, algorithm=ALGORITHM)

    def validate(self, token: str) -> Optional[TokenClaims]:
        """Return the embedded claims, or None for a bad, tampered or expired token."""
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[ALGORITHM])
        except (JOSEError, AttributeError, TypeError) as e:
            logger.debug(f"Session token rejected: {e}")
            return None

        user_id = payload.get("sub")
        wallet_address = payload.get("wallet")
        if payload.get("type") != TOKEN_TYPE or not isinstance(user_id, str) or not isinstance(wallet_address, str):
            return None
        return TokenClaims(user_id=user_id, wallet_address=wallet_address)
