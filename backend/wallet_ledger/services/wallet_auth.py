"""Password-less login: prove key possession, get a session token."""
from __future__ import annotations
import logging
from dataclasses import dataclass
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from wallet_ledger.models.user import User, utcnow
from wallet_ledger.services.session_tokens import SessionTokens
from wallet_ledger.services.signature import verify_signature

logger = logging.getLogger(__name__)


class InvalidSignature(Exception):
    pass


@dataclass
class AuthResult:
    user: User
    token: str
    is_new_user: bool


async def get_user_by_wallet(db: AsyncSession, wallet_address: str) -> User | None:
    result = await db.execute(
        select(User).where(User.wallet_address == wallet_address.lower())
    )
    return result.scalar_one_or_none()


def _record_login(user: User, message: str, signature: str) -> None:
    # Only the latest proof is kept.
    user.last_signature = signature
    user.last_signed_message = message
    user.last_login_at = utcnow()


async def authenticate_wallet(
    db: AsyncSession,
    tokens: SessionTokens,
    wallet_address: str,
    message: str,
    signature: str,
) -> AuthResult:
    """Verify ``signature`` over ``message`` for ``wallet_address`` and log the holder in.

    Whoever can sign for an address is that address's user; there is no
    separate registration step. The first successful login creates the user.
    """
    if not verify_signature(message, signature, wallet_address):
        logger.info(f"Rejected signature for wallet {wallet_address[:8]}...")
        raise InvalidSignature(wallet_address)

    address = wallet_address.lower()
    user = await get_user_by_wallet(db, address)
    is_new_user = False

    if user is not None:
        _record_login(user, message, signature)
        await db.flush()
    else:
        user = User(
            wallet_address=address,
            last_signature=signature,
            last_signed_message=message,
        )
        db.add(user)
        try:
            await db.commit()
            is_new_user = True
        except IntegrityError:
            # Lost a first-login race for this address: treat as a returning user.
            await db.rollback()
            user = await get_user_by_wallet(db, address)
            if user is None:
                raise
            _record_login(user, message, signature)
            await db.flush()

    logger.info(f"Wallet {address[:8]}... authenticated (new_user={is_new_user})")
    return AuthResult(
        user=user,
        token=tokens.issue(user.id, user.wallet_address),
        is_new_user=is_new_user,
    )
