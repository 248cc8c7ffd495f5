from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_ledger.database import get_db
from wallet_ledger.models.user import User
from wallet_ledger.schemas.auth import (
    VerifyWalletRequest,
    VerifyWalletResponse,
    LoginUser,
    UserResponse,
    UserEnvelope,
)
from wallet_ledger.middleware.auth import get_current_user, get_session_tokens
from wallet_ledger.services.session_tokens import SessionTokens
from wallet_ledger.services.wallet_auth import (
    InvalidSignature,
    authenticate_wallet,
    get_user_by_wallet,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/verify", response_model=VerifyWalletResponse)
async def verify_wallet(
    req: VerifyWalletRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    tokens: SessionTokens = Depends(get_session_tokens),
):
    if not req.wallet_address or not req.message or not req.signature:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required fields: walletAddress, message, signature",
        )

    try:
        result = await authenticate_wallet(
            db, tokens, req.wallet_address, req.message, req.signature
        )
    except InvalidSignature:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid signature",
        )

    response.status_code = status.HTTP_201_CREATED if result.is_new_user else status.HTTP_200_OK
    return VerifyWalletResponse(
        token=result.token,
        user=LoginUser(
            wallet_address=result.user.wallet_address,
            created_at=result.user.created_at,
            last_login_at=result.user.last_login_at,
            is_new_user=result.is_new_user,
        ),
    )


@router.get("/me", response_model=UserEnvelope)
async def get_me(user: User = Depends(get_current_user)):
    return UserEnvelope(user=UserResponse.model_validate(user))


@router.get("/user/{wallet_address}", response_model=UserEnvelope)
async def get_user(wallet_address: str, db: AsyncSession = Depends(get_db)):
    user = await get_user_by_wallet(db, wallet_address)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return UserEnvelope(user=UserResponse.model_validate(user))
