from __future__ import annotations
import logging
import math
from decimal import Decimal, InvalidOperation
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_ledger.database import get_db
from wallet_ledger.models.user import User
from wallet_ledger.models.transaction import Transaction, TransactionType, TxStatus
from wallet_ledger.schemas.transaction import (
    VerifyTransactionRequest,
    VerifyTransactionResponse,
    TransactionDetailResponse,
    TransactionListResponse,
    TransactionPage,
    TransactionResponse,
    TransactionStats,
    TransactionStatsResponse,
    Pagination,
)
from wallet_ledger.middleware.auth import get_current_user
from wallet_ledger.services.ingestion import (
    IngestOutcome,
    TransactionNotFound,
    ingest_transaction,
)
from wallet_ledger.services.solana_rpc import SolanaRpcClient, SolanaRpcError, get_rpc_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/transactions", tags=["transactions"])

NOT_ON_CHAIN = "Transaction not found on blockchain"

OUTCOME_RESPONSES = {
    IngestOutcome.created: (status.HTTP_201_CREATED, True, "Transaction verified and stored successfully"),
    IngestOutcome.existing: (status.HTTP_200_OK, True, "Transaction already recorded"),
    IngestOutcome.failed: (status.HTTP_400_BAD_REQUEST, False, "Transaction failed on blockchain"),
}


@router.post("/verify", response_model=VerifyTransactionResponse)
async def verify_transaction(
    req: VerifyTransactionRequest,
    response: Response,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    rpc: SolanaRpcClient = Depends(get_rpc_client),
):
    if not req.tx_hash:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing transaction hash",
        )

    try:
        result = await ingest_transaction(
            db, rpc, user, req.tx_hash, token_mint=req.token_mint, recipient=req.recipient
        )
    except SolanaRpcError as e:
        logger.warning(f"Fetching {req.tx_hash[:8]}... failed: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=NOT_ON_CHAIN)
    except TransactionNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_ON_CHAIN)

    status_code, success, message = OUTCOME_RESPONSES[result.outcome]
    response.status_code = status_code
    return VerifyTransactionResponse(
        success=success,
        message=message,
        transaction=TransactionResponse.model_validate(result.transaction),
    )


@router.get("", response_model=TransactionListResponse)
async def list_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[TxStatus] = Query(None, alias="status"),
    type_filter: Optional[TransactionType] = Query(None, alias="type"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    conditions = [Transaction.user_id == user.id]
    if status_filter is not None:
        conditions.append(Transaction.status == status_filter)
    if type_filter is not None:
        conditions.append(Transaction.tx_type == type_filter)

    total = await db.scalar(select(func.count()).select_from(Transaction).where(*conditions))
    result = await db.execute(
        select(Transaction)
        .where(*conditions)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    transactions = result.scalars().all()

    return TransactionListResponse(
        data=TransactionPage(
            transactions=[TransactionResponse.model_validate(t) for t in transactions],
            pagination=Pagination(
                total=total or 0,
                page=page,
                limit=limit,
                total_pages=math.ceil((total or 0) / limit),
            ),
        )
    )


@router.get("/stats/summary", response_model=TransactionStatsResponse)
async def transaction_stats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Transaction.status, func.count())
        .where(Transaction.user_id == user.id)
        .group_by(Transaction.status)
    )
    counts = {row[0]: row[1] for row in result.all()}

    # Amounts are decimal strings; sum them exactly before handing out a number.
    amounts = await db.scalars(
        select(Transaction.amount).where(
            Transaction.user_id == user.id,
            Transaction.status == TxStatus.confirmed,
            Transaction.tx_type == TransactionType.sol,
        )
    )
    volume = Decimal(0)
    for amount in amounts:
        try:
            volume += Decimal(amount)
        except InvalidOperation:
            logger.warning(f"Skipping unparseable amount {amount!r} in volume")

    return TransactionStatsResponse(
        stats=TransactionStats(
            total_transactions=sum(counts.values()),
            confirmed=counts.get(TxStatus.confirmed, 0),
            pending=counts.get(TxStatus.pending, 0),
            failed=counts.get(TxStatus.failed, 0),
            total_volume=float(volume),
        )
    )


@router.get("/{tx_hash}", response_model=TransactionDetailResponse)
async def get_transaction(
    tx_hash: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Transaction).where(
            Transaction.tx_hash == tx_hash,
            Transaction.user_id == user.id,
        )
    )
    transaction = result.scalar_one_or_none()
    if not transaction:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return TransactionDetailResponse(transaction=TransactionResponse.model_validate(transaction))
