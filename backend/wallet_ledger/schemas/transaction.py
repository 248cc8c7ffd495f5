from __future__ import annotations
from datetime import datetime
from typing import Any, List, Optional, Union
from pydantic import AliasChoices, BaseModel, Field
from pydantic.alias_generators import to_camel
from wallet_ledger.models.transaction import TransactionType, TxStatus

CAMEL = {"alias_generator": to_camel, "populate_by_name": True}


class ErrorMetadata(BaseModel):
    """Ledger execution error for a transaction that failed on chain."""

    error: Any

    model_config = CAMEL


class LogMetadata(BaseModel):
    """Leading program log lines of a confirmed transaction."""

    log_messages: List[str] = []

    model_config = CAMEL


TransactionMetadata = Union[ErrorMetadata, LogMetadata]


class VerifyTransactionRequest(BaseModel):
    # Bounded by the column widths in models/transaction.py.
    tx_hash: Optional[str] = Field(None, max_length=128)
    token_mint: Optional[str] = Field(None, max_length=64)
    recipient: Optional[str] = Field(None, max_length=64)

    model_config = CAMEL


class TransactionResponse(BaseModel):
    id: int
    user_id: str
    wallet_address: str
    tx_hash: str
    tx_type: TransactionType = Field(
        validation_alias=AliasChoices("tx_type", "type"), serialization_alias="type"
    )
    token_mint: Optional[str] = None
    token_symbol: Optional[str] = None
    amount: str
    sender: str
    recipient: str
    status: TxStatus
    block_time: Optional[datetime] = None
    slot: Optional[int] = None
    fee: Optional[int] = None
    # ORM rows expose the declarative MetaData as .metadata, so read metadata_ first
    metadata_: TransactionMetadata = Field(
        validation_alias=AliasChoices("metadata_", "metadata"), serialization_alias="metadata"
    )
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True, **CAMEL}


class VerifyTransactionResponse(BaseModel):
    success: bool
    message: str
    transaction: TransactionResponse


class TransactionDetailResponse(BaseModel):
    success: bool = True
    transaction: TransactionResponse


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int

    model_config = CAMEL


class TransactionPage(BaseModel):
    transactions: List[TransactionResponse]
    pagination: Pagination


class TransactionListResponse(BaseModel):
    success: bool = True
    data: TransactionPage


class TransactionStats(BaseModel):
    total_transactions: int
    confirmed: int
    pending: int
    failed: int
    total_volume: float

    model_config = CAMEL


class TransactionStatsResponse(BaseModel):
    success: bool = True
    stats: TransactionStats
