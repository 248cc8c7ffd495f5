"""Record on-chain transactions exactly once per signature.

A submitted hash is looked up locally first; unknown hashes are fetched from
the cluster, classified as a native SOL or SPL token transfer, and stored
with the caller's balance change in human units. Failed on-chain
transactions are stored too, with the ledger error attached.
"""
from __future__ import annotations
import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_ledger.models.transaction import Transaction, TransactionType, TxStatus
from wallet_ledger.models.user import User
from wallet_ledger.schemas.transaction import ErrorMetadata, LogMetadata
from wallet_ledger.services.solana_rpc import SolanaRpcClient

logger = logging.getLogger(__name__)

LAMPORTS_DECIMALS = 9  # 1 SOL = 10^9 lamports
LOG_MESSAGE_LIMIT = 5
UNKNOWN_RECIPIENT = "unknown"


class TransactionNotFound(Exception):
    """The cluster answered but has no transaction under this signature."""


class IngestOutcome(str, enum.Enum):
    created = "created"
    existing = "existing"
    failed = "failed"


@dataclass
class IngestResult:
    transaction: Transaction
    outcome: IngestOutcome


@dataclass
class TransferDetails:
    tx_type: TransactionType
    amount: str = "0"
    token_symbol: Optional[str] = None


# ── amount helpers ─────────────────────────────────────────────────

def format_amount(value: Decimal) -> str:
    """Plain decimal string: no exponent, no trailing zeros ("0.5", "12", "0")."""
    return format(value.normalize(), "f")


def _account_keys(tx_info: dict) -> list[str]:
    message = (tx_info.get("transaction") or {}).get("message") or {}
    keys = message.get("accountKeys") or message.get("staticAccountKeys") or []
    # v0 transactions append lookup-table addresses after the static keys
    loaded = (tx_info.get("meta") or {}).get("loadedAddresses") or {}
    keys = list(keys) + list(loaded.get("writable") or []) + list(loaded.get("readonly") or [])
    return [key if isinstance(key, str) else key.get("pubkey", "") for key in keys]


def native_transfer_amount(tx_info: dict, wallet_address: str) -> str:
    """Lamport change of ``wallet_address`` net of the fee, in SOL."""
    meta = tx_info.get("meta") or {}
    pre_balances = meta.get("preBalances") or []
    post_balances = meta.get("postBalances") or []

    wallet = wallet_address.lower()
    index = next(
        (i for i, key in enumerate(_account_keys(tx_info)) if key.lower() == wallet),
        None,
    )
    if index is None or index >= len(pre_balances) or index >= len(post_balances):
        return "0"

    lamports = abs(pre_balances[index] - post_balances[index] - (meta.get("fee") or 0))
    return format_amount(Decimal(lamports).scaleb(-LAMPORTS_DECIMALS))


def _ui_amount(balance: dict) -> Decimal:
    ui = balance.get("uiTokenAmount") or {}
    text = ui.get("uiAmountString")
    try:
        if text:
            return Decimal(text.split(" ", 1)[0])
        if ui.get("amount") is not None and ui.get("decimals") is not None:
            return Decimal(ui["amount"]).scaleb(-int(ui["decimals"]))
        if ui.get("uiAmount") is not None:
            return Decimal(str(ui["uiAmount"]))
    except (InvalidOperation, ValueError):
        logger.warning(f"Unparseable token amount: {ui}")
    return Decimal(0)


def _token_symbol(balance: dict) -> Optional[str]:
    text = (balance.get("uiTokenAmount") or {}).get("uiAmountString") or ""
    _, _, symbol = text.partition(" ")
    return symbol or None


def token_transfer_amount(tx_info: dict, token_mint: str) -> tuple[str, Optional[str]]:
    """Token balance change for ``token_mint`` and a best-effort symbol."""
    meta = tx_info.get("meta") or {}
    post = next(
        (b for b in meta.get("postTokenBalances") or [] if b.get("mint") == token_mint),
        None,
    )
    if post is None:
        return "0", None
    pre = next(
        (
            b
            for b in meta.get("preTokenBalances") or []
            if b.get("mint") == token_mint and b.get("accountIndex") == post.get("accountIndex")
        ),
        None,
    )
    if pre is None:
        return "0", None

    change = abs(_ui_amount(pre) - _ui_amount(post))
    return format_amount(change), _token_symbol(post)


def classify_transfer(tx_info: dict, wallet_address: str, token_mint: Optional[str]) -> TransferDetails:
    if token_mint:
        amount, symbol = token_transfer_amount(tx_info, token_mint)
        return TransferDetails(TransactionType.spl_token, amount, symbol)
    return TransferDetails(TransactionType.sol, native_transfer_amount(tx_info, wallet_address))


def _block_time(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


# ── ingestion ──────────────────────────────────────────────────────

async def get_transaction_by_hash(db: AsyncSession, tx_hash: str) -> Optional[Transaction]:
    result = await db.execute(select(Transaction).where(Transaction.tx_hash == tx_hash))
    return result.scalar_one_or_none()


async def ingest_transaction(
    db: AsyncSession,
    rpc: SolanaRpcClient,
    user: User,
    tx_hash: str,
    token_mint: Optional[str] = None,
    recipient: Optional[str] = None,
) -> IngestResult:
    """Store the transaction behind ``tx_hash`` once and return the stored row.

    Raises SolanaRpcError when the cluster cannot be queried and
    TransactionNotFound when it has no such transaction.
    """
    existing = await get_transaction_by_hash(db, tx_hash)
    if existing is not None:
        logger.info(f"Transaction {tx_hash[:8]}... already recorded")
        return IngestResult(existing, IngestOutcome.existing)

    tx_info = await rpc.get_transaction(tx_hash)
    if not tx_info:
        raise TransactionNotFound(tx_hash)

    meta = tx_info.get("meta") or {}
    common = dict(
        user_id=user.id,
        wallet_address=user.wallet_address,
        tx_hash=tx_hash,
        token_mint=token_mint or None,
        sender=user.wallet_address,
        recipient=recipient or UNKNOWN_RECIPIENT,
        block_time=_block_time(tx_info.get("blockTime")),
        slot=tx_info.get("slot"),
        fee=meta.get("fee") or 0,
    )

    if meta.get("err") is not None:
        record = Transaction(
            **common,
            tx_type=TransactionType.spl_token if token_mint else TransactionType.sol,
            amount="0",
            status=TxStatus.failed,
            metadata_=ErrorMetadata(error=meta["err"]).model_dump(by_alias=True),
        )
        outcome = IngestOutcome.failed
    else:
        details = classify_transfer(tx_info, user.wallet_address, token_mint)
        logs = (meta.get("logMessages") or [])[:LOG_MESSAGE_LIMIT]
        record = Transaction(
            **common,
            tx_type=details.tx_type,
            token_symbol=details.token_symbol,
            amount=details.amount,
            status=TxStatus.confirmed,
            metadata_=LogMetadata(log_messages=logs).model_dump(by_alias=True),
        )
        outcome = IngestOutcome.created

    return await _store_once(db, record, outcome)


async def _store_once(db: AsyncSession, record: Transaction, outcome: IngestOutcome) -> IngestResult:
    # Commit here so a failed-on-chain record survives the error response.
    tx_hash = record.tx_hash
    db.add(record)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        winner = await get_transaction_by_hash(db, tx_hash)
        if winner is None:
            raise
        logger.info(f"Transaction {tx_hash[:8]}... recorded concurrently, returning existing row")
        return IngestResult(winner, IngestOutcome.existing)

    logger.info(
        "Stored transaction %s... type=%s amount=%s status=%s",
        tx_hash[:8], record.tx_type.value, record.amount, record.status.value,
    )
    return IngestResult(record, outcome)
