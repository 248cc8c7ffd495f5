from __future__ import annotations
import enum
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Integer, BigInteger, DateTime, JSON, ForeignKey, Index, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from wallet_ledger.database import Base
from wallet_ledger.models.user import utcnow


class TransactionType(str, enum.Enum):
    sol = "SOL"
    spl_token = "SPL_TOKEN"


class TxStatus(str, enum.Enum):
    # pending is never written by ingestion; kept for a submit-then-confirm flow.
    pending = "pending"
    confirmed = "confirmed"
    failed = "failed"


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_wallet_created", "wallet_address", "created_at"),
        Index("ix_transactions_user_created", "user_id", "created_at"),
        Index("ix_transactions_status_created", "status", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    wallet_address: Mapped[str] = mapped_column(String(64), nullable=False)
    tx_hash: Mapped[str] = mapped_column(String(128), unique=True, nullable=False, index=True)
    tx_type: Mapped[TransactionType] = mapped_column(
        "type", SAEnum(TransactionType), nullable=False
    )
    token_mint: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, default=None)
    token_symbol: Mapped[Optional[str]] = mapped_column(String(32), nullable=True, default=None)
    amount: Mapped[str] = mapped_column(String(64), nullable=False)
    sender: Mapped[str] = mapped_column(String(64), nullable=False)
    recipient: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[TxStatus] = mapped_column(
        SAEnum(TxStatus), default=TxStatus.pending, nullable=False
    )
    block_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    slot: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    fee: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    # "metadata" is reserved on declarative classes
    metadata_: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    user = relationship("User", back_populates="transactions")
