from wallet_ledger.models.user import User
from wallet_ledger.models.transaction import Transaction, TransactionType, TxStatus

__all__ = [
    "User",
    "Transaction",
    "TransactionType",
    "TxStatus",
]
