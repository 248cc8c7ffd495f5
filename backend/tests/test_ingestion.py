"""Transaction classification and exactly-once ingestion."""
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from conftest import native_transfer
from wallet_ledger.models.transaction import Transaction, TransactionType, TxStatus
from wallet_ledger.models.user import User
from wallet_ledger.services import ingestion
from wallet_ledger.services.ingestion import (
    IngestOutcome,
    TransactionNotFound,
    classify_transfer,
    format_amount,
    ingest_transaction,
    native_transfer_amount,
    token_transfer_amount,
)
from wallet_ledger.services.solana_rpc import SolanaRpcError

PAYER = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
USDC = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
TX_HASH = "5VERv8NMvzbJMEkV8xnrLkEaWRtSz9CosKDYjCJjBRnbJLgp8uirBgmQpjKhoR4tjF3ZpRzrFmBV6UjKdiSZkQUW"


def token_transfer(pre: str, post: str, account_index: int = 1, mint: str = USDC, decimals: int = 6) -> dict:
    tx = native_transfer(PAYER, pre=10_000_000, post=9_995_000, fee=5000)
    tx["meta"]["preTokenBalances"] = [
        {"accountIndex": 0, "mint": mint, "uiTokenAmount": {"uiAmountString": "999", "decimals": decimals}},
        {"accountIndex": account_index, "mint": mint,
         "uiTokenAmount": {"uiAmountString": pre, "decimals": decimals}},
    ]
    tx["meta"]["postTokenBalances"] = [
        {"accountIndex": account_index, "mint": mint,
         "uiTokenAmount": {"uiAmountString": post, "decimals": decimals}},
    ]
    return tx


@pytest.fixture
async def user(db):
    user = User(wallet_address=PAYER.lower(), last_signature="sig", last_signed_message="msg")
    db.add(user)
    await db.commit()
    return user


class TestFormatAmount:
    def test_plain_strings(self):
        assert format_amount(Decimal("0.500000000")) == "0.5"
        assert format_amount(Decimal("0E-9")) == "0"
        assert format_amount(Decimal("12.000")) == "12"
        assert format_amount(Decimal("1E+2")) == "100"


class TestNativeAmount:
    def test_half_sol_net_of_fee(self):
        tx = native_transfer(PAYER, pre=1_000_000_000, post=498_999_000, fee=1000)
        assert native_transfer_amount(tx, PAYER.lower()) == "0.5"

    def test_address_match_is_case_insensitive(self):
        tx = native_transfer(PAYER)
        assert native_transfer_amount(tx, PAYER.upper()) == "0.5"

    def test_wallet_not_in_transaction(self):
        tx = native_transfer("SomeoneElse1111111111111111111111111111111")
        assert native_transfer_amount(tx, PAYER) == "0"

    def test_missing_balances(self):
        tx = native_transfer(PAYER)
        tx["meta"]["preBalances"] = []
        assert native_transfer_amount(tx, PAYER) == "0"

    def test_loaded_addresses_extend_account_keys(self):
        tx = native_transfer("SomeoneElse1111111111111111111111111111111")
        tx["meta"]["preBalances"].append(3_000_000_000)
        tx["meta"]["postBalances"].append(999_999_000)
        tx["meta"]["loadedAddresses"] = {"writable": [PAYER], "readonly": []}
        assert native_transfer_amount(tx, PAYER) == "2"

    def test_parsed_account_keys(self):
        tx = native_transfer(PAYER)
        keys = tx["transaction"]["message"]["accountKeys"]
        tx["transaction"]["message"]["accountKeys"] = [{"pubkey": k, "signer": False} for k in keys]
        assert native_transfer_amount(tx, PAYER) == "0.5"


class TestTokenAmount:
    def test_matching_pre_and_post(self):
        amount, symbol = token_transfer_amount(token_transfer("150.25", "100"), USDC)
        assert amount == "50.25"
        assert symbol is None

    def test_symbol_from_formatted_amount(self):
        amount, symbol = token_transfer_amount(token_transfer("10 USDC", "2.5 USDC"), USDC)
        assert amount == "7.5"
        assert symbol == "USDC"

    def test_pre_must_share_account_index(self):
        tx = token_transfer("150", "100", account_index=1)
        tx["meta"]["preTokenBalances"] = tx["meta"]["preTokenBalances"][:1]  # only index 0 left
        assert token_transfer_amount(tx, USDC) == ("0", None)

    def test_unknown_mint(self):
        assert token_transfer_amount(token_transfer("1", "0"), "OtherMint111") == ("0", None)

    def test_raw_amount_fallback(self):
        tx = token_transfer("0", "0")
        tx["meta"]["preTokenBalances"][1]["uiTokenAmount"] = {"amount": "2500000", "decimals": 6}
        tx["meta"]["postTokenBalances"][0]["uiTokenAmount"] = {"amount": "500000", "decimals": 6}
        assert token_transfer_amount(tx, USDC) == ("2", None)

    def test_classify_uses_mint_to_pick_kind(self):
        tx = token_transfer("3", "1")
        assert classify_transfer(tx, PAYER, USDC).tx_type == TransactionType.spl_token
        assert classify_transfer(tx, PAYER, None).tx_type == TransactionType.sol


class TestIngest:
    async def test_confirmed_native_transfer(self, db, user, fake_rpc):
        fake_rpc.transactions[TX_HASH] = native_transfer(PAYER)
        result = await ingest_transaction(db, fake_rpc, user, TX_HASH, recipient="Dest111")

        tx = result.transaction
        assert result.outcome == IngestOutcome.created
        assert tx.status == TxStatus.confirmed
        assert tx.tx_type == TransactionType.sol
        assert tx.amount == "0.5"
        assert tx.token_mint is None
        assert tx.sender == PAYER.lower()
        assert tx.recipient == "Dest111"
        assert tx.slot == 245_001_337
        assert tx.fee == 1000
        assert tx.block_time.timestamp() == 1_700_000_000
        assert tx.metadata_ == {"logMessages": fake_rpc.transactions[TX_HASH]["meta"]["logMessages"]}

    async def test_log_messages_capped_at_five(self, db, user, fake_rpc):
        logs = [f"Program log: line {i}" for i in range(9)]
        fake_rpc.transactions[TX_HASH] = native_transfer(PAYER, logs=logs)
        result = await ingest_transaction(db, fake_rpc, user, TX_HASH)
        assert result.transaction.metadata_["logMessages"] == logs[:5]
        assert result.transaction.recipient == "unknown"

    async def test_token_transfer(self, db, user, fake_rpc):
        fake_rpc.transactions[TX_HASH] = token_transfer("10 USDC", "4 USDC")
        result = await ingest_transaction(db, fake_rpc, user, TX_HASH, token_mint=USDC)
        tx = result.transaction
        assert tx.tx_type == TransactionType.spl_token
        assert tx.token_mint == USDC
        assert tx.token_symbol == "USDC"
        assert tx.amount == "6"

    async def test_second_ingest_returns_stored_row_without_fetch(self, db, user, fake_rpc):
        fake_rpc.transactions[TX_HASH] = native_transfer(PAYER)
        first = await ingest_transaction(db, fake_rpc, user, TX_HASH)
        second = await ingest_transaction(db, fake_rpc, user, TX_HASH)

        assert second.outcome == IngestOutcome.existing
        assert second.transaction.id == first.transaction.id
        assert fake_rpc.calls == [TX_HASH]
        count = await db.scalar(select(func.count()).select_from(Transaction))
        assert count == 1

    async def test_failed_on_chain_is_stored(self, db, user, fake_rpc):
        err = {"InstructionError": [0, {"Custom": 1}]}
        fake_rpc.transactions[TX_HASH] = native_transfer(PAYER, err=err)
        result = await ingest_transaction(db, fake_rpc, user, TX_HASH, token_mint=USDC)

        tx = result.transaction
        assert result.outcome == IngestOutcome.failed
        assert tx.status == TxStatus.failed
        assert tx.amount == "0"
        assert tx.recipient == "unknown"
        assert tx.tx_type == TransactionType.spl_token
        assert tx.metadata_ == {"error": err}
        assert tx.fee == 1000

    async def test_rpc_failure_propagates(self, db, user, fake_rpc):
        fake_rpc.failing = True
        with pytest.raises(SolanaRpcError):
            await ingest_transaction(db, fake_rpc, user, TX_HASH)

    async def test_unknown_signature(self, db, user, fake_rpc):
        with pytest.raises(TransactionNotFound):
            await ingest_transaction(db, fake_rpc, user, TX_HASH)

    async def test_lost_race_returns_winner(self, session_factory, user, fake_rpc, monkeypatch):
        fake_rpc.transactions[TX_HASH] = native_transfer(PAYER)
        async with session_factory() as session:
            winner = await ingest_transaction(session, fake_rpc, await session.get(User, user.id), TX_HASH)

        real_lookup = ingestion.get_transaction_by_hash
        lookups = []

        async def lookup_before_winner_committed(session, tx_hash):
            lookups.append(tx_hash)
            if len(lookups) == 1:
                return None
            return await real_lookup(session, tx_hash)

        monkeypatch.setattr(ingestion, "get_transaction_by_hash", lookup_before_winner_committed)

        async with session_factory() as session:
            loser = await ingest_transaction(session, fake_rpc, await session.get(User, user.id), TX_HASH)

        assert loser.outcome == IngestOutcome.existing
        assert loser.transaction.id == winner.transaction.id
        assert len(lookups) == 2
