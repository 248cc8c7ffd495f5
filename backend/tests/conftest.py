"""Shared fixtures: throwaway SQLite database, fake ledger RPC, signed-in users."""
import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from typing import Optional

import httpx
import pytest
from solders.keypair import Keypair
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import wallet_ledger.models  # noqa: F401
from wallet_ledger.database import Base, get_db
from wallet_ledger.main import app
from wallet_ledger.services.solana_rpc import SolanaRpcError, get_rpc_client

SIGN_IN_MESSAGE = "Sign in to Wallet Ledger\nNonce: 3f9a1c"


class FakeRpc:
    """Stands in for SolanaRpcClient; serves canned getTransaction results."""

    def __init__(self):
        self.transactions: dict[str, dict] = {}
        self.failing = False
        self.calls: list[str] = []

    async def get_transaction(self, signature: str) -> Optional[dict]:
        self.calls.append(signature)
        if self.failing:
            raise SolanaRpcError("connection refused")
        return self.transactions.get(signature)


def sign(keypair: Keypair, message: str = SIGN_IN_MESSAGE) -> str:
    return str(keypair.sign_message(message.encode()))


def native_transfer(
    payer: str,
    pre: int = 1_000_000_000,
    post: int = 498_999_000,
    fee: int = 1000,
    err=None,
    logs: Optional[list] = None,
) -> dict:
    return {
        "slot": 245_001_337,
        "blockTime": 1_700_000_000,
        "meta": {
            "err": err,
            "fee": fee,
            "preBalances": [pre, 5_000_000, 1],
            "postBalances": [post, 505_000_000, 1],
            "preTokenBalances": [],
            "postTokenBalances": [],
            "logMessages": logs if logs is not None else [
                "Program 11111111111111111111111111111111 invoke [1]",
                "Program 11111111111111111111111111111111 success",
            ],
        },
        "transaction": {
            "message": {
                "accountKeys": [
                    payer,
                    "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM",
                    "11111111111111111111111111111111",
                ],
            },
            "signatures": ["placeholder"],
        },
    }


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_rpc():
    return FakeRpc()


@pytest.fixture
async def client(session_factory, fake_rpc):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rpc_client] = lambda: fake_rpc
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def keypair():
    return Keypair()


@pytest.fixture
async def auth_headers(client, keypair):
    resp = await client.post(
        "/api/auth/verify",
        json={
            "walletAddress": str(keypair.pubkey()),
            "message": SIGN_IN_MESSAGE,
            "signature": sign(keypair),
        },
    )
    assert resp.status_code == 201
    return {"Authorization": f"Bearer {resp.json()['token']}"}
