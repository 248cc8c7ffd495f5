from __future__ import annotations
import logging
from contextlib import asynccontextmanager

from wallet_ledger.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from wallet_ledger.database import init_db
from wallet_ledger.middleware.errors import register_exception_handlers

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info("Database ready, ledger RPC at %s", settings.solana_rpc_url)
    yield


app = FastAPI(
    title="Wallet Ledger",
    description="Wallet-signature login and Solana transaction records",
    version="1.0.0",
    lifespan=lifespan,
)

_origins = [settings.frontend_url.rstrip("/"), "http://localhost:3000", "http://localhost:3001"]
if settings.extra_cors_origins:
    _origins.extend([o.strip().rstrip("/") for o in settings.extra_cors_origins.split(",") if o.strip()])
# Deduplicate
_origins = list(dict.fromkeys(_origins))

logger.info("CORS allowed origins: %s", _origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Register route modules
from wallet_ledger.api import auth, transactions

app.include_router(auth.router)
app.include_router(transactions.router)


@app.get("/api/health")
async def health():
    return {"success": True, "status": "ok"}
