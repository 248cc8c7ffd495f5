from __future__ import annotations
import logging
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from wallet_ledger.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


def async_database_url(url: str) -> str:
    # Hosted Postgres hands out postgresql:// but SQLAlchemy async needs postgresql+asyncpg://
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


engine = create_async_engine(
    async_database_url(settings.database_url),
    echo=settings.log_level.upper() == "DEBUG",
    pool_pre_ping=True,
)

# Rows stay readable after commit; ingestion commits mid-request and returns the row.
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncSession:
    """Request-scoped session: committed when the route returns, rolled back on error."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db():
    # Register users and transactions on Base.metadata before create_all
    import wallet_ledger.models  # noqa: F401
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Tables ready: %s", ", ".join(sorted(Base.metadata.tables)))
