import asyncio
import asyncpg
import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import PG_DSN
from app.db.sql import DDL


logger = logging.getLogger(__name__)


_pool = None
_engine: AsyncEngine | None = None
_SessionLocal: async_sessionmaker[AsyncSession] | None = None

CONNECT_ATTEMPTS = 30


def _to_async_url(dsn: str) -> str:
    # postgresql://... -> postgresql+asyncpg://...
    return dsn.replace("postgresql://", "postgresql+asyncpg://", 1)


# ---------- asyncpg-пул: только для DDL на старте ----------
async def get_pool():
    global _pool
    if _pool is not None:
        return _pool

    last_err = None
    for attempt in range(CONNECT_ATTEMPTS):
        try:
            _pool = await asyncpg.create_pool(dsn=PG_DSN, min_size=1, max_size=5)
            logger.info("Connected to Postgres (asyncpg pool)")
            return _pool
        except (OSError, asyncpg.PostgresError) as e:
            last_err = e
            logger.warning("Postgres not ready (%s). Retry %d/%d...", e, attempt + 1, CONNECT_ATTEMPTS)
            await asyncio.sleep(1)

    logger.error("Failed to connect Postgres after retries: %s", last_err)
    raise last_err


async def ensure_schema() -> None:
    pool = await get_pool()
    async with pool.acquire() as conn:
        await conn.execute(DDL)
    logger.info("games schema ensured")


async def close_pool() -> None:
    global _pool, _engine, _SessionLocal
    if _pool is not None:
        await _pool.close()
        _pool = None
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _SessionLocal = None


# ---------- SQLAlchemy AsyncSession ----------
def init_engine_if_needed():
    """Движок и фабрика сессий создаются один раз, лениво."""
    global _engine, _SessionLocal
    if _engine is not None and _SessionLocal is not None:
        return

    _engine = create_async_engine(
        _to_async_url(PG_DSN),
        pool_pre_ping=True,
    )
    _SessionLocal = async_sessionmaker(
        _engine, expire_on_commit=False, autoflush=False
    )
    logger.info("SQLAlchemy async engine initialized")


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: выдаёт AsyncSession и закрывает её после запроса."""
    if _SessionLocal is None:
        init_engine_if_needed()
    assert _SessionLocal is not None  # для type-checker
    async with _SessionLocal() as session:
        yield session
