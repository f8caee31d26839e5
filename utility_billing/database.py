"""Database Engine, Session Factory and Declarative Base"""

import re
import ssl
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from utility_billing.config import settings


def build_async_url(url: str) -> tuple[str, dict]:
    """
    Turn a plain postgresql:// URL into an asyncpg URL.

    asyncpg does not understand ``sslmode``; it is stripped from the query
    string and replaced by an SSL context in the connect args.

    Returns:
        Tuple of (async URL, connect_args)
    """
    async_url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    connect_args: dict = {}
    if re.search(r"[?&]sslmode=(require|required|verify-full)", async_url, re.I):
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        connect_args["ssl"] = ctx
        async_url = re.sub(r"[?&]sslmode=[^&]+", "", async_url, flags=re.I)
    async_url = async_url.replace("?&", "?").rstrip("?")
    return async_url, connect_args


database_url, connect_args = build_async_url(settings.DATABASE_URL)

# One engine per process; the pool is the only long-lived state
engine = create_async_engine(
    database_url,
    connect_args=connect_args,
    pool_pre_ping=True,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_timeout=settings.DB_POOL_TIMEOUT,
    pool_recycle=settings.DB_POOL_RECYCLE,
    echo=False,
    future=True,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped database session.

    Services own their commits; anything left pending when the handler
    raises is rolled back here.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def transaction(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Unit of work around a service operation.

    Commits when the block finishes, rolls back everything flushed inside
    it when the block raises.
    """
    try:
        yield db
        await db.commit()
    except Exception:
        await db.rollback()
        raise


async def init_db() -> None:
    """Create tables directly (development only, use Alembic elsewhere)"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose the connection pool"""
    await engine.dispose()
