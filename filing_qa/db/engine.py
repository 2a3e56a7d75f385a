# =============================================================================
# Database Engine & Session Management
# =============================================================================
#
# Async SQLAlchemy engine over asyncpg. Every FastAPI request gets its own
# session through the `get_async_session` dependency:
#
# SESSION LIFECYCLE:
# 1. FastAPI request arrives
# 2. `get_async_session` creates a new session
# 3. Route handler uses the session for DB operations
# 4. Session commits when the handler returns
# 5. On exception, the transaction is rolled back
#
# Handlers MAY call session.commit() mid-request when a state must be durable
# before a slow external call (e.g., the `processing` row before extraction).
# The commit at exit is then a no-op if nothing else changed.
# =============================================================================

import logging
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from filing_qa.config import settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Async Engine
# ---------------------------------------------------------------------------
# - echo: logs SQL statements when debug is on.
# - pool_pre_ping: validates pooled connections before use; managed
#   Postgres hosts drop idle connections.
# ---------------------------------------------------------------------------
async_engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=5,
    max_overflow=10,
    pool_pre_ping=True,
)

# expire_on_commit=False: attributes stay loaded after commit, so handlers
# can serialise ORM objects without an extra round trip.
async_session_factory = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    Usage in route handlers:
        @router.get("/items")
        async def list_items(session: AsyncSession = Depends(get_async_session)):
            result = await session.execute(select(Item))
            return result.scalars().all()
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """
    Create tables (and, on PostgreSQL, the updated_at triggers).

    Idempotent: tables are created with IF NOT EXISTS semantics and the
    trigger DDL uses CREATE OR REPLACE / DROP IF EXISTS.
    """
    from filing_qa.db.models import Base

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready")


async def dispose_engine() -> None:
    await async_engine.dispose()
