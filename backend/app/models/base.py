"""
Database base configuration for SQLAlchemy models.

This module uses SQLAlchemy 2.0 style with DeclarativeBase. The database
dependency is async (get_db yields AsyncSession); the overdue-progress cron
script opens its own session from AsyncSessionLocal.
"""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from typing import AsyncGenerator
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

_DATABASE_URL_RAW = os.getenv("DATABASE_URL", "")
_is_production = os.getenv("ENV", "development").lower() == "production"
if not _DATABASE_URL_RAW:
    if _is_production:
        raise RuntimeError(
            "DATABASE_URL is not set or is empty. "
            "Set it to the PostgreSQL connection string of the Syntegra database."
        )
    DATABASE_URL = "postgresql://localhost:5432/syntegra_dev"
else:
    DATABASE_URL = _DATABASE_URL_RAW

# Environment setting - echo SQL in development only
DEBUG = os.getenv("DEBUG", "True").lower() in ("true", "1", "yes")

# Database connection pool settings
POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))  # Number of connections to maintain
POOL_MAX_OVERFLOW = int(
    os.getenv("DB_POOL_MAX_OVERFLOW", "20")
)  # Max extra connections when pool exhausted
POOL_TIMEOUT = int(
    os.getenv("DB_POOL_TIMEOUT", "30")
)  # Seconds to wait for available connection
POOL_RECYCLE = int(
    os.getenv("DB_POOL_RECYCLE", "3600")
)  # Recycle connections after 1 hour
POOL_PRE_PING = os.getenv("DB_POOL_PRE_PING", "True").lower() in (
    "true",
    "1",
    "yes",
)  # Test connections before use

# Build the async URL by string-prefix replacement on the raw DATABASE_URL.
# make_url() -> set(drivername) -> str() strips underscores from hostnames.
_SYNC_PREFIX_MAP = {
    "postgresql+asyncpg://": "postgresql+asyncpg://",
    "postgresql+psycopg2://": "postgresql+asyncpg://",
    "postgresql://": "postgresql+asyncpg://",
    "postgres://": "postgresql+asyncpg://",
    "sqlite+aiosqlite://": "sqlite+aiosqlite://",
    "sqlite://": "sqlite+aiosqlite://",
}


def to_async_url(url: str) -> str:
    """
    Convert a sync database URL to its async-driver equivalent.

    Raises:
        ValueError: If the URL scheme has no async driver mapping
    """
    for sync_prefix, async_prefix in _SYNC_PREFIX_MAP.items():
        if url.startswith(sync_prefix):
            return async_prefix + url[len(sync_prefix) :]
    raise ValueError(
        f"No async driver mapping for DATABASE_URL prefix. "
        f"Supported prefixes: {list(_SYNC_PREFIX_MAP.keys())}"
    )


ASYNC_DATABASE_URL = to_async_url(DATABASE_URL)

if ASYNC_DATABASE_URL.startswith("sqlite"):
    # aiosqlite uses a static pool; queue-pool sizing arguments are rejected
    async_engine = create_async_engine(ASYNC_DATABASE_URL, echo=DEBUG)
else:
    async_engine = create_async_engine(
        ASYNC_DATABASE_URL,
        echo=DEBUG,
        pool_size=POOL_SIZE,
        max_overflow=POOL_MAX_OVERFLOW,
        pool_timeout=POOL_TIMEOUT,
        pool_recycle=POOL_RECYCLE,
        pool_pre_ping=POOL_PRE_PING,
    )

AsyncSessionLocal = async_sessionmaker(
    async_engine, class_=AsyncSession, expire_on_commit=False
)


class Base(DeclarativeBase):
    """
    SQLAlchemy 2.0 declarative base class.
    """

    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Async dependency function to get database session.

    Yields an async database session and ensures proper cleanup.
    """
    async with AsyncSessionLocal() as db:
        try:
            yield db
        except Exception:
            await db.rollback()
            raise
