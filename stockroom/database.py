import json
import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from datetime import datetime, date
from typing import AsyncGenerator, Optional, TYPE_CHECKING
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncAttrs, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from psycopg.types.json import set_json_dumps

from stockroom.config import settings

if TYPE_CHECKING:
    from stockroom.services.notification_service import NotificationService


logger = logging.getLogger(__name__)


# Custom JSON encoder that handles Decimal, datetime, UUID, etc.
class CustomJSONEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal, datetime, UUID and other types."""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, UUID):
            return str(obj)
        return super().default(obj)


def custom_json_dumps(obj):
    """Custom JSON dumps function for psycopg and the SQLAlchemy JSON type."""
    return json.dumps(obj, cls=CustomJSONEncoder)


# Configure psycopg to use our custom JSON encoder globally
set_json_dumps(custom_json_dumps)


def normalize_database_url(url: str) -> str:
    """Rewrite PostgreSQL URLs to the async psycopg driver."""
    if url.startswith("postgresql+asyncpg://"):
        return url.replace("postgresql+asyncpg://", "postgresql+psycopg://")
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://")
    return url


def build_engine(url: str, **overrides):
    """Create an async engine with settings appropriate for the backend."""
    if url.startswith("sqlite"):
        options = dict(
            echo=settings.DEBUG,
            json_serializer=custom_json_dumps,
            connect_args={"check_same_thread": False},
        )
    else:
        options = dict(
            echo=settings.DEBUG,
            json_serializer=custom_json_dumps,
            pool_pre_ping=True,  # Check connection health before use
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
            isolation_level=settings.DB_ISOLATION_LEVEL,
            connect_args={"connect_timeout": 30},
        )
    options.update(overrides)
    return create_async_engine(normalize_database_url(url), **options)


engine = build_engine(settings.DATABASE_URL)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


class Base(AsyncAttrs, DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Relationships that may not be loaded yet are reached through
    ``await obj.awaitable_attrs.<name>`` instead of plain attribute access.
    """
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def get_db_session():
    """Context manager for getting database session (for background jobs)."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def unit_of_work(
    db: AsyncSession,
    notifications: Optional["NotificationService"] = None,
):
    """
    Run a workflow step as one transaction.

    Everything written inside the block commits together or is rolled back
    together. Queued push notifications are delivered only after the commit
    succeeds, and a delivery failure never affects the committed data.
    """
    try:
        yield db
        await db.commit()
    except Exception:
        await db.rollback()
        if notifications is not None:
            notifications.discard()
        raise

    if notifications is not None:
        await notifications.dispatch()


async def init_db() -> None:
    """Initialize database tables."""
    # Import all models to register them with Base.metadata
    from stockroom import models  # noqa: F401

    logger.info("Registered %d tables", len(Base.metadata.tables))

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")
