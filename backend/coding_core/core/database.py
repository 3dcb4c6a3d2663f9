"""Database configuration and session management."""

from datetime import UTC, datetime
from uuid import UUID as UUID_
from uuid import uuid4

from sqlalchemy import DateTime, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from coding_core.core.config import settings

# Create async engine (for FastAPI async endpoints and the coding service)
engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    future=True,
)

# Create async session factory
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def is_valid_id(value: str) -> bool:
    """Whether a string can be used as a primary key lookup.

    PostgreSQL rejects non-UUID literals for UUID columns, so callers check
    before querying by id.
    """
    try:
        UUID_(value)
    except (TypeError, ValueError):
        return False
    return True


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models.

    Provides common columns and configuration for all models:
    - id: UUID primary key (auto-generated)
    - created_at: Timestamp when record was created
    """

    # Common columns for all models
    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )


async def init_db() -> None:
    """Initialize database tables.

    For development only - use Alembic migrations in production.
    """
    # Register the mapped tables on Base.metadata before create_all.
    import coding_core.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
