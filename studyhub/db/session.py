"""Engine and session factory for the SQL data backend."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from studyhub.config import Settings


def build_engine(settings: Settings) -> AsyncEngine:
    """
    Async engine for the configured database.

    Nothing connects until the first statement, so building the engine is
    safe while the database is down; the data layer's connectivity check
    decides whether to enter emergency mode.
    """
    return create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        connect_args={"ssl": "require"} if settings.database_requires_ssl else {},
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # One short-lived session per gateway call
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
