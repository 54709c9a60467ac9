from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from config import settings


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; in-memory SQLite needs one shared connection or every checkout sees an empty DB."""
    kwargs = {"echo": echo}
    in_memory = database_url.endswith("://") or ":memory:" in database_url
    if "sqlite" in database_url.split(":")[0].lower() and in_memory:
        kwargs["poolclass"] = StaticPool
        kwargs["connect_args"] = {"check_same_thread": False}
    return create_async_engine(database_url, **kwargs)


def build_sessionmaker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


engine = build_engine(settings.database_url, echo=settings.debug)
AsyncSessionLocal = build_sessionmaker(engine)


class Base(DeclarativeBase):
    pass


async def get_db():
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(bind: AsyncEngine | None = None):
    # Import models so their tables are registered on Base.metadata
    import models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
