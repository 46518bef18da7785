from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool, StaticPool


def normalize_database_url(url: str) -> str:
    """Force async drivers for the URLs operators usually paste."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql+psycopg2://"):
        return url.replace("postgresql+psycopg2://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite:///") or url == "sqlite://":
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def build_engine(url: str) -> AsyncEngine:
    url = normalize_database_url(url)
    engine_kwargs = {"echo": False, "future": True}
    if url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}

        if ":memory:" in url or "mode=memory" in url or url == "sqlite+aiosqlite://":
            # In-memory DBs need StaticPool so every session sees the same database
            engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["poolclass"] = NullPool
    elif "asyncpg" in url:
        engine_kwargs["poolclass"] = NullPool

    return create_async_engine(url, **engine_kwargs)


def build_session_factory(engine: AsyncEngine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    # Postgres deployments are expected to manage the schema out of band; for
    # SQLite (local dev and tests) the tables are created directly.
    if "postgres" in engine.dialect.name:
        return
    # Import models so their tables are registered on the metadata
    from . import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
