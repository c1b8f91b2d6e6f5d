from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool, StaticPool
import logging

# Register table metadata before create_all
from . import models  # noqa: F401

logger = logging.getLogger(__name__)


def normalize_database_url(url: str) -> str:
    """Force the async sqlite driver for plain sqlite URLs."""
    if url.startswith("sqlite:///") or url == "sqlite://":
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    database_url = normalize_database_url(database_url)
    engine_kwargs = {"echo": echo, "future": True}
    if database_url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if (
            ":memory:" in database_url
            or "mode=memory" in database_url
            or database_url == "sqlite+aiosqlite://"
        ):
            # In-memory DBs need StaticPool so every session shares one connection
            # and the database is not dropped when a connection closes.
            engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["poolclass"] = NullPool
    return create_async_engine(database_url, **engine_kwargs)


def create_session_factory(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """Create any missing tables."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database schema ready (%s)", engine.url.render_as_string(hide_password=True))
