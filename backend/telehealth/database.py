from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from telehealth.config import get_settings

settings = get_settings()


def _connect_args(url: str, timeout: float) -> dict:
    # Keep store calls bounded to interactive latency.
    if url.startswith("postgresql+asyncpg"):
        return {"timeout": timeout, "command_timeout": timeout}
    if url.startswith("sqlite"):
        return {"timeout": timeout}
    return {}


def build_engine(url: str, timeout: float = 5.0):
    kwargs = {"connect_args": _connect_args(url, timeout)}
    if not url.startswith("sqlite"):
        kwargs["pool_timeout"] = timeout
        kwargs["pool_pre_ping"] = True
    return create_async_engine(url, **kwargs)


engine = build_engine(settings.database_url, settings.database_timeout_seconds)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One session per request: commit on success, roll back on error."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
