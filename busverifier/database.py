"""
Business Verifier — Async SQLAlchemy database setup.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from busverifier.config import settings


def make_engine(url: str) -> AsyncEngine:
    return create_async_engine(
        url,
        echo=False,
        # pool settings only for postgres
        **(
            {}
            if "sqlite" in url
            else {
                "pool_size": 5,
                "max_overflow": 10,
                "pool_pre_ping": True,
                "pool_recycle": 300,
            }
        ),
    )


engine = make_engine(settings.database_url)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create all tables (used in lifespan and tests)."""
    # Register every mapper on Base.metadata before create_all
    import busverifier.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
