# school_calendar/db.py
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import NullPool

from school_calendar.config import DATABASE_URL

Base = declarative_base()


def make_engine(url: str):
    # aiosqlite connections are tied to the loop that opened them
    if url.startswith("sqlite"):
        return create_async_engine(url, poolclass=NullPool)
    return create_async_engine(
        url,
        pool_pre_ping=True,
        pool_recycle=1800,
    )


def make_sessionmaker(bind):
    return sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
    )


engine = make_engine(DATABASE_URL)
AsyncSessionLocal = make_sessionmaker(engine)


async def init_db(bind=None):
    # Importing models registers the tables on Base.metadata
    from school_calendar import models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# Dependency for FastAPI routes
async def get_db():
    async with AsyncSessionLocal() as session:
        yield session
