"""Database engine and session management."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from studyqueue.config import settings

engine = create_async_engine(settings.database_url, echo=settings.debug)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Return the session factory for FastAPI dependency injection.

    The study queue opens one session per concurrent fetch, so routes depend
    on the factory rather than on a single session.
    """
    return async_session
