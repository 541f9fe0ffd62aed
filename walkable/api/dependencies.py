"""FastAPI dependency injection helpers."""

from sqlalchemy.ext.asyncio import AsyncSession

from walkable.infrastructure.database import async_session_factory


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_session_factory():
    """Session factory for long-lived handlers (WebSockets) that open their own units of work."""
    return async_session_factory
