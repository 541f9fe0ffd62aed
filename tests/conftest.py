"""
Shared test fixtures.

Uses a file-backed SQLite database (via aiosqlite) per test so tests run
without Docker / PostgreSQL.  ``NullPool`` opens a fresh connection per
unit of work, which lets the WebSocket tests (running on the TestClient's
own event loop) share the database with setup code run via ``asyncio.run``.
"""

import asyncio
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from walkable.infrastructure.database import Base
from walkable.infrastructure.models import UserModel
from walkable.infrastructure.repositories import TourRepository


def _make_engine(tmp_path):
    return create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'walkable.db'}",
        echo=False,
        poolclass=NullPool,
    )


def _make_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def _create_schema(engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def seed_tour(
    session_factory,
    *,
    stops: Optional[list[dict]] = None,
    latitude: str = "40.1074",
    longitude: str = "-88.2272",
    title: str = "Main Quad Highlights",
    username: str = "walker",
) -> dict:
    """Insert one user and one tour; return their ids and the stop ids in order."""
    if stops is None:
        stops = [
            {"title": "Alma Mater", "latitude": "40.1099", "longitude": "-88.2284",
             "media_type": "audio", "audio_file_url": "https://m.test/alma.mp3", "order": 1},
            {"title": "Foellinger", "latitude": "40.1059", "longitude": "-88.2273",
             "media_type": "video", "video_file_url": "https://m.test/foellinger.mp4", "order": 2},
            {"title": "Morrow Plots", "latitude": "40.1043", "longitude": "-88.2262",
             "media_type": "audio", "audio_file_url": "https://m.test/morrow.mp3", "order": 3},
        ]
    async with session_factory() as session:
        user = UserModel(username=username, email=f"{username}@example.com")
        session.add(user)
        await session.flush()

        repo = TourRepository(session)
        tour = await repo.create_tour_with_stops(
            creator_id=user.id,
            title=title,
            description="A walk",
            category="history",
            latitude=latitude,
            longitude=longitude,
            stops=[{"description": "", **s} for s in stops],
        )
        stop_ids = [s.id for s in await repo.get_stops(tour.id)]
        await session.commit()
        return {"user_id": user.id, "tour_id": tour.id, "stop_ids": stop_ids}


# ── Async fixtures (pytest-asyncio) ───────────────────────────────────


@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = _make_engine(tmp_path)
    await _create_schema(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return _make_factory(engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient backed by the per-test SQLite database."""
    from walkable.api.app import create_app
    from walkable.api.dependencies import get_db, get_session_factory
    from walkable.api.middleware import limiter

    async def _test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    limiter.reset()
    app = create_app()
    app.dependency_overrides[get_db] = _test_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ── Sync fixtures (Starlette TestClient / WebSockets) ─────────────────


@pytest.fixture
def sync_session_factory(tmp_path):
    eng = _make_engine(tmp_path)
    asyncio.run(_create_schema(eng))
    yield _make_factory(eng)
    asyncio.run(eng.dispose())


@pytest.fixture
def ws_client(sync_session_factory):
    from fastapi.testclient import TestClient

    from walkable.api.app import create_app
    from walkable.api.dependencies import get_session_factory

    app = create_app()
    app.dependency_overrides[get_session_factory] = lambda: sync_session_factory
    with TestClient(app) as tc:
        yield tc
