from __future__ import annotations

from typing import Callable, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api.deps import get_registry, get_resolver
from app.core.db import get_session
from app.main import app
from app.models.base import Base
from app.schemas.playlist import PlaylistSong, ResolvedPlaylist
from app.services.sessions import SessionRegistry


class FakeHandle:
    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Ручные часы: колбэки срабатывают только внутри advance()."""

    def __init__(self) -> None:
        self.now = 0.0
        self.handles: List[FakeHandle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeHandle:
        h = FakeHandle(self.now + delay, callback)
        self.handles.append(h)
        return h

    @property
    def pending(self) -> List[FakeHandle]:
        return [h for h in self.handles if not h.cancelled and not h.fired]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self.pending if h.when <= target]
            if not due:
                break
            h = min(due, key=lambda x: x.when)
            self.now = h.when
            h.fired = True
            h.callback()
        self.now = target


def make_playlist(n: int = 5, playlist_id: str = "PLtest", title: str = "Test Mix") -> ResolvedPlaylist:
    songs = tuple(
        PlaylistSong(
            id=f"vid{i:08d}",
            title=f"Song Number {i} (Official Video)",
            thumbnail=f"https://img.example/{i}.jpg",
        )
        for i in range(n)
    )
    return ResolvedPlaylist(id=playlist_id, title=title, songs=songs)


class FakeResolver:
    def __init__(self, playlist: Optional[ResolvedPlaylist] = None, error: Optional[Exception] = None):
        self.playlist = playlist or make_playlist()
        self.error = error
        self.calls: List[str] = []

    async def resolve(self, raw_id: str) -> ResolvedPlaylist:
        self.calls.append(raw_id)
        if self.error is not None:
            raise self.error
        return self.playlist


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def playlist() -> ResolvedPlaylist:
    return make_playlist()


@pytest.fixture
async def db_sessionmaker():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    await engine.dispose()


@pytest.fixture
def fake_resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def registry(scheduler) -> SessionRegistry:
    return SessionRegistry(scheduler)


@pytest.fixture
async def client(db_sessionmaker, fake_resolver, registry):
    async def _session():
        async with db_sessionmaker() as s:
            yield s

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_resolver] = lambda: fake_resolver
    app.dependency_overrides[get_registry] = lambda: registry
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
