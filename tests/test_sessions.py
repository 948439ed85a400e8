import pytest

from app.core.errors import NotFoundError
from app.services.quiz_engine import QuizSettings
from app.services.sessions import SessionRegistry

from conftest import FakeScheduler, make_playlist


class Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_idle_sessions_are_dropped_on_create():
    clock = Clock()
    registry = SessionRegistry(FakeScheduler(), idle_ttl=60.0, clock=clock)
    old = registry.create(QuizSettings())
    active = registry.create(QuizSettings())

    clock.now += 45
    registry.get(active.id)
    clock.now += 30

    registry.create(QuizSettings())

    assert len(registry) == 2
    with pytest.raises(NotFoundError):
        registry.get(old.id)
    assert registry.get(active.id) is active


def test_sweep_cancels_engine_timers():
    clock = Clock()
    scheduler = FakeScheduler()
    registry = SessionRegistry(scheduler, idle_ttl=10.0, clock=clock)
    qs = registry.create(QuizSettings())
    qs.engine.begin_loading()
    qs.engine.load(make_playlist(3))
    assert qs.engine.pending_timers == ["announce"]

    clock.now += 11
    assert registry.sweep() == 1
    assert len(registry) == 0
    assert scheduler.pending == []


async def test_invalidate_leaderboard_touches_every_session():
    registry = SessionRegistry(FakeScheduler())
    sessions = [registry.create(QuizSettings()), registry.create(QuizSettings())]
    loads = []

    def loader(tag):
        async def load():
            loads.append(tag)
            return [tag]
        return load

    for qs in sessions:
        await qs.cache.get_or_load(("leaderboard", "PL1"), loader("PL1"))
        await qs.cache.get_or_load(("leaderboard", "PL2"), loader("PL2"))
    assert loads == ["PL1", "PL2", "PL1", "PL2"]

    registry.invalidate_leaderboard("PL1")

    for qs in sessions:
        await qs.cache.get_or_load(("leaderboard", "PL1"), loader("PL1"))
        await qs.cache.get_or_load(("leaderboard", "PL2"), loader("PL2"))
    assert loads == ["PL1", "PL2", "PL1", "PL2", "PL1", "PL1"]
