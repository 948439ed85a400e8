from __future__ import annotations

from dataclasses import dataclass, field
import logging
import random
import time
import uuid
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError, SessionError, ValidationError
from app.models.game import Game
from app.schemas.game import GameCreate, GameOut
from app.schemas.session import SessionOut, SummaryOut
from app.services.leaderboard import create_game, get_leaderboard
from app.services.playlist_cache import PlaylistCache
from app.services.playlist_resolver import PlaylistResolver, extract_playlist_id
from app.services.quiz_engine import QuizEngine, QuizSettings, QuizState
from app.services.scheduler import Scheduler


logger = logging.getLogger(__name__)


@dataclass
class QuizSession:
    id: str
    engine: QuizEngine
    cache: PlaylistCache = field(default_factory=PlaylistCache)
    submit_pending: bool = False
    submitted: bool = False
    last_seen: float = 0.0

    @property
    def playlist_id(self) -> Optional[str]:
        return self.engine.playlist.id if self.engine.playlist else None


class SessionRegistry:
    """Живые партии в памяти процесса, по одной QuizEngine на сессию.

    Сессия, к которой не обращались дольше idle_ttl секунд, выкидывается
    при следующем create(): брошенные и доигранные партии не копятся.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        rng_factory=random.Random,
        *,
        idle_ttl: float = 1800.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._scheduler = scheduler
        self._rng_factory = rng_factory
        self._idle_ttl = idle_ttl
        self._clock = clock
        self._sessions: Dict[str, QuizSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, quiz_settings: QuizSettings) -> QuizSession:
        self.sweep()
        sid = uuid.uuid4().hex
        engine = QuizEngine(quiz_settings, scheduler=self._scheduler, rng=self._rng_factory())
        qs = QuizSession(id=sid, engine=engine, last_seen=self._clock())
        self._sessions[sid] = qs
        return qs

    def get(self, sid: str) -> QuizSession:
        qs = self._sessions.get(sid)
        if qs is None:
            raise NotFoundError("Game session not found")
        qs.last_seen = self._clock()
        return qs

    def drop(self, sid: str) -> None:
        qs = self._sessions.pop(sid, None)
        if qs is not None:
            qs.engine.abort()

    def sweep(self) -> int:
        now = self._clock()
        stale = [sid for sid, qs in self._sessions.items() if now - qs.last_seen > self._idle_ttl]
        for sid in stale:
            self.drop(sid)
        if stale:
            logger.info("dropped %d idle sessions", len(stale))
        return len(stale)

    def invalidate_leaderboard(self, playlist_id: str) -> None:
        # новый результат по плейлисту: кэш таблицы устарел у всех сессий
        for qs in self._sessions.values():
            qs.cache.invalidate(("leaderboard", playlist_id))

    def close_all(self) -> None:
        for sid in list(self._sessions):
            self.drop(sid)


async def start_session(
    registry: SessionRegistry,
    resolver: PlaylistResolver,
    raw_playlist: str,
    quiz_settings: QuizSettings,
) -> QuizSession:
    playlist_id = extract_playlist_id(raw_playlist)
    qs = registry.create(quiz_settings)
    qs.engine.begin_loading()
    try:
        playlist = await qs.cache.get_or_load(
            ("playlist", playlist_id), lambda: resolver.resolve(playlist_id)
        )
    except Exception:
        registry.drop(qs.id)
        raise
    qs.engine.load(playlist)
    logger.info("session %s started for playlist %s", qs.id, playlist_id)
    return qs


async def session_leaderboard(qs: QuizSession, db: AsyncSession) -> List[GameOut]:
    playlist_id = qs.playlist_id
    if playlist_id is None:
        raise SessionError("Playlist is not loaded yet")

    async def load() -> List[GameOut]:
        rows = await get_leaderboard(db, playlist_id)
        return [GameOut.model_validate(g) for g in rows]

    return await qs.cache.get_or_load(("leaderboard", playlist_id), load)


async def submit_session_result(
    registry: SessionRegistry,
    qs: QuizSession,
    db: AsyncSession,
    player_name: str,
) -> Game:
    """Сохраняем итог партии. Одна отправка на сессию, повторная — 409."""
    if qs.engine.state != QuizState.FINISHED:
        raise SessionError("Game is not finished yet")
    if qs.submit_pending:
        raise SessionError("Score submission is already in progress")
    if qs.submitted:
        raise SessionError("Score was already submitted for this game")

    summary = qs.engine.summary()
    try:
        data = GameCreate(
            player_name=player_name,
            playlist_id=qs.playlist_id,
            score=summary.score,
            total_questions=summary.total_rounds,
        )
    except PydanticValidationError as e:
        err = e.errors()[0]
        raise ValidationError(err["msg"], field="playerName") from e

    qs.submit_pending = True
    try:
        game = await create_game(db, data)
    finally:
        qs.submit_pending = False
    qs.submitted = True
    registry.invalidate_leaderboard(data.playlist_id)
    return game


async def restart_session(qs: QuizSession, resolver: PlaylistResolver) -> QuizSession:
    """Play again: тот же плейлист и настройки, плейлист берём из кэша сессии."""
    playlist_id = qs.playlist_id
    if playlist_id is None:
        raise SessionError("Playlist is not loaded yet")
    if qs.engine.state != QuizState.FINISHED:
        raise SessionError("Game is not finished yet")
    playlist = await qs.cache.get_or_load(
        ("playlist", playlist_id), lambda: resolver.resolve(playlist_id)
    )
    qs.engine.begin_loading()
    qs.engine.load(playlist)
    qs.submitted = False
    logger.info("session %s restarted", qs.id)
    return qs


def session_snapshot(qs: QuizSession) -> SessionOut:
    engine = qs.engine
    r = engine.round
    song = engine.current_song
    showing_round = engine.state in (QuizState.PLAYING, QuizState.RESULT)

    summary = None
    if engine.state == QuizState.FINISHED:
        s = engine.summary()
        summary = SummaryOut(
            score=s.score, total_rounds=s.total_rounds, correct=s.correct, accuracy=s.accuracy
        )

    return SessionOut(
        id=qs.id,
        state=engine.state,
        mode=engine.settings.mode,
        playlist_id=qs.playlist_id,
        playlist_title=engine.playlist.title if engine.playlist else None,
        round=r.round_number,
        total_rounds=r.total_rounds,
        score=r.score,
        time_limit=engine.settings.time_limit,
        time_remaining=r.time_remaining if engine.state == QuizState.PLAYING else None,
        video_id=song.id if showing_round and song else None,
        choices=list(r.choices) if showing_round else [],
        answer=song if engine.state == QuizState.RESULT else None,
        selected_answer=r.selected_answer if engine.state == QuizState.RESULT else None,
        is_correct=r.is_correct if engine.state == QuizState.RESULT else None,
        summary=summary,
        submitted=qs.submitted,
    )
