"""Машина состояний одной партии: раунды, таймер, подсчёт очков."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
import math
import random
from typing import Callable, Dict, List, Optional, Set, Tuple

from app.core.errors import SessionError
from app.schemas.playlist import PlaylistSong, ResolvedPlaylist
from app.services.round_builder import (
    build_choices,
    is_correct_choice,
    is_correct_guess,
    pick_song_index,
)
from app.services.scheduler import Cancellable, Scheduler


logger = logging.getLogger(__name__)

POINTS_PER_ROUND = 100
ALL_SONGS = 9999   # "∞" в выборе количества песен
UNTIMED = 0        # "∞" в выборе времени
TICK_SECONDS = 1.0


class QuizState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    ANNOUNCING = "announcing"
    PLAYING = "playing"
    RESULT = "result"
    FINISHED = "finished"


class AnswerMode(str, Enum):
    FREE_TEXT = "free_text"
    MULTIPLE_CHOICE = "multiple_choice"


@dataclass
class QuizSettings:
    total_requested: int = 15
    time_limit: int = 30            # секунд на раунд, UNTIMED = без таймера
    mode: AnswerMode = AnswerMode.FREE_TEXT
    announce_delay: float = 2.0
    advance_delay: float = 6.0


@dataclass
class RoundState:
    round_number: int = 0
    total_rounds: int = 0
    score: int = 0
    correct_count: int = 0
    played_indices: Set[int] = field(default_factory=set)
    current_song_index: Optional[int] = None
    choices: List[str] = field(default_factory=list)
    selected_answer: Optional[str] = None
    is_correct: Optional[bool] = None
    time_remaining: Optional[int] = None


@dataclass(frozen=True)
class QuizSummary:
    score: int
    total_rounds: int
    correct: int
    accuracy: int


def compute_total_rounds(requested: int, playlist_length: int) -> int:
    if requested >= ALL_SONGS or requested <= 0:
        return playlist_length
    return min(requested, playlist_length)


def compute_accuracy(score: int, total_rounds: int) -> int:
    if total_rounds <= 0:
        return 0
    # половина округляется вверх, как Math.round на фронте
    return math.floor(score / (total_rounds * POINTS_PER_ROUND) * 100 + 0.5)


class QuizEngine:
    """
    IDLE -> LOADING -> ANNOUNCING -> PLAYING <-> RESULT -> ... -> FINISHED

    Все отложенные действия (объявление, тик таймера, автопереход) —
    отменяемые задачи, привязанные к токену текущего раунда: любой переход,
    который их перекрывает, отменяет их, а запоздавший колбэк со старым
    токеном просто игнорируется.
    """

    def __init__(
        self,
        quiz_settings: Optional[QuizSettings] = None,
        *,
        scheduler: Scheduler,
        rng: Optional[random.Random] = None,
        player: Optional[Callable[[PlaylistSong], None]] = None,
        on_correct: Optional[Callable[[PlaylistSong], None]] = None,
    ) -> None:
        self.settings = quiz_settings or QuizSettings()
        self._scheduler = scheduler
        self._rng = rng or random.Random()
        self._player = player
        self._on_correct = on_correct

        self.state = QuizState.IDLE
        self.playlist: Optional[ResolvedPlaylist] = None
        self.round = RoundState()
        self._round_token = 0
        self._timers: Dict[str, Tuple[int, Cancellable]] = {}

    # ---------- таймеры ----------

    def _schedule(self, name: str, delay: float, callback: Callable[[], None]) -> None:
        self._cancel(name)
        token = self._round_token

        def fire() -> None:
            current = self._timers.get(name)
            if current is not None and current[0] == token:
                del self._timers[name]
            if token != self._round_token:
                return
            callback()

        self._timers[name] = (token, self._scheduler.call_later(delay, fire))

    def _cancel(self, name: str) -> None:
        entry = self._timers.pop(name, None)
        if entry is not None:
            entry[1].cancel()

    def _cancel_all(self) -> None:
        for name in list(self._timers):
            self._cancel(name)

    @property
    def pending_timers(self) -> List[str]:
        return sorted(self._timers)

    def _require(self, *states: QuizState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise SessionError(f"Action not allowed in state '{self.state.value}' (expected {allowed})")

    # ---------- жизненный цикл ----------

    @property
    def current_song(self) -> Optional[PlaylistSong]:
        if self.playlist is None or self.round.current_song_index is None:
            return None
        return self.playlist.songs[self.round.current_song_index]

    def begin_loading(self) -> None:
        self._require(QuizState.IDLE, QuizState.FINISHED)
        self._cancel_all()
        self.state = QuizState.LOADING

    def load(self, playlist: ResolvedPlaylist) -> None:
        self._require(QuizState.LOADING)
        self.playlist = playlist
        self.round = RoundState(
            total_rounds=compute_total_rounds(self.settings.total_requested, len(playlist.songs)),
        )
        self._round_token += 1
        self.state = QuizState.ANNOUNCING
        logger.info(
            "quiz loaded: playlist=%s rounds=%d mode=%s",
            playlist.id, self.round.total_rounds, self.settings.mode.value,
        )
        self._schedule("announce", self.settings.announce_delay, self.start_round)

    def start_round(self) -> None:
        """Первый раунд: по таймеру заставки или по кнопке. Дальше только next_round."""
        self._require(QuizState.ANNOUNCING)
        self._begin_round()

    def _begin_round(self) -> None:
        assert self.playlist is not None
        self._cancel_all()
        self._round_token += 1

        songs = self.playlist.songs
        idx = pick_song_index(len(songs), self.round.played_indices, self._rng)
        r = self.round
        r.round_number += 1
        r.current_song_index = idx
        r.played_indices.add(idx)
        r.selected_answer = None
        r.is_correct = None
        r.choices = (
            build_choices(songs, idx, self._rng)
            if self.settings.mode == AnswerMode.MULTIPLE_CHOICE
            else []
        )
        r.time_remaining = self.settings.time_limit if self.settings.time_limit != UNTIMED else None
        self.state = QuizState.PLAYING

        if self._player is not None:
            self._player(songs[idx])
        if r.time_remaining is not None:
            self._schedule("tick", TICK_SECONDS, self.tick)

    def tick(self) -> None:
        if self.state != QuizState.PLAYING or self.round.time_remaining is None:
            return
        self.round.time_remaining -= 1
        if self.round.time_remaining <= 0:
            self.round.time_remaining = 0
            logger.debug("round %d: time is up", self.round.round_number)
            self._finish_round("", False)
        else:
            self._schedule("tick", TICK_SECONDS, self.tick)

    # ---------- ответы ----------

    def submit_guess(self, guess: str) -> bool:
        self._require(QuizState.PLAYING)
        if self.settings.mode != AnswerMode.FREE_TEXT:
            raise SessionError("This game expects a choice, not a typed guess")
        song = self.current_song
        assert song is not None
        correct = is_correct_guess(guess, song.title)
        self._finish_round(guess, correct)
        return correct

    def submit_choice(self, choice: str) -> bool:
        self._require(QuizState.PLAYING)
        if self.settings.mode != AnswerMode.MULTIPLE_CHOICE:
            raise SessionError("This game expects a typed guess, not a choice")
        if choice not in self.round.choices:
            raise SessionError("Choice is not one of the offered options")
        song = self.current_song
        assert song is not None
        correct = is_correct_choice(choice, song.title)
        self._finish_round(choice, correct)
        return correct

    def skip(self) -> None:
        self._require(QuizState.PLAYING)
        self._finish_round("", False)

    def _finish_round(self, answer: str, correct: bool) -> None:
        self._cancel_all()
        r = self.round
        r.selected_answer = answer
        r.is_correct = correct
        if correct:
            r.score += POINTS_PER_ROUND
            r.correct_count += 1
        self.state = QuizState.RESULT

        song = self.current_song
        if correct and self._on_correct is not None and song is not None:
            self._on_correct(song)
        self._schedule("advance", self.settings.advance_delay, self.next_round)

    def next_round(self) -> None:
        self._require(QuizState.RESULT)
        self._cancel_all()
        if self.round.round_number >= self.round.total_rounds:
            self._round_token += 1
            self.state = QuizState.FINISHED
            logger.info(
                "quiz finished: playlist=%s score=%d/%d",
                self.playlist.id if self.playlist else None,
                self.round.score, self.round.total_rounds * POINTS_PER_ROUND,
            )
            return
        self._begin_round()

    def abort(self) -> None:
        """Уход со страницы: гасим всё, что запланировано."""
        self._cancel_all()
        self._round_token += 1

    def summary(self) -> QuizSummary:
        r = self.round
        return QuizSummary(
            score=r.score,
            total_rounds=r.total_rounds,
            correct=r.correct_count,
            accuracy=compute_accuracy(r.score, r.total_rounds),
        )
