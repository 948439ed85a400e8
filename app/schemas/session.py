from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.schemas.playlist import PlaylistSong
from app.services.quiz_engine import ALL_SONGS, AnswerMode, QuizState


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SessionCreate(_CamelModel):
    playlist: str = Field(..., min_length=1)     # id или полный URL
    count: int = Field(default=15, ge=1, le=ALL_SONGS)
    time_limit: int = Field(default=30, ge=0, le=600)
    mode: AnswerMode = AnswerMode.FREE_TEXT


class GuessIn(_CamelModel):
    guess: str = ""


class ChoiceIn(_CamelModel):
    choice: str


class SubmitIn(_CamelModel):
    player_name: str


class SummaryOut(_CamelModel):
    score: int
    total_rounds: int
    correct: int
    accuracy: int


class SessionOut(_CamelModel):
    id: str
    state: QuizState
    mode: AnswerMode
    playlist_id: Optional[str] = None
    playlist_title: Optional[str] = None
    round: int = 0
    total_rounds: int = 0
    score: int = 0
    time_limit: int = 0
    time_remaining: Optional[int] = None
    # пока идёт раунд отдаём только videoId для плеера, название — после ответа
    video_id: Optional[str] = None
    choices: List[str] = Field(default_factory=list)
    answer: Optional[PlaylistSong] = None
    selected_answer: Optional[str] = None
    is_correct: Optional[bool] = None
    summary: Optional[SummaryOut] = None
    submitted: bool = False
