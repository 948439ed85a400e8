from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_core import PydanticCustomError


PLAYER_NAME_MAX = 15


class GameCreate(BaseModel):
    # на проводе camelCase, как ждёт фронт
    model_config = ConfigDict(populate_by_name=True)

    player_name: str = Field(..., alias="playerName")
    playlist_id: str = Field(..., alias="playlistId", min_length=1)
    score: int = Field(..., ge=0)
    total_questions: int = Field(..., alias="totalQuestions", gt=0)

    @field_validator("player_name", mode="before")
    @classmethod
    def _trim_player_name(cls, v):
        if not isinstance(v, str):
            return v
        v = v.strip()
        if not v:
            raise PydanticCustomError("player_name_empty", "Player name is required")
        if len(v) > PLAYER_NAME_MAX:
            raise PydanticCustomError(
                "player_name_too_long",
                "Player name must be at most {max} characters",
                {"max": PLAYER_NAME_MAX},
            )
        return v


class GameOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: int
    player_name: str = Field(..., alias="playerName")
    playlist_id: str = Field(..., alias="playlistId")
    score: int
    total_questions: int = Field(..., alias="totalQuestions")
    created_at: datetime = Field(..., alias="createdAt")
