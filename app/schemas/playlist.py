from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class PlaylistSong(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)   # videoId на YouTube
    title: str
    thumbnail: str


class ResolvedPlaylist(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    songs: tuple[PlaylistSong, ...] = Field(..., min_length=1)
    # какой стратегией получили: наружу не отдаём
    source: Literal["api", "library", "scrape"] = Field(default="api", exclude=True)
