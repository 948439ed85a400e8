from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.deps import get_resolver
from app.schemas.playlist import PlaylistSong
from app.services.playlist_resolver import PlaylistResolver


router = APIRouter(prefix="/api/playlist", tags=["playlist"])


class PlaylistOut(BaseModel):
    id: str
    title: str
    songs: list[PlaylistSong]


# :path — чтобы пролезал и полный URL плейлиста, а не только id
@router.get("/{playlist_id:path}", response_model=PlaylistOut)
async def get_playlist(
    playlist_id: str,
    resolver: PlaylistResolver = Depends(get_resolver),
):
    playlist = await resolver.resolve(playlist_id)
    return PlaylistOut(id=playlist.id, title=playlist.title, songs=list(playlist.songs))
