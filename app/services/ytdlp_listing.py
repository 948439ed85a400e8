from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import yt_dlp
from yt_dlp.utils import DownloadError

from app.core.config import DEFAULT_PLAYLIST_TITLE, YOUTUBE_WEB_URL, Settings
from app.core.errors import PlaylistParseError, UpstreamError, UpstreamTimeoutError
from app.schemas.playlist import PlaylistSong, ResolvedPlaylist
from app.services.youtube_api import as_text, default_thumbnail


logger = logging.getLogger(__name__)


def _extract_flat(url: str, max_items: int) -> dict:
    ydl_opts = {
        "extract_flat": True,
        "quiet": True,
        "no_warnings": True,
        "skip_download": True,
        "playlistend": max_items,
    }
    with yt_dlp.YoutubeDL(ydl_opts) as ydl:
        return ydl.extract_info(url, download=False)


def _best_thumbnail(entry: dict, video_id: str) -> str:
    thumbs = entry.get("thumbnails")
    # yt-dlp сортирует миниатюры по качеству, последняя — лучшая
    if isinstance(thumbs, list):
        for t in reversed(thumbs):
            if isinstance(t, dict) and isinstance(t.get("url"), str) and t["url"]:
                return t["url"]
    single = entry.get("thumbnail")
    return single if isinstance(single, str) and single else default_thumbnail(video_id)


def parse_ytdlp_info(info: Any, playlist_id: str, max_items: int) -> Optional[ResolvedPlaylist]:
    if not isinstance(info, dict):
        raise PlaylistParseError("yt-dlp returned no playlist info")

    entries = info.get("entries") or []
    if not isinstance(entries, list):
        raise PlaylistParseError("yt-dlp returned entries of unexpected shape")

    songs: list[PlaylistSong] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        video_id = as_text(entry.get("id"), "id")
        if not video_id:
            continue
        songs.append(
            PlaylistSong(
                id=video_id,
                title=as_text(entry.get("title"), "title") or "Unknown Title",
                thumbnail=_best_thumbnail(entry, video_id),
            )
        )
        if len(songs) >= max_items:
            break

    if not songs:
        return None
    return ResolvedPlaylist(
        id=playlist_id,
        title=as_text(info.get("title"), "playlist title") or DEFAULT_PLAYLIST_TITLE,
        songs=tuple(songs),
        source="library",
    )


async def fetch_with_ytdlp(playlist_id: str, config: Settings) -> Optional[ResolvedPlaylist]:
    """Листинг через yt-dlp (flat, без скачивания). yt-dlp синхронный — гоняем в треде."""
    url = f"{YOUTUBE_WEB_URL}/playlist?list={playlist_id}"
    try:
        info = await asyncio.wait_for(
            asyncio.to_thread(_extract_flat, url, config.YTDLP_MAX_ITEMS),
            timeout=config.YTDLP_TIMEOUT,
        )
    except asyncio.TimeoutError as e:
        raise UpstreamTimeoutError("Playlist listing timed out. Please try again.") from e
    except DownloadError as e:
        raise UpstreamError(f"Could not list playlist: {e}") from e

    return parse_ytdlp_info(info, playlist_id, config.YTDLP_MAX_ITEMS)
