from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

import httpx

from app.core.config import DEFAULT_PLAYLIST_TITLE, YOUTUBE_WEB_URL, Settings
from app.core.errors import PlaylistParseError, UpstreamError, UpstreamTimeoutError
from app.schemas.playlist import PlaylistSong, ResolvedPlaylist
from app.services.youtube_api import as_text, default_thumbnail


logger = logging.getLogger(__name__)

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept-Language": "en-US,en;q=0.9",
}

INITIAL_DATA_RE = re.compile(r'(?:var ytInitialData|window\["ytInitialData"\])\s*=\s*')

VIDEO_LIST_PATH = (
    "contents", "twoColumnBrowseResultsRenderer", "tabs", 0, "tabRenderer", "content",
    "sectionListRenderer", "contents", 0, "itemSectionRenderer", "contents", 0,
    "playlistVideoListRenderer", "contents",
)
TITLE_PATH = (
    "sidebar", "playlistSidebarRenderer", "items", 0,
    "playlistSidebarPrimaryInfoRenderer", "title", "runs", 0, "text",
)


def _dig(obj: Any, path: tuple) -> Any:
    """Идём по вложенным dict/list, на первом промахе — None."""
    for key in path:
        if isinstance(key, int):
            if not isinstance(obj, list) or len(obj) <= key:
                return None
        elif not isinstance(obj, dict):
            return None
        obj = obj[key] if isinstance(key, int) else obj.get(key)
        if obj is None:
            return None
    return obj


def extract_initial_data(html: str) -> dict:
    m = INITIAL_DATA_RE.search(html)
    if not m:
        raise PlaylistParseError("Playlist page has no embedded data")
    try:
        # raw_decode сам находит конец объекта, регэксп по "};" тут ненадёжен
        data, _ = json.JSONDecoder().raw_decode(html, m.end())
    except ValueError as e:
        raise PlaylistParseError("Playlist page data is not valid JSON") from e
    if not isinstance(data, dict):
        raise PlaylistParseError("Playlist page data has unexpected shape")
    return data


def _video_title(video: dict) -> str:
    return (
        as_text(_dig(video, ("title", "runs", 0, "text")), "title")
        or as_text(_dig(video, ("title", "accessibility", "accessibilityData", "label")), "title")
        or "Unknown Title"
    )


def parse_initial_data(data: dict, playlist_id: str) -> Optional[ResolvedPlaylist]:
    contents = _dig(data, VIDEO_LIST_PATH)
    if not isinstance(contents, list):
        raise PlaylistParseError("Playlist page layout not recognised")

    songs: list[PlaylistSong] = []
    for item in contents:
        video = item.get("playlistVideoRenderer") if isinstance(item, dict) else None
        if not isinstance(video, dict):
            continue
        video_id = as_text(video.get("videoId"), "videoId")
        if not video_id:
            continue
        thumb = _dig(video, ("thumbnail", "thumbnails", 0, "url"))
        songs.append(
            PlaylistSong(
                id=video_id,
                title=_video_title(video),
                thumbnail=thumb if isinstance(thumb, str) and thumb else default_thumbnail(video_id),
            )
        )

    if not songs:
        return None
    return ResolvedPlaylist(
        id=playlist_id,
        title=as_text(_dig(data, TITLE_PATH), "playlist title") or DEFAULT_PLAYLIST_TITLE,
        songs=tuple(songs),
        source="scrape",
    )


async def fetch_by_scraping(
    client: httpx.AsyncClient,
    playlist_id: str,
    config: Settings,
) -> Optional[ResolvedPlaylist]:
    """Последний шанс: тянем публичную страницу и достаём ytInitialData."""
    try:
        r = await client.get(
            f"{YOUTUBE_WEB_URL}/playlist",
            params={"list": playlist_id},
            headers=BROWSER_HEADERS,
            timeout=config.YOUTUBE_SCRAPE_TIMEOUT,
            follow_redirects=True,
        )
        r.raise_for_status()
    except httpx.TimeoutException as e:
        raise UpstreamTimeoutError("YouTube page request timed out. Please try again.") from e
    except httpx.HTTPError as e:
        raise UpstreamError(f"Could not load playlist page: {e}") from e

    return parse_initial_data(extract_initial_data(r.text), playlist_id)
