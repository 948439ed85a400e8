from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from app.core.config import DEFAULT_PLAYLIST_TITLE, YOUTUBE_API_URL, YOUTUBE_THUMB_URL, Settings
from app.core.errors import (
    NotFoundError,
    PlaylistParseError,
    UpstreamAuthError,
    UpstreamError,
    UpstreamTimeoutError,
)
from app.schemas.playlist import PlaylistSong, ResolvedPlaylist


logger = logging.getLogger(__name__)

# заглушки, которые YouTube оставляет вместо удалённых/приватных видео
PLACEHOLDER_TITLES = {"Deleted video", "Private video"}


def default_thumbnail(video_id: str) -> str:
    return YOUTUBE_THUMB_URL.format(video_id=video_id)


def as_text(value: Any, what: str) -> Optional[str]:
    """Строка или None. Всё остальное от YouTube считаем сломанным ответом."""
    if value is None or isinstance(value, str):
        return value
    raise PlaylistParseError(f"Unexpected {what} in YouTube response: {type(value).__name__}")


def _clean(d: dict) -> dict:
    # убираем None и пустые строки, чтобы не слать pageToken= и т.п.
    return {k: v for k, v in d.items() if v not in (None, "")}


def _error_message(r: httpx.Response) -> Optional[str]:
    try:
        body = r.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return body["error"].get("message")
    return None


async def api_get(client: httpx.AsyncClient, path: str, params: dict, *, timeout: float) -> dict:
    """GET к YouTube Data API v3 с маппингом ошибок в нашу таксономию."""
    try:
        r = await client.get(f"{YOUTUBE_API_URL}{path}", params=_clean(params), timeout=timeout)
    except httpx.TimeoutException as e:
        raise UpstreamTimeoutError("YouTube API request timed out. Please try again.") from e
    except httpx.HTTPError as e:
        raise UpstreamError(f"YouTube API request failed: {e}") from e

    if r.status_code == 403:
        msg = _error_message(r) or "API key is invalid or quota exceeded"
        raise UpstreamAuthError(f"YouTube API error: {msg}. Check YOUTUBE_API_KEY.")
    if r.status_code == 404:
        raise NotFoundError("Playlist not found. Make sure it is set to Public on YouTube.")
    if r.status_code >= 400:
        raise UpstreamError(_error_message(r) or f"YouTube API returned HTTP {r.status_code}")

    try:
        data = r.json()
    except ValueError as e:
        raise PlaylistParseError("YouTube API returned a non-JSON response") from e
    if not isinstance(data, dict):
        raise PlaylistParseError("YouTube API returned an unexpected payload")
    return data


def _pick_thumbnail(thumbnails: Any, video_id: str) -> str:
    # medium -> default -> собираем руками
    if isinstance(thumbnails, dict):
        for size in ("medium", "default"):
            thumb = thumbnails.get(size)
            url = thumb.get("url") if isinstance(thumb, dict) else None
            if isinstance(url, str) and url:
                return url
    return default_thumbnail(video_id)


def parse_playlist_items(payload: dict) -> tuple[list[PlaylistSong], Optional[str]]:
    """Одна страница playlistItems -> (песни, nextPageToken)."""
    items = payload.get("items", [])
    if not isinstance(items, list):
        raise PlaylistParseError("playlistItems response has no item list")

    songs: list[PlaylistSong] = []
    for item in items:
        snippet = item.get("snippet") if isinstance(item, dict) else None
        if not isinstance(snippet, dict):
            continue
        resource = snippet.get("resourceId") or {}
        if not isinstance(resource, dict):
            raise PlaylistParseError("Playlist item has malformed resourceId")
        video_id = as_text(resource.get("videoId"), "videoId")
        title = as_text(snippet.get("title"), "title")
        if not video_id or title in PLACEHOLDER_TITLES:
            continue
        songs.append(
            PlaylistSong(
                id=video_id,
                title=title or "Unknown Title",
                thumbnail=_pick_thumbnail(snippet.get("thumbnails"), video_id),
            )
        )

    next_token = payload.get("nextPageToken")
    return songs, next_token if isinstance(next_token, str) else None


def parse_playlist_title(payload: dict) -> Optional[str]:
    items = payload.get("items") or []
    if not isinstance(items, list) or not items:
        return None
    snippet = items[0].get("snippet") if isinstance(items[0], dict) else None
    if not isinstance(snippet, dict):
        return None
    return as_text(snippet.get("title"), "playlist title") or None


async def fetch_playlist_title(client: httpx.AsyncClient, playlist_id: str, config: Settings) -> str:
    """Название плейлиста. Любая ошибка тут не валит весь резолв."""
    try:
        payload = await api_get(
            client,
            "/playlists",
            {"part": "snippet", "id": playlist_id, "key": config.YOUTUBE_API_KEY},
            timeout=config.YOUTUBE_TITLE_TIMEOUT,
        )
        return parse_playlist_title(payload) or DEFAULT_PLAYLIST_TITLE
    except (UpstreamError, NotFoundError) as e:
        logger.warning("[playlist %s] title lookup failed: %s", playlist_id, e)
        return DEFAULT_PLAYLIST_TITLE


async def fetch_from_api(
    client: httpx.AsyncClient,
    playlist_id: str,
    config: Settings,
) -> Optional[ResolvedPlaylist]:
    """Официальный API: постранично, не больше API_MAX_PAGES страниц."""
    songs: list[PlaylistSong] = []
    page_token: Optional[str] = None
    page = 0

    while True:
        payload = await api_get(
            client,
            "/playlistItems",
            {
                "part": "snippet",
                "playlistId": playlist_id,
                "maxResults": config.API_PAGE_SIZE,
                "key": config.YOUTUBE_API_KEY,
                "pageToken": page_token,
            },
            timeout=config.YOUTUBE_ITEMS_TIMEOUT,
        )
        page_songs, page_token = parse_playlist_items(payload)
        songs.extend(page_songs)
        page += 1
        if not page_token or page >= config.API_MAX_PAGES:
            break

    if not songs:
        return None

    title = await fetch_playlist_title(client, playlist_id, config)
    return ResolvedPlaylist(id=playlist_id, title=title, songs=tuple(songs), source="api")
