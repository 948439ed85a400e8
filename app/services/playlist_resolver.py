from __future__ import annotations

import logging
from functools import partial
from typing import Awaitable, Callable, Optional, Sequence
from urllib.parse import parse_qs, urlparse

import httpx

from app.core.config import Settings, settings
from app.core.errors import (
    ConfigurationError,
    NotFoundError,
    UpstreamAuthError,
    UpstreamError,
    UpstreamTimeoutError,
    ValidationError,
)
from app.schemas.playlist import ResolvedPlaylist
from app.services.playlist_scraper import fetch_by_scraping
from app.services.youtube_api import fetch_from_api
from app.services.ytdlp_listing import fetch_with_ytdlp


logger = logging.getLogger(__name__)

Strategy = Callable[[str], Awaitable[Optional[ResolvedPlaylist]]]


def extract_playlist_id(raw: str) -> str:
    """URL с ?list=... -> значение list, всё остальное считаем голым id."""
    value = (raw or "").strip()
    if not value:
        raise ValidationError("Playlist ID is required", field="id")

    parsed = urlparse(value)
    if parsed.scheme and parsed.netloc:
        listed = parse_qs(parsed.query).get("list")
        if listed and listed[0]:
            return listed[0]
    return value


class PlaylistResolver:
    """
    Цепочка стратегий: официальный API -> yt-dlp -> скрейпинг страницы.

    Стратегии идут строго по очереди; следующая запускается, только если
    предыдущая вернула пусто или упала с восстановимой ошибкой.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        config: Settings = settings,
        strategies: Optional[Sequence[tuple[str, Strategy]]] = None,
    ):
        self.client = client
        self.config = config
        self._strategies = strategies

    @property
    def strict(self) -> bool:
        return self.config.REQUIRE_YOUTUBE_API_KEY

    def strategies(self) -> list[tuple[str, Strategy]]:
        if self._strategies is not None:
            return list(self._strategies)

        chain: list[tuple[str, Strategy]] = []
        if self.config.YOUTUBE_API_KEY:
            chain.append(("api", partial(fetch_from_api, self.client, config=self.config)))
        if self.strict:
            # строгий деплой: только официальный API
            return chain
        if self.config.ENABLE_YTDLP:
            chain.append(("library", partial(fetch_with_ytdlp, config=self.config)))
        chain.append(("scrape", partial(fetch_by_scraping, self.client, config=self.config)))
        return chain

    async def resolve(self, raw_id: str) -> ResolvedPlaylist:
        playlist_id = extract_playlist_id(raw_id)

        if self.strict and not self.config.YOUTUBE_API_KEY:
            logger.error("[playlist %s] YOUTUBE_API_KEY is not set", playlist_id)
            raise ConfigurationError(
                "YouTube API key is not configured. Set YOUTUBE_API_KEY and restart the server."
            )

        primary_error: Optional[UpstreamError] = None
        for name, strategy in self.strategies():
            logger.info("[playlist %s] trying %s", playlist_id, name)
            try:
                result = await strategy(playlist_id)
            except (UpstreamError, NotFoundError) as e:
                if self.strict:
                    raise
                logger.warning("[playlist %s] %s failed: %s", playlist_id, name, e)
                if name == "api" and isinstance(e, (UpstreamAuthError, UpstreamTimeoutError)):
                    primary_error = e
                continue

            if result is not None and result.songs:
                logger.info(
                    "[playlist %s] OK via %s: %r (%d songs)",
                    playlist_id, name, result.title, len(result.songs),
                )
                return result
            logger.info("[playlist %s] %s returned no songs", playlist_id, name)

        if primary_error is not None:
            raise primary_error
        if self.strict:
            raise NotFoundError(
                "Playlist is empty, or all videos are private/deleted. "
                "Make sure the playlist is set to Public."
            )
        raise NotFoundError("Playlist not found or empty. Make sure it's public.")
