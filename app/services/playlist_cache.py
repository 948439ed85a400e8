from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Hashable, Tuple, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")
CacheKey = Tuple[str, Hashable]


class PlaylistCache:
    """Кэш ответов на одну игровую сессию.

    Ключ — сигнатура вызова, например ("playlist", id) или ("leaderboard", id).
    Никакого глобального состояния: у каждой сессии свой экземпляр.
    """

    def __init__(self) -> None:
        self._entries: Dict[CacheKey, Any] = {}

    async def get_or_load(self, key: CacheKey, loader: Callable[[], Awaitable[T]]) -> T:
        if key in self._entries:
            return self._entries[key]
        value = await loader()
        self._entries[key] = value
        return value

    def invalidate(self, key: CacheKey) -> None:
        if self._entries.pop(key, None) is not None:
            logger.debug("cache invalidated: %s", key)
