from __future__ import annotations

from typing import Optional


class QuizError(Exception):
    """Базовая ошибка: message можно показывать пользователю как есть."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(QuizError):
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(QuizError):
    status_code = 404


class UpstreamError(QuizError):
    status_code = 500


class UpstreamAuthError(UpstreamError):
    status_code = 403


class UpstreamTimeoutError(UpstreamError):
    status_code = 504


class PlaylistParseError(UpstreamError):
    """Ответ YouTube не совпал с ожидаемой схемой."""
    pass


class ConfigurationError(QuizError):
    status_code = 500


class SessionError(QuizError):
    status_code = 409
