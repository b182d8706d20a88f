"""Error types raised by the application and their user-facing context."""

from __future__ import annotations

import json
from dataclasses import dataclass


class AutoLaunchError(Exception):
    """Base class for every error the application reports."""

    title = "Ошибка"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def __str__(self) -> str:
        return f"{self.title}: {self.detail}"


class ProjectAnalysisError(AutoLaunchError):
    title = "Ошибка анализа проекта"


class EnvironmentSetupError(AutoLaunchError):
    title = "Ошибка окружения"


class ProcessError(AutoLaunchError):
    title = "Ошибка процесса"


class SecurityError(AutoLaunchError):
    title = "Ошибка безопасности"


class DatabaseError(AutoLaunchError):
    title = "Ошибка базы данных"


class InvalidUrlError(AutoLaunchError):
    title = "Невалидный URL"


class InvalidInputError(AutoLaunchError):
    title = "Невалидные входные данные"


class NotFoundError(AutoLaunchError):
    title = "Не найдено"


@dataclass
class ErrorContext:
    """What the user interface shows when an operation fails."""

    error: str
    suggestion: str | None
    user_friendly_message: str


def _describe(error: BaseException) -> str:
    if isinstance(error, AutoLaunchError):
        return str(error)
    if isinstance(error, ConnectionError):
        return f"Ошибка сети: {error}"
    if isinstance(error, OSError):
        return f"Ошибка ввода-вывода: {error}"
    if isinstance(error, json.JSONDecodeError):
        return f"Ошибка сериализации JSON: {error}"
    return str(error)


def error_context(error: BaseException) -> ErrorContext:
    """Build the user-facing context for an error."""
    message = _describe(error)
    if isinstance(error, InvalidUrlError):
        return ErrorContext(
            error=message,
            suggestion="Проверьте правильность URL репозитория",
            user_friendly_message="Неверный формат URL репозитория",
        )
    if isinstance(error, ConnectionError):
        return ErrorContext(
            error=message,
            suggestion="Проверьте подключение к интернету",
            user_friendly_message="Ошибка сетевого подключения",
        )
    return ErrorContext(error=message, suggestion=None, user_friendly_message=message)