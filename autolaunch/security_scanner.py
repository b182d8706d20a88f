"""Checks commands and projects for dangerous operations and tracks trusted repositories."""

from __future__ import annotations

import json
import re
from pathlib import Path

import platformdirs

from autolaunch.models import ProjectInfo, SecurityLevel, SecurityWarning

_CRITICAL_PATTERNS = [
    (r"rm\s+-rf\s+/", "Удаление корневой директории"),
    (r":\(\)\{\s*:\|:&\s*\};:", "Fork bomb"),
    (r"dd\s+if=/dev/zero\s+of=/dev/", "Перезапись устройства"),
]

_HIGH_PATTERNS = [
    (r"rm\s+-rf", "Рекурсивное удаление файлов"),
    (r"sudo\s+", "Выполнение с правами суперпользователя"),
    (r"curl.*\|.*bash", "Выполнение скрипта из интернета"),
    (r"wget.*\|.*bash", "Выполнение скрипта из интернета"),
    (r"curl.*\|.*sh", "Выполнение скрипта из интернета"),
    (r"wget.*\|.*sh", "Выполнение скрипта из интернета"),
    (r"eval\s*\(", "Динамическое выполнение кода"),
    (r"exec\s*\(", "Выполнение произвольного кода"),
    (r"chmod\s+777", "Установка небезопасных прав доступа"),
]

_MEDIUM_PATTERNS = [
    (r">/dev/null\s+2>&1", "Подавление вывода ошибок"),
    (r"nohup\s+", "Фоновое выполнение процесса"),
    (r"&\s*\Z", "Фоновое выполнение"),
]

# (compiled pattern, level, message template, suggestion)
_RULES = [
    (
        re.compile(pattern),
        SecurityLevel.CRITICAL,
        f"КРИТИЧЕСКАЯ УГРОЗА: {description}",
        "Не выполняйте эту команду! Она может повредить вашу систему.",
    )
    for pattern, description in _CRITICAL_PATTERNS
] + [
    (
        re.compile(pattern),
        SecurityLevel.HIGH,
        f"Обнаружена потенциально опасная операция: {description}",
        "Внимательно проверьте команду перед выполнением",
    )
    for pattern, description in _HIGH_PATTERNS
] + [
    (
        re.compile(pattern),
        SecurityLevel.MEDIUM,
        f"Обнаружена подозрительная операция: {description}",
        "Убедитесь, что понимаете, что делает эта команда",
    )
    for pattern, description in _MEDIUM_PATTERNS
]


def normalize_repo_url(url: str) -> str:
    """Normalise a repository URL so that equivalent spellings compare equal."""
    normalized = url.strip().rstrip("/")
    while normalized.endswith(".git"):
        normalized = normalized[: -len(".git")]
    return normalized.lower()


def _default_trusted_repos_file() -> Path:
    return platformdirs.user_config_path("autolaunch", appauthor=False) / "trusted_repos.json"


class SecurityScanner:
    """Scans commands for threats and keeps a persisted set of trusted repositories."""

    def __init__(self, trusted_repos_file: str | Path | None = None) -> None:
        self.trusted_repos_file = (
            Path(trusted_repos_file) if trusted_repos_file is not None else _default_trusted_repos_file()
        )
        self.trusted_repos_file.parent.mkdir(parents=True, exist_ok=True)
        self._trusted_repos = self._load_trusted_repos()

    def _load_trusted_repos(self) -> set[str]:
        if not self.trusted_repos_file.exists():
            return set()
        content = self.trusted_repos_file.read_text(encoding="utf-8")
        try:
            data = json.loads(content)
        except json.JSONDecodeError:
            return set()
        if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
            return set()
        return set(data)

    def _save_trusted_repos(self) -> None:
        content = json.dumps(sorted(self._trusted_repos), indent=2, ensure_ascii=False)
        self.trusted_repos_file.write_text(content, encoding="utf-8")

    def scan_project(self, project: ProjectInfo) -> list[SecurityWarning]:
        """Warnings for the project's start command followed by those found during analysis."""
        warnings = []
        if project.entry_command is not None:
            warnings.extend(self.scan_command(project.entry_command))
        warnings.extend(project.security_warnings)
        return warnings

    def scan_command(self, command: str) -> list[SecurityWarning]:
        """Warnings for every dangerous pattern found in the command, most severe first."""
        return [
            SecurityWarning(level=level, message=message, suggestion=suggestion)
            for regex, level, message, suggestion in _RULES
            if regex.search(command)
        ]

    def is_trusted_repository(self, repo_url: str) -> bool:
        return normalize_repo_url(repo_url) in self._trusted_repos

    def add_trusted_repository(self, repo_url: str) -> None:
        self._trusted_repos.add(normalize_repo_url(repo_url))
        self._save_trusted_repos()

    def remove_trusted_repository(self, repo_url: str) -> None:
        self._trusted_repos.discard(normalize_repo_url(repo_url))
        self._save_trusted_repos()

    def get_trusted_repositories(self) -> list[str]:
        return sorted(self._trusted_repos)