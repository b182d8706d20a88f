"""SQLite storage for projects, snapshots and trusted repositories."""

from __future__ import annotations

import sqlite3
import threading
import uuid
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import platformdirs

from autolaunch.errors import DatabaseError
from autolaunch.models import Project, ProjectSnapshot

_MIGRATIONS = (
    """
    CREATE TABLE IF NOT EXISTS projects (
        id TEXT PRIMARY KEY,
        github_url TEXT NOT NULL,
        owner TEXT NOT NULL,
        repo_name TEXT NOT NULL,
        local_path TEXT NOT NULL,
        detected_stack TEXT NOT NULL,
        trust_level TEXT NOT NULL,
        created_at TEXT NOT NULL,
        last_run_at TEXT,
        tags TEXT DEFAULT '[]'
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS snapshots (
        id TEXT PRIMARY KEY,
        project_id TEXT NOT NULL,
        snapshot_path TEXT NOT NULL,
        environment_type TEXT NOT NULL,
        metadata TEXT NOT NULL,
        created_at TEXT NOT NULL,
        size_bytes INTEGER NOT NULL,
        FOREIGN KEY (project_id) REFERENCES projects(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS executions (
        id TEXT PRIMARY KEY,
        project_id TEXT NOT NULL,
        status TEXT NOT NULL,
        sandbox_mode BOOLEAN NOT NULL,
        container_id TEXT,
        pid INTEGER,
        ports TEXT DEFAULT '[]',
        started_at TEXT NOT NULL,
        finished_at TEXT,
        FOREIGN KEY (project_id) REFERENCES projects(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS logs (
        id TEXT PRIMARY KEY,
        execution_id TEXT NOT NULL,
        timestamp TEXT NOT NULL,
        level TEXT NOT NULL,
        message TEXT NOT NULL,
        FOREIGN KEY (execution_id) REFERENCES executions(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS trusted_repositories (
        id TEXT PRIMARY KEY,
        repo_url TEXT NOT NULL UNIQUE,
        added_at TEXT NOT NULL
    )
    """,
)

_PROJECT_ORDER = "ORDER BY last_run_at DESC, created_at DESC"


def default_database_path() -> Path:
    """Location of the database file in the user's configuration directory."""
    return platformdirs.user_config_path("autolaunch", appauthor=False) / "autolaunch.db"


@contextmanager
def _translated_errors() -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as exc:
        raise DatabaseError(str(exc)) from exc


class Database:
    """Application database; pass ``":memory:"`` for a throwaway one."""

    def __init__(self, path: str | Path | None = None) -> None:
        target = str(path if path is not None else default_database_path())
        if target != ":memory:":
            Path(target).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        with _translated_errors():
            self._conn = sqlite3.connect(target, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
        self.run_migrations()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        with self._lock, _translated_errors():
            self._conn.close()

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> None:
        with self._lock, _translated_errors(), self._conn:
            self._conn.execute(sql, params)

    def _fetch(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        with self._lock, _translated_errors():
            return self._conn.execute(sql, params).fetchall()

    def run_migrations(self) -> None:
        """Create every table that does not exist yet."""
        with self._lock, _translated_errors(), self._conn:
            for statement in _MIGRATIONS:
                self._conn.execute(statement)

    # Projects

    def save_project(self, project: Project) -> None:
        """Insert the project, or replace the stored one with the same id."""
        self._execute(
            """
            INSERT OR REPLACE INTO projects
            (id, github_url, owner, repo_name, local_path, detected_stack,
             trust_level, created_at, last_run_at, tags)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                project.id,
                project.github_url,
                project.owner,
                project.repo_name,
                project.local_path,
                project.detected_stack,
                project.trust_level,
                project.created_at,
                project.last_run_at,
                project.tags,
            ),
        )

    def get_project(self, project_id: str) -> Project | None:
        rows = self._fetch("SELECT * FROM projects WHERE id = ?", (project_id,))
        return Project(**dict(rows[0])) if rows else None

    def get_all_projects(self) -> list[Project]:
        """All projects, most recently run first, then most recently created."""
        rows = self._fetch(f"SELECT * FROM projects {_PROJECT_ORDER}")
        return [Project(**dict(row)) for row in rows]

    def search_projects(self, query: str) -> list[Project]:
        """Projects whose name, owner or tags contain ``query`` (case-insensitive for ASCII)."""
        pattern = f"%{query}%"
        rows = self._fetch(
            f"""
            SELECT * FROM projects
            WHERE repo_name LIKE ? OR owner LIKE ? OR tags LIKE ?
            {_PROJECT_ORDER}
            """,
            (pattern, pattern, pattern),
        )
        return [Project(**dict(row)) for row in rows]

    def delete_project(self, project_id: str) -> None:
        self._execute("DELETE FROM projects WHERE id = ?", (project_id,))

    # Trusted repositories

    def add_trusted_repository(self, repo_url: str) -> None:
        self._execute(
            """
            INSERT OR REPLACE INTO trusted_repositories (id, repo_url, added_at)
            VALUES (?, ?, ?)
            """,
            (str(uuid.uuid4()), repo_url, datetime.now(timezone.utc).isoformat()),
        )

    def remove_trusted_repository(self, repo_url: str) -> None:
        self._execute("DELETE FROM trusted_repositories WHERE repo_url = ?", (repo_url,))

    def is_trusted_repository(self, repo_url: str) -> bool:
        rows = self._fetch(
            "SELECT COUNT(*) AS count FROM trusted_repositories WHERE repo_url = ?",
            (repo_url,),
        )
        return rows[0]["count"] > 0

    def get_trusted_repositories(self) -> list[str]:
        """Trusted repository URLs, most recently added first."""
        rows = self._fetch("SELECT repo_url FROM trusted_repositories ORDER BY added_at DESC")
        return [row["repo_url"] for row in rows]

    # Snapshots

    def save_snapshot(self, snapshot: ProjectSnapshot) -> None:
        self._execute(
            """
            INSERT OR REPLACE INTO snapshots
            (id, project_id, snapshot_path, environment_type, metadata, created_at, size_bytes)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                snapshot.id,
                snapshot.project_id,
                snapshot.snapshot_path,
                snapshot.environment_type,
                snapshot.metadata,
                snapshot.created_at,
                snapshot.size_bytes,
            ),
        )

    def get_snapshot(self, snapshot_id: str) -> ProjectSnapshot | None:
        rows = self._fetch("SELECT * FROM snapshots WHERE id = ?", (snapshot_id,))
        return ProjectSnapshot(**dict(rows[0])) if rows else None

    def get_snapshots_for_project(self, project_id: str) -> list[ProjectSnapshot]:
        rows = self._fetch(
            "SELECT * FROM snapshots WHERE project_id = ? ORDER BY created_at DESC",
            (project_id,),
        )
        return [ProjectSnapshot(**dict(row)) for row in rows]

    def get_all_snapshots(self) -> list[ProjectSnapshot]:
        rows = self._fetch("SELECT * FROM snapshots ORDER BY created_at DESC")
        return [ProjectSnapshot(**dict(row)) for row in rows]

    def delete_snapshot(self, snapshot_id: str) -> None:
        self._execute("DELETE FROM snapshots WHERE id = ?", (snapshot_id,))