"""Inspects a project checkout to find its stack, start command and dependencies."""

from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

from autolaunch.models import (
    ConfigFile,
    ConfigFileType,
    Dependency,
    ProjectInfo,
    StackKind,
    TechStack,
    TrustLevel,
)

_SKIPPED_DIRECTORIES = frozenset(
    {"node_modules", ".git", "target", "__pycache__", ".venv", "venv"}
)

# Checked in the order files are listed; the first recognised name decides.
_STACK_MARKERS = {
    "package.json": TechStack.node_js(),
    "requirements.txt": TechStack.python(),
    "pyproject.toml": TechStack.python(),
    "setup.py": TechStack.python(),
    "Cargo.toml": TechStack.rust(),
    "go.mod": TechStack.go(),
    "pom.xml": TechStack.java(),
    "build.gradle": TechStack.java(),
    "Dockerfile": TechStack.docker(compose=False),
    "docker-compose.yml": TechStack.docker(compose=True),
    "docker-compose.yaml": TechStack.docker(compose=True),
}

_CONFIG_FILE_TYPES = {
    "package.json": ConfigFileType.PACKAGE_JSON,
    "requirements.txt": ConfigFileType.REQUIREMENTS_TXT,
    "pyproject.toml": ConfigFileType.PYPROJECT_TOML,
    "Cargo.toml": ConfigFileType.CARGO_TOML,
    "Dockerfile": ConfigFileType.DOCKERFILE,
    "docker-compose.yml": ConfigFileType.DOCKER_COMPOSE,
    "docker-compose.yaml": ConfigFileType.DOCKER_COMPOSE,
    "go.mod": ConfigFileType.GO_MOD,
    "pom.xml": ConfigFileType.POM_XML,
}

_FIXED_ENTRY_COMMANDS = {
    StackKind.RUST: "cargo run",
    StackKind.GO: "go run .",
    StackKind.DOCKER: "docker-compose up",
}


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


def _read_json(path: Path) -> Any:
    content = _read_text(path)
    if content is None:
        return None
    try:
        return json.loads(content)
    except json.JSONDecodeError:
        return None


def _package_json_dependencies(path: Path) -> Iterable[Dependency]:
    data = _read_json(path)
    if not isinstance(data, dict):
        return
    for key, dev in (("dependencies", False), ("devDependencies", True)):
        section = data.get(key)
        if not isinstance(section, dict):
            continue
        for name, version in section.items():
            yield Dependency(
                name=name,
                version=version if isinstance(version, str) else None,
                dev=dev,
            )


def _requirements_dependencies(path: Path) -> Iterable[Dependency]:
    content = _read_text(path)
    if content is None:
        return
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split("==")
        yield Dependency(
            name=parts[0],
            version=parts[1] if len(parts) > 1 else None,
            dev=False,
        )


class ProjectAnalyzer:
    """Reads a project directory and describes how to launch it."""

    def analyze_project(self, path: str | Path) -> ProjectInfo:
        """Describe the project at ``path``; its trust level starts as UNKNOWN.

        No security warnings are raised by the analysis itself; commands are
        checked separately by the security scanner.
        """
        root = Path(path)
        files = self.scan_directory(root)
        stack = self.detect_stack(files)
        config_files = self.find_config_files(files)
        return ProjectInfo(
            stack=stack,
            entry_command=self.find_entry_point(stack, config_files, root),
            dependencies=self.parse_dependencies(config_files, root),
            config_files=config_files,
            security_warnings=[],
            trust_level=TrustLevel.UNKNOWN,
        )

    def scan_directory(self, path: str | Path) -> list[Path]:
        """All files under ``path``, skipping dependency, build and VCS directories.

        An unreadable subdirectory is left out; an unreadable ``path`` raises OSError.
        """
        root = Path(path)
        if not root.is_dir():
            return []
        files: list[Path] = []
        for entry in sorted(root.iterdir()):
            if entry.is_file():
                files.append(entry)
            elif entry.is_dir() and entry.name not in _SKIPPED_DIRECTORIES:
                try:
                    files.extend(self.scan_directory(entry))
                except OSError:
                    continue
        return files

    def detect_stack(self, files: Sequence[str | Path]) -> TechStack:
        """The stack named by the first recognised config file, else static or unknown."""
        paths = [Path(file) for file in files]
        for file in paths:
            stack = _STACK_MARKERS.get(file.name)
            if stack is not None:
                return stack

        suffixes = {file.suffix for file in paths}
        if ".html" in suffixes or {".css", ".js"} <= suffixes:
            return TechStack.static()
        return TechStack.unknown()

    def find_config_files(self, files: Sequence[str | Path]) -> list[ConfigFile]:
        """The recognised configuration files among ``files``, in the same order."""
        found = []
        for file in files:
            path = Path(file)
            file_type = _CONFIG_FILE_TYPES.get(path.name)
            if file_type is not None:
                found.append(ConfigFile(path=path, file_type=file_type))
        return found

    def find_entry_point(
        self,
        stack: TechStack,
        config_files: Sequence[ConfigFile],
        project_path: str | Path,
    ) -> str | None:
        """The command that starts the project, or None when it cannot be told."""
        root = Path(project_path)

        fixed = _FIXED_ENTRY_COMMANDS.get(stack.kind)
        if fixed is not None:
            return fixed

        if stack.kind is StackKind.NODE_JS:
            for config in config_files:
                if config.file_type is not ConfigFileType.PACKAGE_JSON:
                    continue
                data = _read_json(config.path)
                scripts = data.get("scripts") if isinstance(data, dict) else None
                start = scripts.get("start") if isinstance(scripts, dict) else None
                if isinstance(start, str):
                    return start
            if (root / "index.js").exists():
                return "node index.js"

        elif stack.kind is StackKind.PYTHON:
            for script in ("main.py", "app.py"):
                if (root / script).exists():
                    return f"python {script}"

        return None

    def parse_dependencies(
        self,
        config_files: Sequence[ConfigFile],
        project_path: str | Path,
    ) -> list[Dependency]:
        """Dependencies declared in package.json and requirements.txt files."""
        dependencies: list[Dependency] = []
        for config in config_files:
            if config.file_type is ConfigFileType.PACKAGE_JSON:
                dependencies.extend(_package_json_dependencies(config.path))
            elif config.file_type is ConfigFileType.REQUIREMENTS_TXT:
                dependencies.extend(_requirements_dependencies(config.path))
        return dependencies