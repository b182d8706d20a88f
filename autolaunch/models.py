"""Data types shared across the application."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar


@dataclass
class Project:
    """A project row as stored in the database."""

    id: str
    github_url: str
    owner: str
    repo_name: str
    local_path: str
    detected_stack: str
    trust_level: str
    created_at: str
    last_run_at: str | None = None
    tags: str = "[]"


class StackKind(Enum):
    NODE_JS = "NodeJs"
    PYTHON = "Python"
    RUST = "Rust"
    GO = "Go"
    JAVA = "Java"
    DOCKER = "Docker"
    STATIC = "Static"
    UNKNOWN = "Unknown"


_DETAIL_KEYS = {
    StackKind.NODE_JS: "version",
    StackKind.PYTHON: "version",
    StackKind.RUST: "edition",
    StackKind.GO: "version",
    StackKind.JAVA: "version",
    StackKind.STATIC: "framework",
}


@dataclass(frozen=True)
class TechStack:
    """A detected technology stack.

    ``detail`` holds the version, the Rust edition or the static-site
    framework, depending on ``kind``; ``compose`` applies to Docker only.
    """

    kind: StackKind
    detail: str | None = None
    compose: bool = False

    @classmethod
    def node_js(cls, version: str | None = None) -> TechStack:
        return cls(StackKind.NODE_JS, version)

    @classmethod
    def python(cls, version: str | None = None) -> TechStack:
        return cls(StackKind.PYTHON, version)

    @classmethod
    def rust(cls, edition: str | None = None) -> TechStack:
        return cls(StackKind.RUST, edition)

    @classmethod
    def go(cls, version: str | None = None) -> TechStack:
        return cls(StackKind.GO, version)

    @classmethod
    def java(cls, version: str | None = None) -> TechStack:
        return cls(StackKind.JAVA, version)

    @classmethod
    def docker(cls, compose: bool = False) -> TechStack:
        return cls(StackKind.DOCKER, compose=compose)

    @classmethod
    def static(cls, framework: str | None = None) -> TechStack:
        return cls(StackKind.STATIC, framework)

    @classmethod
    def unknown(cls) -> TechStack:
        return cls(StackKind.UNKNOWN)

    def __str__(self) -> str:
        if self.kind is StackKind.UNKNOWN:
            return "Unknown"
        if self.kind is StackKind.DOCKER:
            return f"Docker(compose: {'true' if self.compose else 'false'})"
        return f"{self.kind.value}({self.detail or 'unknown'})"

    def to_dict(self) -> Any:
        """Externally tagged form: ``{"NodeJs": {"version": "18"}}`` or ``"Unknown"``."""
        if self.kind is StackKind.UNKNOWN:
            return "Unknown"
        if self.kind is StackKind.DOCKER:
            return {"Docker": {"compose": self.compose}}
        return {self.kind.value: {_DETAIL_KEYS[self.kind]: self.detail}}

    @classmethod
    def from_dict(cls, data: Any) -> TechStack:
        if data == "Unknown":
            return cls.unknown()
        if not isinstance(data, dict) or len(data) != 1:
            raise ValueError(f"unrecognised tech stack: {data!r}")
        ((tag, body),) = data.items()
        try:
            kind = StackKind(tag)
        except ValueError:
            raise ValueError(f"unrecognised tech stack: {tag!r}") from None
        if kind is StackKind.UNKNOWN or not isinstance(body, dict):
            raise ValueError(f"unrecognised tech stack: {data!r}")
        if kind is StackKind.DOCKER:
            return cls.docker(bool(body.get("compose", False)))
        return cls(kind, body.get(_DETAIL_KEYS[kind]))


@dataclass
class Dependency:
    name: str
    version: str | None = None
    dev: bool = False


class ConfigFileType(Enum):
    PACKAGE_JSON = "PackageJson"
    REQUIREMENTS_TXT = "RequirementsTxt"
    PYPROJECT_TOML = "PyprojectToml"
    CARGO_TOML = "CargoToml"
    DOCKERFILE = "Dockerfile"
    DOCKER_COMPOSE = "DockerCompose"
    GO_MOD = "GoMod"
    POM_XML = "PomXml"


@dataclass
class ConfigFile:
    path: Path
    file_type: ConfigFileType


class SecurityLevel(Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


@dataclass
class SecurityWarning:
    level: SecurityLevel
    message: str
    suggestion: str | None = None


class TrustLevel(Enum):
    UNKNOWN = "Unknown"
    TRUSTED = "Trusted"
    UNTRUSTED = "Untrusted"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_stored_value(cls, value: str) -> TrustLevel:
        """Read a stored trust level; anything unrecognised is UNKNOWN."""
        lowered = value.lower()
        if lowered == "trusted":
            return cls.TRUSTED
        if lowered == "untrusted":
            return cls.UNTRUSTED
        return cls.UNKNOWN


@dataclass
class ProjectInfo:
    stack: TechStack
    entry_command: str | None = None
    dependencies: list[Dependency] = field(default_factory=list)
    config_files: list[ConfigFile] = field(default_factory=list)
    security_warnings: list[SecurityWarning] = field(default_factory=list)
    trust_level: TrustLevel = TrustLevel.UNKNOWN


@dataclass
class AnalysisResult:
    project_id: str
    project_info: ProjectInfo


_EXECUTION_STATES = (
    "Preparing",
    "Installing",
    "Starting",
    "Running",
    "Stopping",
    "Stopped",
    "Failed",
)


@dataclass(frozen=True)
class ExecutionStatus:
    """Lifecycle state of a launched process; only ``Failed`` carries an error."""

    state: str
    error: str | None = None

    PREPARING: ClassVar[ExecutionStatus]
    INSTALLING: ClassVar[ExecutionStatus]
    STARTING: ClassVar[ExecutionStatus]
    RUNNING: ClassVar[ExecutionStatus]
    STOPPING: ClassVar[ExecutionStatus]
    STOPPED: ClassVar[ExecutionStatus]

    def __post_init__(self) -> None:
        if self.state not in _EXECUTION_STATES:
            raise ValueError(f"unknown execution state: {self.state!r}")
        if (self.state == "Failed") != (self.error is not None):
            raise ValueError("an error message goes with the Failed state only")

    @classmethod
    def failed(cls, error: str) -> ExecutionStatus:
        return cls("Failed", error)

    @property
    def is_active(self) -> bool:
        return self.state in ("Starting", "Running")

    def __str__(self) -> str:
        if self.state == "Failed":
            return f"Failed {{ error: {json.dumps(self.error, ensure_ascii=False)} }}"
        return self.state


ExecutionStatus.PREPARING = ExecutionStatus("Preparing")
ExecutionStatus.INSTALLING = ExecutionStatus("Installing")
ExecutionStatus.STARTING = ExecutionStatus("Starting")
ExecutionStatus.RUNNING = ExecutionStatus("Running")
ExecutionStatus.STOPPING = ExecutionStatus("Stopping")
ExecutionStatus.STOPPED = ExecutionStatus("Stopped")


@dataclass
class ProcessHandle:
    id: str
    pid: int | None = None
    container_id: str | None = None
    ports: list[int] = field(default_factory=list)


@dataclass
class LogEntry:
    timestamp: datetime
    level: str
    message: str


@dataclass
class ProjectStatusResponse:
    running: bool
    status: str
    process_id: str | None = None
    container_id: str | None = None
    ports: list[int] = field(default_factory=list)
    detected_port: int | None = None
    environment_type: str | None = None


@dataclass
class ProjectSnapshot:
    id: str
    project_id: str
    snapshot_path: str
    environment_type: str
    metadata: str
    created_at: str
    size_bytes: int


@dataclass
class SnapshotMetadata:
    entry_command: str | None
    ports: list[int]
    environment_variables: list[tuple[str, str]]
    dependencies: list[Dependency]
    tech_stack: str

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str) -> SnapshotMetadata:
        data = json.loads(text)
        return cls(
            entry_command=data.get("entry_command"),
            ports=[int(port) for port in data.get("ports", [])],
            environment_variables=[
                (str(key), str(value)) for key, value in data.get("environment_variables", [])
            ],
            dependencies=[Dependency(**dep) for dep in data.get("dependencies", [])],
            tech_stack=data["tech_stack"],
        )


class EnvironmentType(Enum):
    DOCKER = "Docker"
    DIRECT = "Direct"