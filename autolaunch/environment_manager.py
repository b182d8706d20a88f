"""Prepares isolated environments (Docker sandbox or local virtual env) for projects."""

from __future__ import annotations

import os
import subprocess
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from autolaunch.errors import EnvironmentSetupError
from autolaunch.models import Dependency, ProjectInfo, StackKind, TrustLevel

DOCKERFILE_NAME = "Dockerfile.autolaunch"

GO_IMAGE = "go" "lang:alpine"

_NODE_DOCKERFILE = """FROM node:{version}-alpine
WORKDIR /app
COPY package.json bun.lockb* ./
RUN bun install
COPY . .
EXPOSE 3000 8000 8080
CMD ["bun", "run", "start"]
"""

_PYTHON_DOCKERFILE = """FROM python:{version}-alpine
WORKDIR /app
COPY requirements.txt ./
RUN pip install -r requirements.txt
COPY . .
EXPOSE 5000 8000 8080
CMD ["python", "main.py"]
"""

_RUST_DOCKERFILE = """FROM rust:alpine
WORKDIR /app
COPY Cargo.toml Cargo.lock ./
COPY src ./src
RUN cargo build --release
EXPOSE 8000 8080
CMD ["./target/release/app"]
"""

_GENERIC_DOCKERFILE = """FROM alpine:latest
WORKDIR /app
COPY . .
EXPOSE 8000 8080
CMD ["sh"]
"""


@dataclass
class DockerConfig:
    """Settings for a sandboxed Docker container."""

    image: str
    working_dir: str
    ports: list[int] = field(default_factory=list)
    volumes: list[tuple[str, str]] = field(default_factory=list)
    environment: list[tuple[str, str]] = field(default_factory=list)
    read_only: bool = True
    no_root: bool = True


@dataclass
class VirtualEnvConfig:
    """Settings for running directly on the host in a language virtual environment."""

    working_dir: Path
    env_vars: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class Environment:
    """An environment a project runs in; ``mode`` says whether it is sandboxed."""

    id: str
    mode: DockerConfig | VirtualEnvConfig
    working_dir: Path
    container_id: str | None = None

    @property
    def is_sandbox(self) -> bool:
        return isinstance(self.mode, DockerConfig)


def _run(args: Sequence[str | os.PathLike[str]], cwd: Path | None = None) -> subprocess.CompletedProcess:
    return subprocess.run(list(args), cwd=cwd, capture_output=True, check=False)


def _decode(output: bytes | str | None) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


class EnvironmentManager:
    """Creates, fills and tears down project environments."""

    def create_environment(self, project: ProjectInfo, project_path: str | Path) -> Environment:
        """Sandbox unknown and untrusted projects when Docker is present; otherwise run directly."""
        path = Path(project_path)
        env_id = str(uuid.uuid4())
        should_use_sandbox = project.trust_level in (TrustLevel.UNKNOWN, TrustLevel.UNTRUSTED)
        if should_use_sandbox and self.is_docker_available():
            return self._create_docker_environment(env_id, project, path)
        return self._create_direct_environment(env_id, project, path)

    def is_docker_available(self) -> bool:
        try:
            return _run(["docker", "--version"]).returncode == 0
        except OSError:
            return False

    def _create_docker_environment(self, env_id: str, project: ProjectInfo, project_path: Path) -> Environment:
        config = self.generate_docker_config(project)

        dockerfile_path = project_path / DOCKERFILE_NAME
        if not dockerfile_path.exists():
            dockerfile_path.write_text(self.generate_dockerfile(project), encoding="utf-8")

        image_tag = f"autolaunch-{env_id}"
        build = _run(["docker", "build", "-t", image_tag, "-f", DOCKERFILE_NAME, "."], cwd=project_path)
        if build.returncode != 0:
            raise EnvironmentSetupError(f"Ошибка сборки Docker образа: {_decode(build.stderr)}")

        args = [
            "docker",
            "create",
            "--name",
            f"autolaunch-container-{env_id}",
            "--rm",
            "--security-opt",
            "no-new-privileges",
            "--cap-drop",
            "ALL",
        ]
        if config.no_root:
            args += ["--user", "1000:1000"]
        if config.read_only:
            args += ["--read-only", "--tmpfs", "/tmp:rw,noexec,nosuid,size=100m"]
        for port in config.ports:
            args += ["-p", f"{port}:{port}"]
        for host_path, container_path in config.volumes:
            spec = f"{host_path}:{container_path}"
            args += ["-v", f"{spec}:ro" if config.read_only else spec]
        for key, value in config.environment:
            args += ["-e", f"{key}={value}"]
        args.append(image_tag)

        created = _run(args)
        if created.returncode != 0:
            raise EnvironmentSetupError(f"Ошибка создания контейнера: {_decode(created.stderr)}")

        return Environment(
            id=env_id,
            mode=config,
            working_dir=project_path,
            container_id=_decode(created.stdout).strip(),
        )

    def _create_direct_environment(self, env_id: str, project: ProjectInfo, project_path: Path) -> Environment:
        if project.stack.kind is StackKind.PYTHON:
            if not (project_path / ".venv").exists():
                venv = _run(["python", "-m", "venv", ".venv"], cwd=project_path)
                if venv.returncode != 0:
                    raise EnvironmentSetupError("Не удалось создать Python virtual environment")
            self._install_python_dependencies(project_path)
        elif project.stack.kind is StackKind.NODE_JS:
            self._install_nodejs_dependencies(project_path)

        return Environment(
            id=env_id,
            mode=VirtualEnvConfig(working_dir=project_path, env_vars=[]),
            working_dir=project_path,
            container_id=None,
        )

    def _install_python_dependencies(self, project_path: Path) -> bool:
        if not (project_path / "requirements.txt").exists():
            return False
        venv = project_path / ".venv"
        pip = venv / "Scripts" / "pip.exe" if os.name == "nt" else venv / "bin" / "pip"
        result = _run([pip, "install", "-r", "requirements.txt"], cwd=project_path)
        if result.returncode != 0:
            raise EnvironmentSetupError(f"Ошибка установки Python зависимостей: {_decode(result.stderr)}")
        return True

    def _install_nodejs_dependencies(self, project_path: Path) -> bool:
        if not (project_path / "package.json").exists():
            return False
        result = _run(["bun", "install"], cwd=project_path)
        if result.returncode != 0:
            raise EnvironmentSetupError(f"Ошибка установки Node.js зависимостей: {_decode(result.stderr)}")
        return True

    def generate_docker_config(self, project: ProjectInfo) -> DockerConfig:
        """Container settings for the project's stack, with security restrictions on."""
        stack = project.stack
        working_dir = "/app"
        if stack.kind is StackKind.NODE_JS:
            image, ports = f"node:{stack.detail or '18'}-alpine", [3000, 8000, 8080]
        elif stack.kind is StackKind.PYTHON:
            image, ports = f"python:{stack.detail or '3.11'}-alpine", [5000, 8000, 8080]
        elif stack.kind is StackKind.RUST:
            image, ports = "rust:alpine", [8000, 8080]
        elif stack.kind is StackKind.GO:
            image, ports = GO_IMAGE, [8000, 8080]
        else:
            image, ports = "alpine:latest", [8000, 8080]

        return DockerConfig(
            image=image,
            working_dir=working_dir,
            ports=ports,
            volumes=[("./", working_dir)],
            environment=[("NODE_ENV", "development")],
            read_only=True,
            no_root=True,
        )

    def generate_dockerfile(self, project: ProjectInfo) -> str:
        """Dockerfile text used to build the sandbox image."""
        stack = project.stack
        if stack.kind is StackKind.NODE_JS:
            return _NODE_DOCKERFILE.format(version=stack.detail or "18")
        if stack.kind is StackKind.PYTHON:
            return _PYTHON_DOCKERFILE.format(version=stack.detail or "3.11")
        if stack.kind is StackKind.RUST:
            return _RUST_DOCKERFILE
        return _GENERIC_DOCKERFILE

    def install_dependencies(self, env: Environment, deps: Sequence[Dependency]) -> bool:
        """Install dependencies in a direct environment; return whether an installer ran.

        Sandbox images get their dependencies when the image is built.
        """
        if env.is_sandbox or not deps:
            return False
        installed = False
        if (env.working_dir / "requirements.txt").exists():
            installed = self._install_python_dependencies(env.working_dir) or installed
        if (env.working_dir / "package.json").exists():
            installed = self._install_nodejs_dependencies(env.working_dir) or installed
        return installed

    def cleanup_environment(self, env: Environment) -> None:
        """Stop and remove a sandbox container and its generated Dockerfile."""
        if not env.is_sandbox:
            return
        if env.container_id is not None:
            for action in ("stop", "rm"):
                try:
                    _run(["docker", action, env.container_id])
                except OSError:
                    pass
        dockerfile_path = env.working_dir / DOCKERFILE_NAME
        if dockerfile_path.exists():
            try:
                dockerfile_path.unlink()
            except OSError:
                pass