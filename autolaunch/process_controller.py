"""Starts, watches and stops project processes and finds the ports they serve on."""

from __future__ import annotations

import logging
import os
import re
import shutil
import socket
import subprocess
import sys
import threading
import time
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import IO

from autolaunch.environment_manager import DockerConfig, Environment
from autolaunch.errors import AutoLaunchError, ProcessError
from autolaunch.models import ExecutionStatus, LogEntry, ProcessHandle

logger = logging.getLogger(__name__)

MAX_LOG_ENTRIES = 1000
LOG_TRIM_COUNT = 100
_MAX_PORT = 65535

_COMMAND_PORT = re.compile(r"(?:port|PORT|--port|-p)\s*[=:]?\s*(\d+)", re.ASCII)

_LOG_PORT_PATTERNS = [
    re.compile(pattern, re.ASCII)
    for pattern in (
        r"listening on port (\d+)",
        r"server running on port (\d+)",
        r"localhost:(\d+)",
        r"127\.0\.0\.1:(\d+)",
        r"0\.0\.0\.0:(\d+)",
        r"port (\d+)",
        r"http://[^:]+:(\d+)",
        r"https://[^:]+:(\d+)",
        r"started on :(\d+)",
        r"running at.*:(\d+)",
        r"available on.*:(\d+)",
    )
]


def _parse_port(text: str) -> int | None:
    value = int(text)
    return value if value <= _MAX_PORT else None


def detect_ports_from_command(command: str) -> list[int]:
    """Ports named in a start command, or a default guessed from the tool it runs."""
    ports = [
        port
        for match in _COMMAND_PORT.finditer(command)
        if (port := _parse_port(match.group(1))) is not None
    ]
    if ports:
        return ports
    if ("npm" in command or "bun" in command) and "start" in command:
        return [3000]
    if "python" in command:
        return [5000]
    return [8000]


def extract_port_from_log(message: str) -> int | None:
    """The port a log line announces, trying the known phrasings in order."""
    for pattern in _LOG_PORT_PATTERNS:
        match = pattern.search(message)
        if match is not None:
            port = _parse_port(match.group(1))
            if port is not None:
                return port
    return None


def _run(args: Sequence[str]) -> subprocess.CompletedProcess:
    return subprocess.run(list(args), capture_output=True, check=False)


def _decode(output: bytes | None) -> str:
    return output.decode("utf-8", errors="replace") if output else ""


@dataclass
class _RunningProcess:
    handle: ProcessHandle
    child: subprocess.Popen | None
    environment: Environment
    command: str
    status: ExecutionStatus = ExecutionStatus.STARTING
    logs: list[LogEntry] = field(default_factory=list)


class ProcessController:
    """Keeps track of every process it has launched, with its status and output."""

    def __init__(
        self,
        monitor_interval: float = 1.0,
        restart_delay: float = 2.0,
        stop_grace_period: float = 2.0,
    ) -> None:
        self.monitor_interval = monitor_interval
        self.restart_delay = restart_delay
        self.stop_grace_period = stop_grace_period
        self._lock = threading.Lock()
        self._processes: dict[str, _RunningProcess] = {}

    # Starting

    def start_process(self, env: Environment, command: str) -> ProcessHandle:
        """Launch ``command`` in ``env`` and begin collecting its output."""
        process_id = str(uuid.uuid4())
        if isinstance(env.mode, DockerConfig):
            child, ports = self._start_docker_process(env, command)
        else:
            child, ports = self._start_direct_process(env, command)

        handle = ProcessHandle(
            id=process_id,
            pid=child.pid if child is not None else None,
            container_id=env.container_id,
            ports=ports,
        )
        with self._lock:
            self._processes[process_id] = _RunningProcess(
                handle=handle,
                child=child,
                environment=env,
                command=command,
            )

        if child is not None:
            self._capture_output(process_id, child.stdout, "info")
            self._capture_output(process_id, child.stderr, "error")

        threading.Thread(
            target=self._monitor_process,
            args=(ProcessHandle(handle.id, handle.pid, handle.container_id, list(handle.ports)),),
            daemon=True,
        ).start()
        return handle

    def _start_docker_process(self, env: Environment, command: str) -> tuple[subprocess.Popen, list[int]]:
        if env.container_id is None:
            raise ProcessError("Container ID не найден")
        started = _run(["docker", "start", env.container_id])
        if started.returncode != 0:
            raise ProcessError(f"Ошибка запуска контейнера: {_decode(started.stderr)}")
        child = subprocess.Popen(
            ["docker", "exec", "-d", env.container_id, "sh", "-c", command],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        ports = list(env.mode.ports) if isinstance(env.mode, DockerConfig) else []
        return child, ports

    def _start_direct_process(self, env: Environment, command: str) -> tuple[subprocess.Popen, list[int]]:
        parts = command.split()
        if not parts:
            raise ProcessError("Пустая команда")
        child = subprocess.Popen(
            parts,
            cwd=env.working_dir,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        return child, detect_ports_from_command(command)

    def _capture_output(self, process_id: str, stream: IO[bytes] | None, level: str) -> None:
        if stream is None:
            return

        def read() -> None:
            with stream:
                for raw in stream:
                    line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                    with self._lock:
                        running = self._processes.get(process_id)
                        if running is None:
                            return
                        running.logs.append(
                            LogEntry(timestamp=datetime.now(timezone.utc), level=level, message=line)
                        )
                        if len(running.logs) > MAX_LOG_ENTRIES:
                            del running.logs[:LOG_TRIM_COUNT]

        threading.Thread(target=read, daemon=True).start()

    def _monitor_process(self, handle: ProcessHandle) -> None:
        while True:
            time.sleep(self.monitor_interval)
            with self._lock:
                running = self._processes.get(handle.id)
                if running is None:
                    return
                child = running.child
            if child is not None:
                is_running = child.poll() is None
            elif handle.container_id is not None:
                is_running = self._is_container_running(handle.container_id)
            else:
                is_running = False
            with self._lock:
                if is_running:
                    if running.status == ExecutionStatus.STARTING:
                        running.status = ExecutionStatus.RUNNING
                else:
                    running.status = ExecutionStatus.STOPPED
                    return

    @staticmethod
    def _is_container_running(container_id: str) -> bool:
        try:
            result = _run(["docker", "ps", "-q", "--filter", f"id={container_id}"])
        except OSError:
            return False
        return bool(result.stdout)

    # Stopping

    def stop_process(self, handle: ProcessHandle) -> None:
        """Stop the process gracefully, force it if needed, and free its temporary resources."""
        with self._lock:
            running = self._processes.get(handle.id)
            if running is None:
                return
            running.status = ExecutionStatus.STOPPING

        env = running.environment
        if env.is_sandbox:
            if handle.container_id is not None:
                try:
                    _run(["docker", "stop", "-t", "10", handle.container_id])
                except OSError as exc:
                    logger.error("Ошибка остановки контейнера: %s", exc)
        elif running.child is not None:
            self._terminate(running.child)

        with self._lock:
            running.status = ExecutionStatus.STOPPED
        self._cleanup_process_resources(env)

    def _terminate(self, child: subprocess.Popen) -> None:
        if os.name == "posix" and child.poll() is None:
            child.terminate()
            try:
                child.wait(timeout=self.stop_grace_period)
            except subprocess.TimeoutExpired:
                pass
        if child.poll() is None:
            child.kill()
        child.wait()

    @staticmethod
    def _cleanup_process_resources(env: Environment) -> None:
        if env.is_sandbox:
            if env.container_id is not None:
                try:
                    _run(["docker", "rm", "-f", env.container_id])
                except OSError:
                    pass
        else:
            shutil.rmtree(env.working_dir / ".autolaunch_temp", ignore_errors=True)

    def restart_process(self, handle: ProcessHandle, command_override: str | None = None) -> ProcessHandle:
        """Stop the process and start it again, with ``command_override`` if it is not blank."""
        with self._lock:
            running = self._processes.get(handle.id)
            if running is None:
                raise ProcessError("Процесс не найден")
            env, command = running.environment, running.command

        self.stop_process(handle)
        time.sleep(self.restart_delay)

        if command_override is not None and command_override.strip():
            command = command_override
        return self.start_process(env, command)

    def stop_all_processes(self) -> list[str]:
        """Stop every known process; return the ids of those that stopped cleanly."""
        with self._lock:
            handles = [(pid, running.handle) for pid, running in self._processes.items()]
        stopped = []
        for process_id, handle in handles:
            try:
                self.stop_process(handle)
            except (AutoLaunchError, OSError) as exc:
                logger.warning("Не удалось остановить процесс %s: %s", process_id, exc)
                continue
            stopped.append(process_id)
        return stopped

    # Queries

    def get_process_status(self, handle: ProcessHandle) -> ExecutionStatus:
        with self._lock:
            running = self._processes.get(handle.id)
            return running.status if running is not None else ExecutionStatus.STOPPED

    def get_process_logs(self, handle: ProcessHandle) -> list[LogEntry]:
        with self._lock:
            running = self._processes.get(handle.id)
            return list(running.logs) if running is not None else []

    def detect_application_port(self, handle: ProcessHandle) -> int | None:
        """The port announced in the logs, else the first port known for the handle."""
        for entry in self.get_process_logs(handle):
            port = extract_port_from_log(entry.message)
            if port is not None:
                return port
        return handle.ports[0] if handle.ports else None

    def get_running_processes(self) -> list[ProcessHandle]:
        with self._lock:
            return [running.handle for running in self._processes.values() if running.status.is_active]

    def has_running_processes(self) -> bool:
        with self._lock:
            return any(running.status.is_active for running in self._processes.values())

    # Network

    def open_browser_for_port(self, port: int) -> None:
        """Open the system browser on ``http://localhost:<port>``."""
        url = f"http://localhost:{port}"
        logger.info("Открытие браузера: %s", url)
        if sys.platform == "win32":
            subprocess.Popen(["cmd", "/C", "start", url])
        elif sys.platform == "darwin":
            subprocess.Popen(["open", url])
        elif sys.platform.startswith("linux"):
            subprocess.Popen(["xdg-open", url])

    def check_port_availability(self, port: int, timeout_secs: float) -> bool:
        """Whether something accepts TCP connections on the local port within the timeout."""
        try:
            with socket.create_connection(("127.0.0.1", port), timeout=timeout_secs):
                return True
        except OSError:
            return False