import socket
import sys
import time
from pathlib import Path
from unittest import mock

import pytest
from hypothesis import given
from hypothesis import strategies as st

from autolaunch.environment_manager import DockerConfig, Environment, VirtualEnvConfig
from autolaunch.errors import ProcessError
from autolaunch.models import ExecutionStatus, ProcessHandle
from autolaunch.process_controller import (
    ProcessController,
    detect_ports_from_command,
    extract_port_from_log,
)

PYTHON = sys.executable


def python_command(code: str) -> str:
    return f"{PYTHON} -c {code}"


def sleep_command(seconds: int) -> str:
    return python_command(f"__import__('time').sleep({seconds})")


def wait_until(predicate, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return predicate()


@pytest.fixture
def controller():
    ctl = ProcessController(monitor_interval=0.05, restart_delay=0.0, stop_grace_period=2.0)
    yield ctl
    ctl.stop_all_processes()


@pytest.fixture
def direct_env(tmp_path: Path) -> Environment:
    return Environment(
        id="test-env",
        mode=VirtualEnvConfig(working_dir=tmp_path, env_vars=[]),
        working_dir=tmp_path,
        container_id=None,
    )


def test_new_controller_has_no_running_processes():
    ctl = ProcessController()
    assert ctl.has_running_processes() is False
    assert ctl.get_running_processes() == []


def test_start_and_stop_direct_process(controller, direct_env):
    handle = controller.start_process(direct_env, sleep_command(10))
    assert isinstance(handle.pid, int)

    assert controller.has_running_processes() is True

    controller.stop_process(handle)
    assert controller.get_process_status(handle) == ExecutionStatus.STOPPED
    assert controller.has_running_processes() is False


def test_process_keeps_running_until_stopped(controller, direct_env):
    handle = controller.start_process(direct_env, sleep_command(5))
    assert wait_until(lambda: controller.get_process_status(handle) == ExecutionStatus.RUNNING)
    assert controller.get_process_status(handle).is_active
    assert [h.id for h in controller.get_running_processes()] == [handle.id]
    controller.stop_process(handle)
    assert controller.get_process_status(handle) == ExecutionStatus.STOPPED


def test_finished_process_is_marked_stopped(controller, direct_env):
    handle = controller.start_process(direct_env, python_command("pass"))
    wait_until(lambda: controller.get_process_status(handle) == ExecutionStatus.STOPPED)
    assert controller.get_process_status(handle) == ExecutionStatus.STOPPED
    assert controller.has_running_processes() is False


def test_stdout_is_captured_as_info(controller, direct_env):
    handle = controller.start_process(direct_env, python_command("print('test\\x20log')"))
    assert wait_until(lambda: len(controller.get_process_logs(handle)) == 1)
    (entry,) = controller.get_process_logs(handle)
    assert entry.message == "test log"
    assert entry.level == "info"


def test_stderr_is_captured_as_error(controller, direct_env):
    handle = controller.start_process(
        direct_env, python_command("__import__('sys').stderr.write('oops\\n')")
    )
    assert wait_until(lambda: len(controller.get_process_logs(handle)) == 1)
    (entry,) = controller.get_process_logs(handle)
    assert entry.message == "oops"
    assert entry.level == "error"


def test_logs_are_trimmed_past_the_limit(controller, direct_env):
    handle = controller.start_process(
        direct_env, python_command("print('\\n'.join(map(str,range(1100))))")
    )

    def complete():
        logs = controller.get_process_logs(handle)
        return bool(logs) and logs[-1].message == "1099"

    assert wait_until(complete)
    logs = controller.get_process_logs(handle)
    assert len(logs) == 1000
    assert logs[0].message == "100"


def test_logs_of_unknown_handle_are_empty(controller):
    assert controller.get_process_logs(ProcessHandle(id="missing")) == []


def test_status_of_unknown_handle_is_stopped(controller):
    assert controller.get_process_status(ProcessHandle(id="missing")) == ExecutionStatus.STOPPED


def test_empty_command_is_rejected(controller, direct_env):
    with pytest.raises(ProcessError) as excinfo:
        controller.start_process(direct_env, "   ")
    assert str(excinfo.value) == "Ошибка процесса: Пустая команда"


def test_sandbox_without_container_is_rejected(controller, tmp_path):
    env = Environment(
        id="sandbox",
        mode=DockerConfig(image="alpine:latest", working_dir="/app", ports=[8000]),
        working_dir=tmp_path,
        container_id=None,
    )
    with pytest.raises(ProcessError, match="Container ID не найден"):
        controller.start_process(env, "sh")


def test_stop_all_processes(controller, direct_env):
    first = controller.start_process(direct_env, sleep_command(30))
    second = controller.start_process(direct_env, sleep_command(30))
    assert controller.has_running_processes() is True

    stopped = controller.stop_all_processes()
    assert set(stopped) == {first.id, second.id}
    assert controller.has_running_processes() is False


def test_restart_process_uses_override(controller, direct_env):
    handle = controller.start_process(direct_env, sleep_command(30))
    new_handle = controller.restart_process(handle, sleep_command(20))
    assert new_handle.id != handle.id
    assert controller.get_process_status(handle) == ExecutionStatus.STOPPED
    assert controller.get_process_status(new_handle).is_active


def test_restart_blank_override_keeps_command(controller, direct_env):
    handle = controller.start_process(direct_env, python_command("print('again')"))
    new_handle = controller.restart_process(handle, "   ")
    assert wait_until(lambda: len(controller.get_process_logs(new_handle)) == 1)
    assert controller.get_process_logs(new_handle)[0].message == "again"


def test_restart_unknown_process_fails(controller):
    with pytest.raises(ProcessError, match="Процесс не найден"):
        controller.restart_process(ProcessHandle(id="missing"), None)


def test_stop_removes_temp_directory(controller, direct_env):
    temp_dir = direct_env.working_dir / ".autolaunch_temp"
    temp_dir.mkdir()
    handle = controller.start_process(direct_env, sleep_command(10))
    controller.stop_process(handle)
    assert temp_dir.exists() is False


def test_detect_ports_from_command():
    assert 3000 in detect_ports_from_command("npm start --port 3000")
    assert 8080 in detect_ports_from_command("python app.py --port=8080")
    assert 5000 in detect_ports_from_command("node server.js -p 5000")


def test_detect_ports_from_command_default_ports():
    assert detect_ports_from_command("npm start") == [3000]
    assert detect_ports_from_command("bun run start") == [3000]
    assert detect_ports_from_command("python app.py") == [5000]
    assert detect_ports_from_command("cargo run") == [8000]


def test_detect_ports_from_command_explicit_ports():
    assert 4567 in detect_ports_from_command("node server.js --port 4567")
    assert 9999 in detect_ports_from_command("npm start -- --port=9999")


def test_detect_ports_out_of_range_falls_back_to_default():
    assert detect_ports_from_command("serve --port 70000") == [8000]


@given(st.integers(min_value=0, max_value=65535))
def test_detect_ports_finds_any_valid_port(port):
    assert detect_ports_from_command(f"serve --port {port}") == [port]


def test_extract_port_from_log():
    assert extract_port_from_log("Server listening on port 3000") == 3000
    assert extract_port_from_log("Running on http://localhost:8080") == 8080
    assert extract_port_from_log("Listening on 127.0.0.1:5000") == 5000


def test_extract_port_from_log_extended_patterns():
    assert extract_port_from_log("Server running on port 4200") == 4200
    assert extract_port_from_log("Application available on http://0.0.0.0:9000") == 9000
    assert extract_port_from_log("started on :8888") == 8888
    assert extract_port_from_log("Running at http://localhost:7777") == 7777
    assert extract_port_from_log("Available on https://example.com:3443") == 3443
    assert extract_port_from_log("Version 3.14.15") is None


def test_extract_port_skips_out_of_range_numbers():
    assert extract_port_from_log("port 99999") is None


def test_detect_application_port_from_logs(controller, direct_env):
    handle = controller.start_process(
        direct_env, python_command("print('Server\\x20listening\\x20on\\x20port\\x203000')")
    )
    assert wait_until(lambda: len(controller.get_process_logs(handle)) == 1)
    assert controller.detect_application_port(handle) == 3000


def test_detect_application_port_falls_back_to_handle(controller):
    assert controller.detect_application_port(ProcessHandle(id="x", ports=[1234, 5678])) == 1234
    assert controller.detect_application_port(ProcessHandle(id="y", ports=[])) is None


def test_check_port_availability_with_listener(controller):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server:
        server.bind(("127.0.0.1", 0))
        server.listen(1)
        port = server.getsockname()[1]
        assert controller.check_port_availability(port, 1) is True


def test_check_port_availability_without_listener(controller):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
        probe.bind(("127.0.0.1", 0))
        port = probe.getsockname()[1]
    assert controller.check_port_availability(port, 1) is False


def test_open_browser_for_port_on_linux(controller):
    with mock.patch("autolaunch.process_controller.sys.platform", "linux"), mock.patch(
        "autolaunch.process_controller.subprocess.Popen"
    ) as popen:
        result = controller.open_browser_for_port(8123)
    assert result is None
    assert popen.call_count == 1
    assert popen.call_args.args == (["xdg-open", "http://localhost:8123"],)