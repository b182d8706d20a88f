# autolaunch

A library for three jobs. It looks at a checked-out project and works out what the project is built with. It works out how to start the project. It can then run the project in an isolated environment.

## Modules

### `autolaunch.project_analyzer`

`ProjectAnalyzer.analyze_project(path)` walks a project directory. It skips `node_modules`, `.git`, `target`, `__pycache__`, `.venv` and `venv`. The result is a `ProjectInfo` with these parts:

- **the stack**, as a `TechStack`. It is decided by the first recognised file found:
  - `package.json` means Node.js;
  - `requirements.txt`, `pyproject.toml` or `setup.py` means Python;
  - `Cargo.toml` means Rust;
  - `go.mod` means Go;
  - `pom.xml` or `build.gradle` means Java;
  - `Dockerfile` or `docker-compose.yml`/`.yaml` means Docker.
  
  If none of these is found, the stack is static when there is HTML, or CSS together with JS. Otherwise it is unknown.
- **the configuration files**, as `ConfigFile` entries.
- **the dependencies**, read from `package.json` (`dependencies` and `devDependencies`) and from `requirements.txt`.
- **the start command**:
  - for Node.js, the `start` script in `package.json`, or `node index.js`;
  - for Python, `python main.py` or `python app.py`;
  - for Rust, `cargo run`;
  - for Go, `go run .`;
  - for Docker, `docker-compose up`.

The steps are also available one at a time: `scan_directory`, `detect_stack`, `find_config_files`, `find_entry_point` and `parse_dependencies`.

### `autolaunch.security_scanner`

`SecurityScanner.scan_command(command)` returns a `SecurityWarning` for each dangerous pattern in a shell command. Each warning has a `SecurityLevel`:

- `CRITICAL`: `rm -rf /`, a fork bomb, or `dd` writing zeros onto a device.
- `HIGH`: `rm -rf`, `sudo`, piping `curl` or `wget` into `sh`/`bash`, `eval(`, `exec(` or `chmod 777`.
- `MEDIUM`: output silenced with `>/dev/null 2>&1`, `nohup`, or a trailing `&`.

`scan_project(info)` checks the project's start command and adds the warnings already recorded on the `ProjectInfo`.

The scanner also keeps a set of trusted repositories:

- `add_trusted_repository`, `remove_trusted_repository`, `is_trusted_repository` and `get_trusted_repositories` manage the set.
- URLs are compared after `normalize_repo_url`, which trims whitespace, a trailing `/` and `.git`, and lowercases the URL.
- The set is saved as JSON. By default it goes to `trusted_repos.json` in the user configuration directory, under `autolaunch`. `SecurityScanner(trusted_repos_file=...)` chooses another file.

### `autolaunch.environment_manager`

`EnvironmentManager.create_environment(info, path)` returns an `Environment`. Which kind depends on the project's trust level and on Docker:

- **Unknown or untrusted projects, with Docker available**, get a sandbox. A `Dockerfile.autolaunch` is generated if it is missing and an image is built from it. A container is then created with these restrictions:
  - no new privileges;
  - all capabilities dropped;
  - user `1000:1000`;
  - a read-only root filesystem, with a small `/tmp` tmpfs;
  - the project mounted read-only;
  - the stack's usual ports published.
- **All other projects** run directly on the host. For Python, a `.venv` is created and `requirements.txt` is installed with its `pip`. For Node.js, `bun install` is run.

`generate_docker_config`, `generate_dockerfile`, `install_dependencies`, `cleanup_environment` and `is_docker_available` are also public. A failed setup step raises `EnvironmentSetupError`.

### `autolaunch.process_controller`

`ProcessController` looks after the processes it launches:

- `start_process(env, command)` starts a command in an environment and returns a `ProcessHandle`. Direct environments split the command on whitespace and run it without a shell. Sandboxes use `docker exec`.
- Standard output and standard error are collected as `LogEntry` records. Up to 1000 are kept; when there are more, the oldest 100 are dropped.
- A background thread moves the status (`ExecutionStatus`) from `Starting` to `Running`, and sets `Stopped` when the process exits.
- `stop_process` sends SIGTERM first and kills the process after a grace period. `restart_process` stops the process and starts it again. `stop_all_processes` stops everything it launched.
- `get_process_status`, `get_process_logs`, `get_running_processes` and `has_running_processes` report on the processes.
- `detect_application_port` looks for a port in the logs and falls back to the handle's ports.
- `check_port_availability(port, timeout_secs)` tries a TCP connection to `127.0.0.1`.
- `open_browser_for_port` opens `http://localhost:<port>`.

The constructor takes three timings: `monitor_interval`, `restart_delay` and `stop_grace_period`.

The port helpers also work on their own:

```python
from autolaunch.process_controller import detect_ports_from_command, extract_port_from_log

detect_ports_from_command("node server.js --port 4567")   # [4567]
detect_ports_from_command("python app.py")                # [5000]
extract_port_from_log("Server listening on port 3000")    # 3000
```

### `autolaunch.database`

`Database` keeps projects (`Project`), snapshot records (`ProjectSnapshot`) and trusted repository URLs in SQLite.

- By default the file is at `default_database_path()`. Pass `":memory:"` for a throwaway database.
- It can be used as a context manager.
- `search_projects(query)` matches the repository name, the owner or the tags.
- Project lists are ordered by last run time, newest first, and then by creation time.

### `autolaunch.models` and `autolaunch.errors`

`autolaunch.models` holds the shared data classes and enums.

Errors are raised as subclasses of `AutoLaunchError`:

- `ProjectAnalysisError`
- `EnvironmentSetupError`
- `ProcessError`
- `SecurityError`
- `DatabaseError`
- `InvalidUrlError`
- `InvalidInputError`
- `NotFoundError`

`error_context(error)` turns any exception into an `ErrorContext` with a message for the user.

## Example

```python
from pathlib import Path

from autolaunch.project_analyzer import ProjectAnalyzer
from autolaunch.security_scanner import SecurityScanner

info = ProjectAnalyzer().analyze_project(Path("path/to/project"))
print(info.stack, info.entry_command)

for warning in SecurityScanner().scan_project(info):
    print(warning.level, warning.message)
```

## What it does not do

This is a library only. It has:

- no command-line program;
- no user interface;
- no application settings store.

It does not download or clone repositories, and it does not parse repository URLs. You give it a directory that is already on disk.

The `Database` stores snapshot records, but nothing in the package creates, copies or restores snapshot files.

## Installation

```
pip install autolaunch
```

## Running the tests

```
pip install -e ".[test]"
pytest
```