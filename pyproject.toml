[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "autolaunch"
version = "0.1.0"
description = "Analyse project checkouts, detect their stack and run them in isolated environments"
requires-python = ">=3.10"
dependencies = [
    "platformdirs",
]
keywords = ["launcher", "docker", "sandbox", "project-analysis", "security", "sqlite"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
]

[project.optional-dependencies]
test = [
    "pytest",
    "hypothesis",
]

[tool.hatch.build.targets.wheel]
packages = ["autolaunch"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
