"""Analyse project checkouts, scan their commands and run them in isolated environments."""

__version__ = "0.1.0"

__all__ = [
    "errors",
    "models",
    "security_scanner",
    "project_analyzer",
    "database",
    "environment_manager",
    "process_controller",
]