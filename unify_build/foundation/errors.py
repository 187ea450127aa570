"""Exception taxonomy for loading, resolving and migrating build configs.

Semantic problems (missing directories, duplicate projects, ...) are not
exceptions; they are reported as `ValidationIssue` data by the validator.
"""

from __future__ import annotations

from typing import Sequence


class BuildConfigError(Exception):
    """Base class for hard failures raised by the config engine."""


class ConfigNotFoundError(BuildConfigError, FileNotFoundError):
    def __init__(self, config_name: str, searched_paths: Sequence[str]):
        self.config_name = config_name
        self.searched_paths: tuple[str, ...] = tuple(searched_paths)
        searched = ", ".join(self.searched_paths) or "<none>"
        super().__init__(f"Build config file '{config_name}' not found. Searched: {searched}")


class ConfigParseError(BuildConfigError, ValueError):
    def __init__(self, path: str, message: str, *, line: int = 1, column: int = 1):
        self.path = path
        self.line = line
        self.column = column
        self.detail = message
        super().__init__(f"Failed to parse config {path} (line {line}, column {column}): {message}")


class ConfigSchemaError(BuildConfigError, ValueError):
    def __init__(self, message: str, *, key_path: str | None = None):
        self.key_path = key_path
        super().__init__(message)


class MigrationError(BuildConfigError):
    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"Migration of {path} failed: {message}")


class ResolutionCancelledError(BuildConfigError):
    pass
