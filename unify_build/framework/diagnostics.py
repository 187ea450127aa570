"""Diagnostic codes and the `ValidationIssue` record shared by validate and migrate."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum

from unify_build.foundation.errors import (
    BuildConfigError,
    ConfigNotFoundError,
    ConfigParseError,
    ConfigSchemaError,
    MigrationError,
)

CODE_PREFIX = "UB"


class ErrorCode(IntEnum):
    CONFIG_NOT_FOUND = 100
    CONFIG_PARSE_ERROR = 101
    CONFIG_SCHEMA_VIOLATION = 102
    CONFIG_PROJECT_NOT_FOUND = 103
    CONFIG_DIR_NOT_FOUND = 104
    CONFIG_DUPLICATE_PROJECT = 105
    CONFIG_LEGACY_ROLE_AMBIGUOUS = 106
    MIGRATION_FAILED = 107


class ValidationSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class ValidationIssue:
    severity: ValidationSeverity
    code: str
    message: str
    file_path: str | None = None
    line: int | None = None
    suggestion: str | None = None


def format_code(code: ErrorCode | int) -> str:
    return f"{CODE_PREFIX}{int(code):03d}"


def format_issue(issue: ValidationIssue) -> str:
    """Render `[UB104] path:line: message` with the suggestion on an indented second line."""

    location = ""
    if issue.file_path:
        location = issue.file_path if issue.line is None else f"{issue.file_path}:{issue.line}"
        location += ": "
    text = f"[{issue.code}] {location}{issue.message}"
    if issue.suggestion:
        text += f"\n    suggestion: {issue.suggestion}"
    return text


def issue_from_exception(exc: BuildConfigError) -> ValidationIssue:
    if isinstance(exc, ConfigNotFoundError):
        return ValidationIssue(
            severity=ValidationSeverity.ERROR,
            code=format_code(ErrorCode.CONFIG_NOT_FOUND),
            message=str(exc),
            suggestion=f"Create {exc.config_name} at the repository root or in build/.",
        )
    if isinstance(exc, ConfigParseError):
        return ValidationIssue(
            severity=ValidationSeverity.ERROR,
            code=format_code(ErrorCode.CONFIG_PARSE_ERROR),
            message=f"Invalid JSON at column {exc.column}: {exc.detail}",
            file_path=exc.path,
            line=exc.line,
            suggestion="Fix the JSON syntax near the reported position.",
        )
    if isinstance(exc, ConfigSchemaError):
        return ValidationIssue(
            severity=ValidationSeverity.ERROR,
            code=format_code(ErrorCode.CONFIG_SCHEMA_VIOLATION),
            message=str(exc),
            suggestion=f"Check the type of '{exc.key_path}'." if exc.key_path else None,
        )
    if isinstance(exc, MigrationError):
        return ValidationIssue(
            severity=ValidationSeverity.ERROR,
            code=format_code(ErrorCode.MIGRATION_FAILED),
            message=str(exc),
            file_path=exc.path,
        )
    return ValidationIssue(
        severity=ValidationSeverity.ERROR,
        code=format_code(ErrorCode.CONFIG_PARSE_ERROR),
        message=str(exc),
    )
