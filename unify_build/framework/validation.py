"""Semantic validation of a build config against the filesystem.

Every check always runs; findings are returned as `ValidationIssue` data in a
stable order (source directories, project references, duplicates, actions,
legacy roles, Unity). Callers decide policy from the presence of errors.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional

from unify_build.foundation.config_io import read_config_text, parse_json_text, repo_root_for
from unify_build.foundation.errors import BuildConfigError, ConfigNotFoundError, ConfigParseError
from unify_build.framework.config import BuildConfig, ProjectGroup, UnityBuildConfig
from unify_build.framework.diagnostics import (
    ErrorCode,
    ValidationIssue,
    ValidationSeverity,
    format_code,
    issue_from_exception,
)
from unify_build.framework.discovery import find_project_files, project_name
from unify_build.framework.groups import legacy_role_conflicts
from unify_build.framework.migration import SchemaVersion, detect_schema_version

LOGGER = logging.getLogger("unify_build.validation")

UNITY_COMPATIBLE_FRAMEWORKS = frozenset({"netstandard2.0", "netstandard2.1"})

# (issue, owning group name or None) pairs; the group lets file validation find a line.
Finding = tuple[ValidationIssue, Optional[str]]


@dataclass(frozen=True)
class ValidationResult:
    issues: tuple[ValidationIssue, ...] = ()

    @property
    def errors(self) -> tuple[ValidationIssue, ...]:
        return tuple(i for i in self.issues if i.severity is ValidationSeverity.ERROR)

    @property
    def warnings(self) -> tuple[ValidationIssue, ...]:
        return tuple(i for i in self.issues if i.severity is ValidationSeverity.WARNING)

    @property
    def infos(self) -> tuple[ValidationIssue, ...]:
        return tuple(i for i in self.issues if i.severity is ValidationSeverity.INFO)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _issue(
    severity: ValidationSeverity,
    code: ErrorCode,
    message: str,
    *,
    file_path: str | os.PathLike[str] | None = None,
    suggestion: str | None = None,
) -> ValidationIssue:
    return ValidationIssue(
        severity=severity,
        code=format_code(code),
        message=message,
        file_path=None if file_path is None else str(file_path),
        suggestion=suggestion,
    )


def _check_source_directories(repo_root: Path, groups: Iterable[ProjectGroup]) -> list[Finding]:
    findings: list[Finding] = []
    for group in groups:
        if not group.source_dir.strip():
            findings.append(
                (
                    _issue(
                        ValidationSeverity.WARNING,
                        ErrorCode.CONFIG_DIR_NOT_FOUND,
                        f"Project group '{group.name}' has an empty source directory.",
                        suggestion=f"Set 'sourceDir' for project group '{group.name}'.",
                    ),
                    group.name,
                )
            )
            continue
        source_dir = repo_root / group.source_dir
        if not source_dir.is_dir():
            findings.append(
                (
                    _issue(
                        ValidationSeverity.ERROR,
                        ErrorCode.CONFIG_DIR_NOT_FOUND,
                        f"Source directory '{group.source_dir}' for project group '{group.name}' "
                        f"does not exist. Resolved path: {source_dir}",
                        suggestion=f"Create the directory '{group.source_dir}' or update the "
                        f"'sourceDir' in project group '{group.name}'.",
                    ),
                    group.name,
                )
            )
    return findings


def _check_project_references(repo_root: Path, cfg: BuildConfig) -> list[Finding]:
    findings: list[Finding] = []
    for group in cfg.project_groups:
        if not group.include:
            continue
        source_dir = repo_root / group.source_dir
        if not source_dir.is_dir():
            continue

        by_name: dict[str, list[str]] = {}
        for path in find_project_files(source_dir):
            by_name.setdefault(project_name(path).casefold(), []).append(path)

        for name in dict.fromkeys(group.include):
            matches = by_name.get(name.casefold(), [])
            if not matches:
                findings.append(
                    (
                        _issue(
                            ValidationSeverity.ERROR,
                            ErrorCode.CONFIG_PROJECT_NOT_FOUND,
                            f"Project '{name}' referenced in group '{group.name}' was not found "
                            f"in '{group.source_dir}'.",
                            suggestion=f"Verify the project name '{name}' exists under "
                            f"'{group.source_dir}', or remove it from the 'include' list.",
                        ),
                        group.name,
                    )
                )
            elif len(matches) > 1:
                findings.append(
                    (
                        _issue(
                            ValidationSeverity.INFO,
                            ErrorCode.CONFIG_DUPLICATE_PROJECT,
                            f"Project '{name}' in group '{group.name}' matches {len(matches)} "
                            f"project files; all of them are included: {', '.join(matches)}",
                            suggestion="Give projects unique names within a group.",
                        ),
                        group.name,
                    )
                )

    for list_name, paths in (
        ("compileProjects", cfg.compile_projects),
        ("publishProjects", cfg.publish_projects),
        ("packProjects", cfg.pack_projects),
    ):
        for rel in paths:
            full_path = repo_root / rel
            if not full_path.is_file():
                findings.append(
                    (
                        _issue(
                            ValidationSeverity.ERROR,
                            ErrorCode.CONFIG_PROJECT_NOT_FOUND,
                            f"Project '{rel}' in '{list_name}' does not exist. Resolved path: {full_path}",
                            suggestion=f"Verify the project path '{rel}' is correct, or remove it "
                            f"from '{list_name}'.",
                        ),
                        None,
                    )
                )
    return findings


def _check_duplicates(groups: Iterable[ProjectGroup]) -> list[Finding]:
    findings: list[Finding] = []
    # casefolded name -> (first spelling, groups in declaration order)
    owners: dict[str, tuple[str, list[str]]] = {}

    for group in groups:
        seen: set[str] = set()
        for name in group.include:
            key = name.casefold()
            if key in seen:
                findings.append(
                    (
                        _issue(
                            ValidationSeverity.ERROR,
                            ErrorCode.CONFIG_DUPLICATE_PROJECT,
                            f"Project '{name}' is listed multiple times in group '{group.name}'.",
                            suggestion=f"Remove the duplicate entry for '{name}' in group '{group.name}'.",
                        ),
                        group.name,
                    )
                )
                continue
            seen.add(key)
            _spelling, group_names = owners.setdefault(key, (name, []))
            group_names.append(group.name)

    for spelling, group_names in owners.values():
        if len(group_names) > 1:
            findings.append(
                (
                    _issue(
                        ValidationSeverity.ERROR,
                        ErrorCode.CONFIG_DUPLICATE_PROJECT,
                        f"Project '{spelling}' appears in multiple groups: {', '.join(group_names)}.",
                        suggestion=f"Remove '{spelling}' from all but one group, or use different project names.",
                    ),
                    group_names[-1],
                )
            )
    return findings


def _check_actions(groups: Iterable[ProjectGroup]) -> list[Finding]:
    return [
        (
            _issue(
                ValidationSeverity.WARNING,
                ErrorCode.CONFIG_SCHEMA_VIOLATION,
                f"Project group '{group.name}' has unknown action '{group.declared_action}'; "
                "it will be treated as 'compile'.",
                suggestion="Use one of: compile, pack, publish.",
            ),
            group.name,
        )
        for group in groups
        if not group.action_recognised
    ]


def _check_legacy_roles(groups: list[ProjectGroup]) -> list[Finding]:
    findings: list[Finding] = []
    for role, names in legacy_role_conflicts(groups).items():
        quoted = ", ".join(f"'{name}'" for name in names)
        findings.append(
            (
                _issue(
                    ValidationSeverity.WARNING,
                    ErrorCode.CONFIG_LEGACY_ROLE_AMBIGUOUS,
                    f"Groups {quoted} all map to the legacy '{role.value}' role; "
                    f"the last declared ('{names[-1]}') wins.",
                    suggestion="Rename all but one of these groups if legacy consumers rely on this role.",
                ),
                names[-1],
            )
        )
    return findings


def _check_unity(repo_root: Path, unity: UnityBuildConfig | None) -> list[Finding]:
    if unity is None or unity.enabled is False:
        return []

    issues: list[ValidationIssue] = []
    root_text = (unity.unity_project_root or "").strip()
    if not root_text:
        issues.append(
            _issue(
                ValidationSeverity.ERROR,
                ErrorCode.CONFIG_DIR_NOT_FOUND,
                "Unity build is configured but 'unityProjectRoot' is empty.",
                suggestion="Set 'unityProjectRoot' to the path of your Unity project (the folder containing 'Assets/').",
            )
        )
    else:
        unity_root = repo_root / root_text
        if not unity_root.is_dir():
            issues.append(
                _issue(
                    ValidationSeverity.ERROR,
                    ErrorCode.CONFIG_DIR_NOT_FOUND,
                    f"Unity project root '{root_text}' does not exist. Resolved path: {unity_root}",
                    suggestion=f"Verify the path '{root_text}' is correct and the Unity project directory exists.",
                )
            )
        elif not (unity_root / "Assets").is_dir():
            issues.append(
                _issue(
                    ValidationSeverity.WARNING,
                    ErrorCode.CONFIG_DIR_NOT_FOUND,
                    f"Unity project root '{root_text}' does not contain an 'Assets' directory. "
                    "This may not be a valid Unity project.",
                    suggestion="Ensure 'unityProjectRoot' points to a directory containing 'Assets/' and 'ProjectSettings/'.",
                )
            )

    framework = unity.target_framework or "netstandard2.1"
    if framework.casefold() not in UNITY_COMPATIBLE_FRAMEWORKS:
        issues.append(
            _issue(
                ValidationSeverity.WARNING,
                ErrorCode.CONFIG_SCHEMA_VIOLATION,
                f"Target framework '{framework}' may not be compatible with Unity. "
                "Unity supports 'netstandard2.0' and 'netstandard2.1'.",
                suggestion="Set 'targetFramework' to 'netstandard2.1' (recommended) or 'netstandard2.0'.",
            )
        )

    if not unity.packages:
        issues.append(
            _issue(
                ValidationSeverity.WARNING,
                ErrorCode.CONFIG_SCHEMA_VIOLATION,
                "Unity build is configured but no package mappings are defined.",
                suggestion="Add at least one entry to 'packages' with 'packageName' and "
                "'sourceProjects' or 'sourceProjectGlobs'.",
            )
        )
        return [(issue, None) for issue in issues]

    for package in unity.packages:
        package_name = package.package_name or ""
        if not package_name.strip():
            issues.append(
                _issue(
                    ValidationSeverity.ERROR,
                    ErrorCode.CONFIG_SCHEMA_VIOLATION,
                    "A Unity package mapping has an empty 'packageName'.",
                    suggestion="Set 'packageName' to the Unity package identifier (e.g. 'com.company.package').",
                )
            )
        for rel in package.source_projects or ():
            full_path = repo_root / rel
            if not full_path.is_file():
                issues.append(
                    _issue(
                        ValidationSeverity.ERROR,
                        ErrorCode.CONFIG_PROJECT_NOT_FOUND,
                        f"Source project '{rel}' in Unity package '{package_name}' does not exist. "
                        f"Resolved path: {full_path}",
                        suggestion=f"Verify the project path '{rel}' is correct, or remove it from 'sourceProjects'.",
                    )
                )
        if not package.source_projects and not package.source_project_globs:
            issues.append(
                _issue(
                    ValidationSeverity.WARNING,
                    ErrorCode.CONFIG_SCHEMA_VIOLATION,
                    f"Unity package '{package_name}' has no 'sourceProjects' or 'sourceProjectGlobs' defined.",
                    suggestion="Add 'sourceProjects' with explicit project paths or 'sourceProjectGlobs'.",
                )
            )
    return [(issue, None) for issue in issues]


def _collect(repo_root: Path, document: Mapping[str, Any]) -> list[Finding]:
    try:
        cfg, _warnings = BuildConfig.from_dict(document)
    except BuildConfigError as exc:
        return [(issue_from_exception(exc), None)]

    groups = list(cfg.project_groups)
    findings: list[Finding] = []
    findings.extend(_check_source_directories(repo_root, groups))
    findings.extend(_check_project_references(repo_root, cfg))
    findings.extend(_check_duplicates(groups))
    findings.extend(_check_actions(groups))
    findings.extend(_check_legacy_roles(groups))
    findings.extend(_check_unity(repo_root, cfg.unity_build))
    return findings


def validate_semantic(repo_root: str | os.PathLike[str], document: Mapping[str, Any]) -> ValidationResult:
    """Cross-check a parsed config document against the filesystem under `repo_root`."""

    findings = _collect(Path(repo_root), document)
    return ValidationResult(issues=tuple(issue for issue, _group in findings))


def find_group_line(text: str, group_name: str) -> int | None:
    """Best-effort 1-based line of the `"<group_name>":` key after `projectGroups`."""

    lines = text.splitlines()
    start = None
    for idx, line in enumerate(lines):
        if '"projectgroups"' in line.casefold():
            start = idx
            break
    if start is None:
        return None
    key = re.compile(r'(?:^|[{,])\s*"' + re.escape(group_name) + r'"\s*:')
    for idx in range(start, len(lines)):
        if key.search(lines[idx]):
            return idx + 1
    return None


def _with_location(issue: ValidationIssue, *, file_path: str, line: int | None) -> ValidationIssue:
    return ValidationIssue(
        severity=issue.severity,
        code=issue.code,
        message=issue.message,
        file_path=issue.file_path or file_path,
        line=issue.line if issue.line is not None else line,
        suggestion=issue.suggestion,
    )


def validate_config_file(
    config_path: str | os.PathLike[str],
    repo_root: str | os.PathLike[str] | None = None,
) -> ValidationResult:
    """
    Read and validate a config file, reporting load failures as issues.

    Group-related issues carry the config path and the line of the group's key.
    """

    path = Path(config_path)
    if not path.is_file():
        issue = issue_from_exception(ConfigNotFoundError(path.name, [str(path)]))
        return ValidationResult(issues=(_with_location(issue, file_path=str(path), line=None),))

    try:
        text = read_config_text(path)
        document = parse_json_text(text, path=str(path))
    except ConfigParseError as exc:
        return ValidationResult(issues=(issue_from_exception(exc),))
    except OSError as exc:
        issue = issue_from_exception(ConfigParseError(str(path), f"failed to read file: {exc}"))
        return ValidationResult(issues=(issue,))

    if not isinstance(document, Mapping):
        exc = ConfigParseError(str(path), f"config root must be a JSON object, got {type(document).__name__}")
        return ValidationResult(issues=(issue_from_exception(exc),))

    root = Path(repo_root) if repo_root is not None else repo_root_for(path)
    issues: list[ValidationIssue] = []
    if detect_schema_version(document) is SchemaVersion.LEGACY:
        issues.append(
            _issue(
                ValidationSeverity.WARNING,
                ErrorCode.CONFIG_SCHEMA_VIOLATION,
                "Config uses the legacy hostsDir/pluginsDir/contractsDir schema.",
                file_path=path,
                suggestion="Migrate the config to the projectGroups schema.",
            )
        )

    for issue, group_name in _collect(root, document):
        line = find_group_line(text, group_name) if group_name else None
        issues.append(_with_location(issue, file_path=str(path), line=line))

    result = ValidationResult(issues=tuple(issues))
    LOGGER.info(
        "Validated %s: %d error(s), %d warning(s)",
        path,
        len(result.errors),
        len(result.warnings),
    )
    return result
