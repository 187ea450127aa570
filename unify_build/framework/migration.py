"""Detect legacy (v1) build configs and migrate them to the projectGroups (v2) schema.

The file flow is ordered so an interrupted migration never loses the original:

1. `<config>.bak` is written and fsynced with the original bytes;
2. the migrated document is staged in a temporary sibling file and fsynced;
3. the backup is re-read and compared with the original bytes;
4. `os.replace` swaps the staged file over the config.

The staged file is removed on every failure path.
"""

from __future__ import annotations

import copy
import logging
import os
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Any

from unify_build.foundation.config_io import (
    decode_config_bytes,
    dump_json_text,
    parse_json_text,
    read_config_text,
)
from unify_build.foundation.errors import (
    BuildConfigError,
    ConfigNotFoundError,
    ConfigParseError,
    MigrationError,
)
from unify_build.framework.config import BuildConfig, lookup

LOGGER = logging.getLogger("unify_build.migration")

BACKUP_SUFFIX = ".bak"
NO_MIGRATION_NEEDED = "Config is already at v2 schema, no migration needed."

LEGACY_MARKERS: tuple[str, ...] = (
    "hostsDir",
    "pluginsDir",
    "contractsDir",
    "includeHosts",
    "excludeHosts",
    "includePlugins",
    "excludePlugins",
    "includeContracts",
    "excludeContracts",
)

# Copied verbatim when present, in this order.
SCALAR_PROPERTIES: tuple[str, ...] = (
    "version",
    "versionEnv",
    "artifactsVersion",
    "solution",
)
TRAILING_PROPERTIES: tuple[str, ...] = (
    "compileProjects",
    "publishProjects",
    "packProjects",
    "nuGetOutputDir",
    "publishOutputDir",
    "packProperties",
    "packIncludeSymbols",
    "syncLocalNugetFeed",
    "localNugetFeedRoot",
    "localNugetFeedFlatSubdir",
    "localNugetFeedHierarchicalSubdir",
    "localNugetFeedBaseUrl",
)


@dataclass(frozen=True)
class LegacyRoleMigration:
    directory_key: str
    include_key: str
    exclude_key: str
    group_name: str
    action: str


ROLE_MIGRATIONS: tuple[LegacyRoleMigration, ...] = (
    LegacyRoleMigration("hostsDir", "includeHosts", "excludeHosts", "executables", "publish"),
    LegacyRoleMigration("pluginsDir", "includePlugins", "excludePlugins", "libraries", "pack"),
    LegacyRoleMigration("contractsDir", "includeContracts", "excludeContracts", "contracts", "pack"),
)


class SchemaVersion(IntEnum):
    LEGACY = 1
    CURRENT = 2


@dataclass(frozen=True)
class MigrationResult:
    original_path: Path
    backup_path: Path | None
    migrated_path: Path
    changes: tuple[str, ...]
    is_valid: bool


def _pascal(key: str) -> str:
    return key[:1].upper() + key[1:]


def _has_legacy_marker(doc: Mapping[str, Any]) -> bool:
    return any(key in doc or _pascal(key) in doc for key in LEGACY_MARKERS)


def detect_schema_version(doc: Mapping[str, Any]) -> SchemaVersion:
    """
    Classify a generically parsed document.

    A top-level `projectGroups` key in any casing means current; otherwise any
    legacy marker (camelCase or PascalCase) means legacy; anything else is current.
    """

    if any(isinstance(key, str) and key.casefold() == "projectgroups" for key in doc):
        return SchemaVersion.CURRENT
    if _has_legacy_marker(doc):
        return SchemaVersion.LEGACY
    return SchemaVersion.CURRENT


def _is_consumed(key: Any) -> bool:
    if not isinstance(key, str):
        return False
    folded = key.casefold()
    known = {k.casefold() for k in (*SCALAR_PROPERTIES, *TRAILING_PROPERTIES, *LEGACY_MARKERS)}
    known.update(json_key.casefold() for json_key, _attr, _cls in BuildConfig.SECTION_KEYS)
    return folded in known


def migrate_document(doc: Mapping[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """
    Transform a legacy document into the current schema. Pure; returns (document, changes).

    Only properties present in `doc` are emitted. Optional build sections are
    normalized through their typed models, so a wrongly typed section raises
    ConfigSchemaError before anything is written.
    """

    out: dict[str, Any] = {}
    changes: list[str] = []

    for key, value in doc.items():
        if isinstance(key, str) and key.startswith("$"):
            out[key] = copy.deepcopy(value)

    for key in SCALAR_PROPERTIES:
        found, value = lookup(doc, key)
        if found and (value is not None or key == "versionEnv"):
            out[key] = value

    groups: dict[str, dict[str, Any]] = {}
    for role in ROLE_MIGRATIONS:
        found_dir, source_dir = lookup(doc, role.directory_key)
        found_inc, include = lookup(doc, role.include_key)
        found_exc, exclude = lookup(doc, role.exclude_key)

        if not found_dir or source_dir is None:
            for list_key, found in ((role.include_key, found_inc), (role.exclude_key, found_exc)):
                if found:
                    changes.append(f"Dropped {list_key}: no {role.directory_key} to attach it to")
            continue

        group: dict[str, Any] = {"sourceDir": source_dir, "action": role.action}
        changes.append(
            f"Migrated {role.directory_key} '{source_dir}' -> projectGroups.{role.group_name} "
            f"(action: {role.action})"
        )
        if found_inc and include is not None:
            group["include"] = copy.deepcopy(include)
            changes.append(f"Migrated {role.include_key} -> projectGroups.{role.group_name}.include")
        if found_exc and exclude is not None:
            group["exclude"] = copy.deepcopy(exclude)
            changes.append(f"Migrated {role.exclude_key} -> projectGroups.{role.group_name}.exclude")
        groups[role.group_name] = group

    if groups:
        out["projectGroups"] = groups

    for key in TRAILING_PROPERTIES:
        found, value = lookup(doc, key)
        if found and value is not None:
            out[key] = copy.deepcopy(value)

    for json_key, _attr, section_cls in BuildConfig.SECTION_KEYS:
        found, raw = lookup(doc, json_key)
        if found and raw is not None:
            out[json_key] = section_cls.from_dict(raw, json_key).to_dict()

    for key, value in doc.items():
        if isinstance(key, str) and not key.startswith("$") and not _is_consumed(key):
            out[key] = copy.deepcopy(value)
            changes.append(f"Kept unrecognised property '{key}' unchanged")

    return out, changes


def backup_path_for(config_path: Path) -> Path:
    return config_path.with_name(config_path.name + BACKUP_SUFFIX)


def _write_synced(path: Path, data: bytes) -> None:
    with open(path, "wb") as handle:
        handle.write(data)
        handle.flush()
        os.fsync(handle.fileno())


def _stage_text(path: Path, content: str) -> Path:
    handle = tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        newline="",
        delete=False,
        dir=str(path.parent),
        prefix=path.name + ".",
        suffix=".tmp",
    )
    temp_path = Path(handle.name)
    try:
        with handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise
    return temp_path


def _discard(temp_path: Path) -> None:
    try:
        temp_path.unlink(missing_ok=True)
    except OSError as exc:
        LOGGER.warning("Could not remove staged file %s: %s", temp_path, exc)


def _is_current_config(path: Path) -> bool:
    try:
        document = parse_json_text(read_config_text(path), path=str(path))
        if not isinstance(document, Mapping):
            return False
        if detect_schema_version(document) is not SchemaVersion.CURRENT:
            return False
        BuildConfig.from_dict(document)
    except (BuildConfigError, OSError) as exc:
        LOGGER.warning("Migrated config %s failed re-validation: %s", path, exc)
        return False
    return True


def migrate_config_file(config_path: str | os.PathLike[str]) -> MigrationResult:
    """
    Migrate a config file in place, keeping the original as `<config>.bak`.

    A current-schema file is left untouched and no backup is written.

    Raises:
      ConfigNotFoundError if the file is missing.
      ConfigParseError for malformed JSON or a non-object root.
      ConfigSchemaError if an optional section has the wrong shape.
      MigrationError for I/O failures while backing up or rewriting.
    """

    path = Path(config_path)
    if not path.is_file():
        raise ConfigNotFoundError(path.name, [str(path)])

    original_bytes = path.read_bytes()
    document = parse_json_text(decode_config_bytes(original_bytes, path=str(path)), path=str(path))
    if not isinstance(document, Mapping):
        raise ConfigParseError(str(path), f"config root must be a JSON object, got {type(document).__name__}")

    if detect_schema_version(document) is SchemaVersion.CURRENT:
        LOGGER.info("Config %s is already current; nothing to migrate", path)
        return MigrationResult(
            original_path=path,
            backup_path=None,
            migrated_path=path,
            changes=(NO_MIGRATION_NEEDED,),
            is_valid=True,
        )

    migrated, migration_changes = migrate_document(document)
    backup_path = backup_path_for(path)
    temp_path: Path | None = None
    try:
        _write_synced(backup_path, original_bytes)
        LOGGER.info("Created backup at %s", backup_path)

        temp_path = _stage_text(path, dump_json_text(migrated))
        if backup_path.read_bytes() != original_bytes:
            raise MigrationError(str(path), f"backup {backup_path} does not match the original")

        os.replace(temp_path, path)
        temp_path = None
    except OSError as exc:
        raise MigrationError(str(path), str(exc)) from exc
    finally:
        if temp_path is not None:
            _discard(temp_path)

    LOGGER.info("Rewrote %s with the projectGroups schema", path)
    return MigrationResult(
        original_path=path,
        backup_path=backup_path,
        migrated_path=path,
        changes=(f"Created backup at {backup_path}", *migration_changes),
        is_valid=_is_current_config(path),
    )
