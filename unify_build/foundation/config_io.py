from __future__ import annotations

import codecs
import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from unify_build.foundation.errors import ConfigNotFoundError, ConfigParseError

LOGGER = logging.getLogger("unify_build.config_io")

DEFAULT_CONFIG_NAME = "build.config.json"


@dataclass(frozen=True)
class LocatedConfig:
    path: Path
    repo_root: Path
    searched: tuple[str, ...]


def candidate_paths(directory: Path, config_name: str) -> tuple[Path, ...]:
    return (directory / config_name, directory / "build" / config_name)


def find_config_file(
    start: str | os.PathLike[str] | None = None,
    *,
    config_name: str = DEFAULT_CONFIG_NAME,
) -> LocatedConfig:
    """
    Locate the build config by walking from `start` up to the filesystem root.

    At each directory `./<name>` is tried before `./build/<name>`. The directory
    where a candidate matches is reported as the repository root.

    Raises:
      ConfigNotFoundError listing every path attempted.
    """

    start_path = Path(start or os.getcwd()).resolve()
    if start_path.is_file():
        start_path = start_path.parent

    searched: list[str] = []
    for directory in (start_path, *start_path.parents):
        for candidate in candidate_paths(directory, config_name):
            searched.append(str(candidate))
            if candidate.is_file():
                LOGGER.info("Found build config: %s", candidate)
                return LocatedConfig(path=candidate, repo_root=directory, searched=tuple(searched))

    raise ConfigNotFoundError(config_name, searched)


def parse_json_text(text: str, *, path: str) -> Any:
    if not text.strip():
        raise ConfigParseError(path, "file is empty", line=1, column=1)
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigParseError(path, exc.msg, line=exc.lineno, column=exc.colno) from exc


def decode_config_bytes(data: bytes, *, path: str) -> str:
    """Decode UTF-8 config bytes (BOM tolerant); invalid bytes raise ConfigParseError at their location."""

    if data.startswith(codecs.BOM_UTF8):
        data = data[len(codecs.BOM_UTF8):]
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        line = data.count(b"\n", 0, exc.start) + 1
        column = exc.start - (data.rfind(b"\n", 0, exc.start) + 1) + 1
        raise ConfigParseError(path, f"invalid UTF-8: {exc.reason}", line=line, column=column) from exc


def read_config_text(path: str | os.PathLike[str]) -> str:
    with open(path, "rb") as handle:
        data = handle.read()
    return decode_config_bytes(data, path=str(path))


def load_json_mapping(path: str | os.PathLike[str]) -> dict[str, Any]:
    """
    Load a JSON document whose root must be an object.

    Raises:
      FileNotFoundError if `path` is missing.
      ConfigParseError for malformed JSON (1-based line/column) or a non-object root.
    """

    text = read_config_text(path)
    payload = parse_json_text(text, path=str(path))
    if not isinstance(payload, Mapping):
        raise ConfigParseError(
            str(path),
            f"config root must be a JSON object, got {type(payload).__name__}",
        )
    return dict(payload)


def dump_json_text(payload: Mapping[str, Any]) -> str:
    return json.dumps(dict(payload), ensure_ascii=False, indent=2) + "\n"


def repo_root_for(config_path: str | os.PathLike[str]) -> Path:
    """Repository root owning `config_path`; `<root>/build/<name>` maps to `<root>`."""

    parent = Path(config_path).resolve().parent
    if parent.name.casefold() == "build":
        return parent.parent
    return parent
