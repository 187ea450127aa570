from pathlib import Path

import pytest

from unify_build.foundation.config_io import (
    dump_json_text,
    find_config_file,
    load_json_mapping,
    repo_root_for,
)
from unify_build.foundation.errors import ConfigParseError


def test_root_candidate_wins_over_build_subdir(tmp_path: Path):
    (tmp_path / "build").mkdir()
    (tmp_path / "build" / "build.config.json").write_text("{}", encoding="utf-8")
    (tmp_path / "build.config.json").write_text("{}", encoding="utf-8")

    located = find_config_file(tmp_path)

    assert located.path == tmp_path.resolve() / "build.config.json"
    assert located.repo_root == tmp_path.resolve()


def test_defaults_to_current_directory(tmp_path: Path, monkeypatch):
    (tmp_path / "build.config.json").write_text("{}", encoding="utf-8")
    sub = tmp_path / "sub"
    sub.mkdir()
    monkeypatch.chdir(sub)

    assert find_config_file().repo_root == tmp_path.resolve()


def test_empty_file_is_a_parse_error(tmp_path: Path):
    path = tmp_path / "build.config.json"
    path.write_text("  \n", encoding="utf-8")

    with pytest.raises(ConfigParseError, match="empty") as excinfo:
        load_json_mapping(path)

    assert (excinfo.value.line, excinfo.value.column) == (1, 1)


def test_utf8_bom_is_accepted(tmp_path: Path):
    path = tmp_path / "build.config.json"
    path.write_bytes(b"\xef\xbb\xbf" + '{"version": "1.0.0"}'.encode("utf-8"))

    assert load_json_mapping(path) == {"version": "1.0.0"}


def test_dump_json_text_is_pretty_and_newline_terminated():
    assert dump_json_text({"name": "café"}) == '{\n  "name": "café"\n}\n'


def test_repo_root_for_build_subdir(tmp_path: Path):
    assert repo_root_for(tmp_path / "build" / "build.config.json") == tmp_path.resolve()
    assert repo_root_for(tmp_path / "build.config.json") == tmp_path.resolve()


def test_invalid_utf8_is_a_parse_error_with_location(tmp_path: Path):
    path = tmp_path / "build.config.json"
    path.write_bytes(b'{\n  "hostsDir": "src\xff"\n}\n')

    with pytest.raises(ConfigParseError, match="UTF-8") as excinfo:
        load_json_mapping(path)

    assert (excinfo.value.line, excinfo.value.column) == (2, 19)
