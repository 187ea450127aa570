import json
from pathlib import Path

import pytest

from unify_build.foundation.cancellation import CancellationToken
from unify_build.foundation.errors import (
    ConfigNotFoundError,
    ConfigParseError,
    ConfigSchemaError,
    ResolutionCancelledError,
)
from unify_build.framework.config import ProjectAction
from unify_build.framework.loader import load_build_context, load_build_context_from_path


def _project(root: Path, rel: str) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("<Project />", encoding="utf-8")
    return path


def _write_config(root: Path, payload: dict, rel: str = "build.config.json") -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return path


def test_pack_group_with_include_resolves_only_named_project(tmp_path: Path):
    lib_a = _project(tmp_path, "src/libs/LibA/LibA.csproj")
    _project(tmp_path, "src/libs/LibB/LibB.csproj")
    _write_config(
        tmp_path,
        {"projectGroups": {"libs": {"sourceDir": "src/libs", "action": "pack", "include": ["LibA"]}}},
    )

    ctx = load_build_context(tmp_path, env={})

    assert ctx.pack_projects == (str(lib_a.resolve()),)
    assert ctx.compile_projects == ()
    assert ctx.publish_projects == ()
    assert ctx.projects_for(ProjectAction.PACK) == ctx.pack_projects


def test_finds_config_from_nested_directory_and_build_subdir(tmp_path: Path):
    config_path = _write_config(tmp_path, {"version": "2.0.0"}, rel="build/build.config.json")
    nested = tmp_path / "src" / "deep"
    nested.mkdir(parents=True)

    ctx = load_build_context(nested, env={})

    assert ctx.repo_root == tmp_path.resolve()
    assert ctx.config_path == config_path.resolve()
    assert ctx.version == "2.0.0"


def test_missing_config_lists_every_searched_path(tmp_path: Path):
    start = tmp_path / "a"
    start.mkdir()

    with pytest.raises(ConfigNotFoundError) as excinfo:
        load_build_context(start, config_name="unlikely-name.config.json", env={})

    searched = excinfo.value.searched_paths
    assert searched[0] == str(start.resolve() / "unlikely-name.config.json")
    assert searched[1] == str(start.resolve() / "build" / "unlikely-name.config.json")
    assert str(tmp_path.resolve() / "unlikely-name.config.json") in searched


def test_malformed_json_reports_line_and_column(tmp_path: Path):
    path = tmp_path / "build.config.json"
    path.write_text('{\n  "version": "1.0.0",\n  "solution": \n}\n', encoding="utf-8")

    with pytest.raises(ConfigParseError) as excinfo:
        load_build_context_from_path(path, env={})

    assert excinfo.value.line == 4
    assert excinfo.value.column == 1


def test_invalid_utf8_is_a_parse_error(tmp_path: Path):
    path = tmp_path / "build.config.json"
    path.write_bytes(b'{"version": "1.0.0\xff"}')

    with pytest.raises(ConfigParseError, match="UTF-8") as excinfo:
        load_build_context_from_path(path, env={})

    assert (excinfo.value.line, excinfo.value.column) == (1, 19)


def test_non_object_root_is_a_parse_error(tmp_path: Path):
    path = tmp_path / "build.config.json"
    path.write_text("[1, 2]", encoding="utf-8")

    with pytest.raises(ConfigParseError, match="JSON object"):
        load_build_context_from_path(path, env={})


def test_legacy_document_is_rejected_with_migration_hint(tmp_path: Path):
    path = _write_config(tmp_path, {"hostsDir": "src/hosts"})

    with pytest.raises(ConfigSchemaError, match="migrate"):
        load_build_context_from_path(path, env={})


def test_version_precedence_and_output_defaults(tmp_path: Path):
    path = _write_config(tmp_path, {"versionEnv": "MY_VERSION", "artifactsVersion": "1.0.0"})

    ctx = load_build_context_from_path(path, env={"MY_VERSION": "3.1.4"}, external_version="9.0.0")

    assert ctx.version == "3.1.4"
    assert ctx.artifacts_version == "1.0.0"
    root = tmp_path.resolve()
    assert ctx.publish_output_dir == root / "build" / "_artifacts" / "1.0.0"
    assert ctx.nuget_output_dir == root / "build" / "_artifacts" / "1.0.0" / "nuget"


def test_artifacts_version_defaults_to_resolved_version(tmp_path: Path):
    path = _write_config(tmp_path, {})

    ctx = load_build_context_from_path(path, env={"GITVERSION_MAJORMINORPATCH": "5.0.1"})

    assert ctx.version == "5.0.1"
    assert ctx.artifacts_version == "5.0.1"


def test_explicit_flat_lists_merge_with_groups(tmp_path: Path):
    app = _project(tmp_path, "src/apps/App/App.csproj")
    tool = _project(tmp_path, "tools/Tool/Tool.csproj")
    path = _write_config(
        tmp_path,
        {
            "projectGroups": {"apps": {"sourceDir": "src/apps", "action": "publish"}},
            "publishProjects": ["tools/Tool/Tool.csproj", "src/apps/App/App.csproj"],
        },
    )

    ctx = load_build_context_from_path(path, env={})

    assert ctx.publish_projects == tuple(sorted([str(app.resolve()), str(tool.resolve())]))


def test_legacy_view_and_resolved_groups(tmp_path: Path):
    _project(tmp_path, "src/hosts/Host/Host.csproj")
    path = _write_config(
        tmp_path,
        {
            "projectGroups": {
                "hosts": {"sourceDir": "src/hosts", "action": "publish", "exclude": ["Old"]},
                "misc": {"sourceDir": "src/misc", "outputDir": "out/misc"},
            }
        },
    )

    ctx = load_build_context_from_path(path, env={})

    root = tmp_path.resolve()
    assert ctx.legacy.hosts_dir == root / "src/hosts"
    assert ctx.legacy.exclude_hosts == ("Old",)
    assert ctx.legacy.plugins_dir == root / "project" / "plugins"
    assert [g.name for g in ctx.project_groups] == ["hosts", "misc"]
    assert ctx.project_groups[1].projects == ()
    assert ctx.project_groups[1].output_dir == root / "out" / "misc"


def test_probed_sections_attach_to_context(tmp_path: Path):
    (tmp_path / "native").mkdir()
    (tmp_path / "native" / "CMakeLists.txt").write_text("", encoding="utf-8")
    (tmp_path / "go.mod").write_text("module x\n", encoding="utf-8")
    path = _write_config(tmp_path, {"version": "1.0.0", "rustBuild": {"enabled": False}})

    ctx = load_build_context_from_path(path, env={})

    assert ctx.native_build is not None
    assert ctx.go_build is not None
    assert ctx.rust_build is None
    assert ctx.unity_build is None


def test_resolution_is_deterministic(tmp_path: Path):
    for name in ("Zed", "Alpha", "Mid"):
        _project(tmp_path, f"src/{name}/{name}.csproj")
    path = _write_config(
        tmp_path,
        {
            "projectGroups": {
                "a": {"sourceDir": "src/Zed"},
                "b": {"sourceDir": "src/Alpha", "action": "pack"},
                "c": {"sourceDir": "src", "exclude": ["Zed", "Alpha"]},
            },
            "packProperties": {"b": "2", "a": "1"},
        },
    )

    first = load_build_context_from_path(path, env={}, max_workers=3)
    second = load_build_context_from_path(path, env={}, max_workers=1)

    assert json.dumps(first.to_dict(), sort_keys=False) == json.dumps(second.to_dict(), sort_keys=False)
    assert list(first.compile_projects) == sorted(first.compile_projects)


def test_cancellation_returns_no_partial_context(tmp_path: Path):
    _project(tmp_path, "src/A/A.csproj")
    path = _write_config(tmp_path, {"projectGroups": {"g": {"sourceDir": "src"}}})
    token = CancellationToken()
    token.cancel()

    with pytest.raises(ResolutionCancelledError):
        load_build_context_from_path(path, env={}, cancel=token)


def test_unknown_keys_are_logged(tmp_path: Path, caplog):
    caplog.set_level("WARNING", logger="unify_build.loader")
    path = _write_config(tmp_path, {"surprise": True})

    load_build_context_from_path(path, env={})

    assert "Unknown config key: surprise" in caplog.text
