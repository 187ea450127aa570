from pathlib import Path

import pytest

from unify_build.framework.config import (
    GoBuildConfig,
    NativeBuildConfig,
    RustBuildConfig,
    UnityBuildConfig,
    UnityPackageMappingConfig,
)
from unify_build.framework.subcontexts import (
    build_go_context,
    build_native_context,
    build_rust_context,
    build_unity_context,
    expand_source_project_glob,
    probe_unity,
)


def _touch(root: Path, rel: str, text: str = "") -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_native_absent_without_section_or_marker(tmp_path: Path):
    assert build_native_context(tmp_path, None, artifacts_version="1.0.0", env={}) is None


def test_native_probe_synthesizes_defaults(tmp_path: Path):
    _touch(tmp_path, "native/CMakeLists.txt")

    ctx = build_native_context(tmp_path, None, artifacts_version="1.0.0", env={})

    assert ctx is not None
    assert ctx.cmake_source_dir == tmp_path / "native"
    assert ctx.cmake_build_dir == tmp_path / "native" / "build"
    assert ctx.build_config == "Release"
    assert ctx.output_dir == tmp_path / "build" / "_artifacts" / "1.0.0" / "native"
    assert ctx.artifact_patterns == ("*.dll", "*.so", "*.dylib", "*.lib", "*.a")
    assert ctx.vcpkg_toolchain_file is None


def test_native_disabled_section_ignores_marker(tmp_path: Path):
    _touch(tmp_path, "native/CMakeLists.txt")

    ctx = build_native_context(
        tmp_path, NativeBuildConfig(enabled=False), artifacts_version="1.0.0", env={}
    )

    assert ctx is None


def test_native_explicit_section_resolves_paths(tmp_path: Path):
    section = NativeBuildConfig(
        cmake_source_dir="cpp",
        build_config="Debug",
        output_dir="out/native",
        cmake_options=("-DFOO=ON",),
        auto_detect_vcpkg=False,
    )

    ctx = build_native_context(tmp_path, section, artifacts_version="1.0.0", env={})

    assert ctx.cmake_source_dir == tmp_path / "cpp"
    assert ctx.cmake_build_dir == tmp_path / "cpp" / "build"
    assert ctx.build_config == "Debug"
    assert ctx.output_dir == tmp_path / "out" / "native"
    assert ctx.cmake_options == ("-DFOO=ON",)
    assert ctx.auto_detect_vcpkg is False


def test_native_vcpkg_prefers_repo_copy_then_env(tmp_path: Path):
    _touch(tmp_path, "native/CMakeLists.txt")
    vcpkg_root = tmp_path / "elsewhere"
    env_toolchain = _touch(vcpkg_root, "scripts/buildsystems/vcpkg.cmake")

    ctx = build_native_context(
        tmp_path, None, artifacts_version="1.0.0", env={"VCPKG_ROOT": str(vcpkg_root)}
    )
    assert ctx.vcpkg_toolchain_file == env_toolchain

    local = _touch(tmp_path, "vcpkg/scripts/buildsystems/vcpkg.cmake")
    ctx = build_native_context(
        tmp_path, None, artifacts_version="1.0.0", env={"VCPKG_ROOT": str(vcpkg_root)}
    )
    assert ctx.vcpkg_toolchain_file == local


def test_rust_probe_checks_root_then_rust_dir(tmp_path: Path):
    _touch(tmp_path, "rust/Cargo.toml")

    ctx = build_rust_context(tmp_path, None, artifacts_version="2.0.0")

    assert ctx.cargo_manifest_dir == tmp_path / "rust"
    assert ctx.profile == "release"
    assert ctx.output_dir == tmp_path / "build" / "_artifacts" / "2.0.0" / "rust"

    _touch(tmp_path, "Cargo.toml")
    assert build_rust_context(tmp_path, None, artifacts_version="2.0.0").cargo_manifest_dir == tmp_path


def test_rust_explicit_section_without_marker(tmp_path: Path):
    section = RustBuildConfig(cargo_manifest_dir="crates/core", features=("simd",), profile="dev")

    ctx = build_rust_context(tmp_path, section, artifacts_version="2.0.0")

    assert ctx.cargo_manifest_dir == tmp_path / "crates" / "core"
    assert ctx.features == ("simd",)
    assert ctx.profile == "dev"


def test_go_probe_and_disable(tmp_path: Path):
    _touch(tmp_path, "go/go.mod")

    ctx = build_go_context(tmp_path, None, artifacts_version="3.0.0")
    assert ctx.go_module_dir == tmp_path / "go"
    assert ctx.build_flags == ()
    assert dict(ctx.env_vars) == {}

    assert build_go_context(tmp_path, GoBuildConfig(enabled=False), artifacts_version="3.0.0") is None


def test_go_env_vars_are_read_only(tmp_path: Path):
    ctx = build_go_context(tmp_path, GoBuildConfig(env_vars={"CGO_ENABLED": "0"}), artifacts_version="3.0.0")

    assert dict(ctx.env_vars) == {"CGO_ENABLED": "0"}
    with pytest.raises(TypeError):
        ctx.env_vars["X"] = "1"  # type: ignore[index]


def test_unity_probe_finds_project_one_level_down(tmp_path: Path):
    (tmp_path / "game" / "Assets").mkdir(parents=True)
    (tmp_path / "game" / "ProjectSettings").mkdir(parents=True)
    (tmp_path / "half" / "Assets").mkdir(parents=True)

    hit = probe_unity(tmp_path)

    assert hit is not None
    assert hit.root == tmp_path / "game"
    ctx = build_unity_context(tmp_path, None)
    assert ctx.unity_project_root == tmp_path / "game"
    assert ctx.target_framework == "netstandard2.1"
    assert ctx.packages == ()


def test_unity_globs_expand_to_project_files(tmp_path: Path):
    a = _touch(tmp_path, "project/contracts/A/A.csproj")
    b = _touch(tmp_path, "project/contracts/B/B.csproj")
    _touch(tmp_path, "project/contracts/bin/Stale/Stale.csproj")
    _touch(tmp_path, "project/contracts/B/nested/Deep.csproj")

    assert expand_source_project_glob(tmp_path, "project/contracts") == [str(a), str(b)]
    assert expand_source_project_glob(tmp_path, "project/contracts/*") == [str(a), str(b)]
    assert expand_source_project_glob(tmp_path, "project/missing") == []

    section = UnityBuildConfig(
        unity_project_root="unity",
        packages=(
            UnityPackageMappingConfig(
                package_name="com.example.contracts",
                source_project_globs=("project/contracts",),
            ),
        ),
    )
    ctx = build_unity_context(tmp_path, section)

    assert ctx.unity_project_root == tmp_path / "unity"
    assert ctx.packages[0].source_projects == (str(a), str(b))
