"""Typed sub-contexts for the optional native, Rust, Go and Unity sections.

Every feature resolves in two stages:

1. an explicit JSON section (skipped entirely when it says `"enabled": false`);
2. otherwise a named probe that looks for the feature's canonical marker on
   disk. A probe hit synthesizes an empty section so both paths converge on the
   same defaults.

Builders never raise for missing optional data; absence is `None`.
"""

from __future__ import annotations

import glob
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence, TypeVar

from unify_build.foundation.environment import EnvironmentProvider, process_environment, read_env
from unify_build.framework.config import (
    BuildConfig,
    GoBuildConfig,
    NativeBuildConfig,
    RustBuildConfig,
    SectionConfig,
    UnityBuildConfig,
    UnityPackageMappingConfig,
)
from unify_build.framework.context import (
    GoBuildContext,
    NativeBuildContext,
    RustBuildContext,
    UnityBuildContext,
    UnityPackageMapping,
    frozen_mapping,
)
from unify_build.framework.discovery import is_project_file, is_skipped_directory

LOGGER = logging.getLogger("unify_build.subcontexts")

VCPKG_ROOT_ENV = "VCPKG_ROOT"
VCPKG_TOOLCHAIN = ("scripts", "buildsystems", "vcpkg.cmake")

NATIVE_MARKER = ("native", "CMakeLists.txt")
RUST_MARKERS: tuple[tuple[str, ...], ...] = (("Cargo.toml",), ("rust", "Cargo.toml"))
GO_MARKERS: tuple[tuple[str, ...], ...] = (("go.mod",), ("go", "go.mod"))
UNITY_MARKER_DIRS = ("Assets", "ProjectSettings")

DEFAULT_NATIVE_PATTERNS = ("*.dll", "*.so", "*.dylib", "*.lib", "*.a")
DEFAULT_RUST_PATTERNS = ("*.dll", "*.so", "*.dylib", "*.exe")


@dataclass(frozen=True)
class ProbeResult:
    feature: str
    marker: Path

    @property
    def root(self) -> Path:
        return self.marker.parent


def resolve_path(repo_root: Path, value: str) -> Path:
    path = Path(os.path.expanduser(value))
    return path if path.is_absolute() else repo_root / path


def artifacts_dir(repo_root: Path, artifacts_version: str, *parts: str) -> Path:
    return repo_root.joinpath("build", "_artifacts", artifacts_version, *parts)


def _first_file(repo_root: Path, feature: str, candidates: Sequence[tuple[str, ...]]) -> ProbeResult | None:
    for parts in candidates:
        marker = repo_root.joinpath(*parts)
        if marker.is_file():
            return ProbeResult(feature=feature, marker=marker)
    return None


def probe_native(repo_root: Path) -> ProbeResult | None:
    return _first_file(repo_root, "native", (NATIVE_MARKER,))


def probe_rust(repo_root: Path) -> ProbeResult | None:
    return _first_file(repo_root, "rust", RUST_MARKERS)


def probe_go(repo_root: Path) -> ProbeResult | None:
    return _first_file(repo_root, "go", GO_MARKERS)


def _is_unity_project(directory: Path) -> bool:
    return all((directory / name).is_dir() for name in UNITY_MARKER_DIRS)


def probe_unity(repo_root: Path) -> ProbeResult | None:
    """A Unity project has both Assets/ and ProjectSettings/; check the root, then one level down."""

    if _is_unity_project(repo_root):
        return ProbeResult(feature="unity", marker=repo_root / UNITY_MARKER_DIRS[1])
    try:
        children = sorted(p for p in repo_root.iterdir() if p.is_dir() and not is_skipped_directory(p.name))
    except OSError:
        return None
    for child in children:
        if _is_unity_project(child):
            return ProbeResult(feature="unity", marker=child / UNITY_MARKER_DIRS[1])
    return None


SectionT = TypeVar("SectionT", bound=SectionConfig)


def select_section(
    section: SectionT | None,
    *,
    repo_root: Path,
    probe: Callable[[Path], ProbeResult | None],
    factory: Callable[[], SectionT],
) -> tuple[SectionT, ProbeResult | None] | None:
    """
    Pick the effective section: explicit config, else a probe hit, else None.

    An explicit `enabled: false` always yields None regardless of probes.
    """

    if section is not None:
        if getattr(section, "enabled", None) is False:
            return None
        return section, None
    hit = probe(repo_root)
    if hit is None:
        return None
    LOGGER.info("Detected %s build marker at %s; using default %s settings", hit.feature, hit.marker, hit.feature)
    return factory(), hit


def detect_vcpkg_toolchain(repo_root: Path, env: EnvironmentProvider) -> Path | None:
    local = repo_root.joinpath("vcpkg", *VCPKG_TOOLCHAIN)
    if local.is_file():
        return local
    vcpkg_root = read_env(env, VCPKG_ROOT_ENV)
    if vcpkg_root:
        candidate = Path(vcpkg_root).joinpath(*VCPKG_TOOLCHAIN)
        if candidate.is_file():
            return candidate
    return None


def build_native_context(
    repo_root: Path,
    section: NativeBuildConfig | None,
    *,
    artifacts_version: str,
    env: EnvironmentProvider | None = None,
) -> NativeBuildContext | None:
    selected = select_section(section, repo_root=repo_root, probe=probe_native, factory=NativeBuildConfig)
    if selected is None:
        return None
    cfg, _hit = selected
    environ = process_environment() if env is None else env

    source_dir = (
        resolve_path(repo_root, cfg.cmake_source_dir)
        if cfg.cmake_source_dir
        else repo_root / NATIVE_MARKER[0]
    )
    build_dir = resolve_path(repo_root, cfg.cmake_build_dir) if cfg.cmake_build_dir else source_dir / "build"
    output_dir = (
        resolve_path(repo_root, cfg.output_dir)
        if cfg.output_dir
        else artifacts_dir(repo_root, artifacts_version, "native")
    )
    auto_vcpkg = True if cfg.auto_detect_vcpkg is None else cfg.auto_detect_vcpkg

    return NativeBuildContext(
        enabled=True,
        cmake_source_dir=source_dir,
        cmake_build_dir=build_dir,
        cmake_preset=cfg.cmake_preset,
        cmake_options=cfg.cmake_options or (),
        build_config=cfg.build_config or "Release",
        auto_detect_vcpkg=auto_vcpkg,
        vcpkg_toolchain_file=detect_vcpkg_toolchain(repo_root, environ) if auto_vcpkg else None,
        output_dir=output_dir,
        artifact_patterns=cfg.artifact_patterns or DEFAULT_NATIVE_PATTERNS,
        custom_commands=cfg.custom_commands or (),
        platform=cfg.platform,
    )


def build_rust_context(
    repo_root: Path,
    section: RustBuildConfig | None,
    *,
    artifacts_version: str,
) -> RustBuildContext | None:
    selected = select_section(section, repo_root=repo_root, probe=probe_rust, factory=RustBuildConfig)
    if selected is None:
        return None
    cfg, hit = selected

    if cfg.cargo_manifest_dir:
        manifest_dir = resolve_path(repo_root, cfg.cargo_manifest_dir)
    else:
        manifest_dir = hit.root if hit is not None else repo_root

    return RustBuildContext(
        enabled=True,
        cargo_manifest_dir=manifest_dir,
        profile=cfg.profile or "release",
        features=cfg.features or (),
        target_triple=cfg.target_triple,
        output_dir=(
            resolve_path(repo_root, cfg.output_dir)
            if cfg.output_dir
            else artifacts_dir(repo_root, artifacts_version, "rust")
        ),
        artifact_patterns=cfg.artifact_patterns or DEFAULT_RUST_PATTERNS,
    )


def build_go_context(
    repo_root: Path,
    section: GoBuildConfig | None,
    *,
    artifacts_version: str,
) -> GoBuildContext | None:
    selected = select_section(section, repo_root=repo_root, probe=probe_go, factory=GoBuildConfig)
    if selected is None:
        return None
    cfg, hit = selected

    if cfg.go_module_dir:
        module_dir = resolve_path(repo_root, cfg.go_module_dir)
    else:
        module_dir = hit.root if hit is not None else repo_root

    return GoBuildContext(
        enabled=True,
        go_module_dir=module_dir,
        build_flags=cfg.build_flags or (),
        output_binary=cfg.output_binary,
        output_dir=(
            resolve_path(repo_root, cfg.output_dir)
            if cfg.output_dir
            else artifacts_dir(repo_root, artifacts_version, "go")
        ),
        env_vars=frozen_mapping(cfg.env_vars),
    )


def expand_source_project_glob(repo_root: Path, pattern: str) -> list[str]:
    """
    Expand a package glob into project files found one level below each match.

    `"project/contracts"` and `"project/contracts/*"` are equivalent: both list
    project files in the immediate subdirectories of `project/contracts`.
    """

    text = pattern.strip().rstrip("/\\")
    if text.endswith("*") and not glob.has_magic(text[:-1]):
        text = text[:-1].rstrip("/\\")

    if glob.has_magic(text):
        roots = [Path(p) for p in glob.glob(str(resolve_path(repo_root, text))) if os.path.isdir(p)]
    else:
        candidate = resolve_path(repo_root, text)
        roots = [candidate] if candidate.is_dir() else []

    found: set[str] = set()
    for root in roots:
        for child in root.iterdir():
            if not child.is_dir() or is_skipped_directory(child.name):
                continue
            for entry in child.iterdir():
                if entry.is_file() and is_project_file(entry.name):
                    found.add(os.path.abspath(entry))
    return sorted(found)


def _build_unity_package(repo_root: Path, cfg: UnityPackageMappingConfig) -> UnityPackageMapping:
    sources = {str(resolve_path(repo_root, p)) for p in (cfg.source_projects or ())}
    for pattern in cfg.source_project_globs or ():
        sources.update(expand_source_project_glob(repo_root, pattern))
    return UnityPackageMapping(
        package_name=cfg.package_name or "",
        scoped_index=cfg.scoped_index or "",
        source_projects=tuple(sorted(sources)),
        source_project_globs=cfg.source_project_globs or (),
        dependency_dlls=cfg.dependency_dlls or (),
    )


def build_unity_context(repo_root: Path, section: UnityBuildConfig | None) -> UnityBuildContext | None:
    selected = select_section(section, repo_root=repo_root, probe=probe_unity, factory=UnityBuildConfig)
    if selected is None:
        return None
    cfg, hit = selected

    if cfg.unity_project_root:
        unity_root = resolve_path(repo_root, cfg.unity_project_root)
    else:
        unity_root = hit.root if hit is not None else repo_root

    return UnityBuildContext(
        unity_project_root=unity_root,
        target_framework=cfg.target_framework or "netstandard2.1",
        packages=tuple(_build_unity_package(repo_root, package) for package in cfg.packages or ()),
    )


@dataclass(frozen=True)
class SubContexts:
    native_build: NativeBuildContext | None
    rust_build: RustBuildContext | None
    go_build: GoBuildContext | None
    unity_build: UnityBuildContext | None


def build_sub_contexts(
    repo_root: Path,
    cfg: BuildConfig,
    *,
    artifacts_version: str,
    env: EnvironmentProvider | None = None,
) -> SubContexts:
    return SubContexts(
        native_build=build_native_context(repo_root, cfg.native_build, artifacts_version=artifacts_version, env=env),
        rust_build=build_rust_context(repo_root, cfg.rust_build, artifacts_version=artifacts_version),
        go_build=build_go_context(repo_root, cfg.go_build, artifacts_version=artifacts_version),
        unity_build=build_unity_context(repo_root, cfg.unity_build),
    )
