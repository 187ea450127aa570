from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

from unify_build.framework.config import ProjectAction


def frozen_mapping(values: Mapping[str, str] | None) -> Mapping[str, str]:
    return MappingProxyType(dict(values or {}))


def _path_or_none(path: Path | None) -> str | None:
    return None if path is None else str(path)


@dataclass(frozen=True)
class NativeBuildContext:
    cmake_source_dir: Path
    cmake_build_dir: Path
    output_dir: Path
    enabled: bool = True
    cmake_preset: str | None = None
    cmake_options: tuple[str, ...] = ()
    build_config: str = "Release"
    auto_detect_vcpkg: bool = True
    vcpkg_toolchain_file: Path | None = None
    artifact_patterns: tuple[str, ...] = ("*.dll", "*.so", "*.dylib", "*.lib", "*.a")
    custom_commands: tuple[str, ...] = ()
    platform: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "cmakeSourceDir": str(self.cmake_source_dir),
            "cmakeBuildDir": str(self.cmake_build_dir),
            "cmakePreset": self.cmake_preset,
            "cmakeOptions": list(self.cmake_options),
            "buildConfig": self.build_config,
            "autoDetectVcpkg": self.auto_detect_vcpkg,
            "vcpkgToolchainFile": _path_or_none(self.vcpkg_toolchain_file),
            "outputDir": str(self.output_dir),
            "artifactPatterns": list(self.artifact_patterns),
            "customCommands": list(self.custom_commands),
            "platform": self.platform,
        }


@dataclass(frozen=True)
class RustBuildContext:
    cargo_manifest_dir: Path
    output_dir: Path
    enabled: bool = True
    profile: str = "release"
    features: tuple[str, ...] = ()
    target_triple: str | None = None
    artifact_patterns: tuple[str, ...] = ("*.dll", "*.so", "*.dylib", "*.exe")

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "cargoManifestDir": str(self.cargo_manifest_dir),
            "profile": self.profile,
            "features": list(self.features),
            "targetTriple": self.target_triple,
            "outputDir": str(self.output_dir),
            "artifactPatterns": list(self.artifact_patterns),
        }


@dataclass(frozen=True)
class GoBuildContext:
    go_module_dir: Path
    output_dir: Path
    enabled: bool = True
    build_flags: tuple[str, ...] = ()
    output_binary: str | None = None
    env_vars: Mapping[str, str] = field(default_factory=lambda: frozen_mapping(None))

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "goModuleDir": str(self.go_module_dir),
            "buildFlags": list(self.build_flags),
            "outputBinary": self.output_binary,
            "outputDir": str(self.output_dir),
            "envVars": dict(sorted(self.env_vars.items())),
        }


@dataclass(frozen=True)
class UnityPackageMapping:
    package_name: str
    scoped_index: str = ""
    source_projects: tuple[str, ...] = ()
    source_project_globs: tuple[str, ...] = ()
    dependency_dlls: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "packageName": self.package_name,
            "scopedIndex": self.scoped_index,
            "sourceProjects": list(self.source_projects),
            "sourceProjectGlobs": list(self.source_project_globs),
            "dependencyDlls": list(self.dependency_dlls),
        }


@dataclass(frozen=True)
class UnityBuildContext:
    unity_project_root: Path
    target_framework: str = "netstandard2.1"
    packages: tuple[UnityPackageMapping, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "unityProjectRoot": str(self.unity_project_root),
            "targetFramework": self.target_framework,
            "packages": [package.to_dict() for package in self.packages],
        }


@dataclass(frozen=True)
class LegacyLayout:
    """Single-directory-per-role view kept for executors that predate project groups."""

    hosts_dir: Path
    plugins_dir: Path
    contracts_dir: Path | None = None
    include_hosts: tuple[str, ...] = ()
    exclude_hosts: tuple[str, ...] = ()
    include_plugins: tuple[str, ...] = ()
    exclude_plugins: tuple[str, ...] = ()
    include_contracts: tuple[str, ...] = ()
    exclude_contracts: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "hostsDir": str(self.hosts_dir),
            "pluginsDir": str(self.plugins_dir),
            "contractsDir": _path_or_none(self.contracts_dir),
            "includeHosts": list(self.include_hosts),
            "excludeHosts": list(self.exclude_hosts),
            "includePlugins": list(self.include_plugins),
            "excludePlugins": list(self.exclude_plugins),
            "includeContracts": list(self.include_contracts),
            "excludeContracts": list(self.exclude_contracts),
        }


@dataclass(frozen=True)
class LocalFeedSettings:
    sync: bool = False
    root: Path | None = None
    flat_subdir: str = "flat"
    hierarchical_subdir: str = "hierarchical"
    base_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "sync": self.sync,
            "root": _path_or_none(self.root),
            "flatSubdir": self.flat_subdir,
            "hierarchicalSubdir": self.hierarchical_subdir,
            "baseUrl": self.base_url,
        }


@dataclass(frozen=True)
class ResolvedProjectGroup:
    name: str
    action: ProjectAction
    source_dir: Path
    projects: tuple[str, ...]
    output_dir: Path | None = None
    properties: Mapping[str, str] = field(default_factory=lambda: frozen_mapping(None))

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "action": self.action.value,
            "sourceDir": str(self.source_dir),
            "projects": list(self.projects),
            "outputDir": _path_or_none(self.output_dir),
            "properties": dict(sorted(self.properties.items())),
        }


@dataclass(frozen=True)
class BuildContext:
    """
    Resolved, immutable build plan consumed read-only by executors.

    Project lists are absolute paths sorted ordinally so two resolutions of the
    same filesystem state compare (and serialize) identically.
    """

    repo_root: Path
    config_path: Path | None
    version: str
    artifacts_version: str
    legacy: LegacyLayout
    solution: Path | None = None
    compile_projects: tuple[str, ...] = ()
    publish_projects: tuple[str, ...] = ()
    pack_projects: tuple[str, ...] = ()
    project_groups: tuple[ResolvedProjectGroup, ...] = ()
    nuget_output_dir: Path | None = None
    publish_output_dir: Path | None = None
    pack_properties: Mapping[str, str] = field(default_factory=lambda: frozen_mapping(None))
    pack_include_symbols: bool = False
    local_feed: LocalFeedSettings = field(default_factory=LocalFeedSettings)
    native_build: NativeBuildContext | None = None
    rust_build: RustBuildContext | None = None
    go_build: GoBuildContext | None = None
    unity_build: UnityBuildContext | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.version, str) or not self.version.strip():
            raise ValueError("BuildContext.version must be a non-empty string")

    def projects_for(self, action: ProjectAction) -> tuple[str, ...]:
        if action is ProjectAction.PUBLISH:
            return self.publish_projects
        if action is ProjectAction.PACK:
            return self.pack_projects
        return self.compile_projects

    def to_dict(self) -> dict[str, Any]:
        def section(value: Any) -> Any:
            return None if value is None else value.to_dict()

        return {
            "repoRoot": str(self.repo_root),
            "configPath": _path_or_none(self.config_path),
            "version": self.version,
            "artifactsVersion": self.artifacts_version,
            "solution": _path_or_none(self.solution),
            "compileProjects": list(self.compile_projects),
            "publishProjects": list(self.publish_projects),
            "packProjects": list(self.pack_projects),
            "projectGroups": [group.to_dict() for group in self.project_groups],
            "nuGetOutputDir": _path_or_none(self.nuget_output_dir),
            "publishOutputDir": _path_or_none(self.publish_output_dir),
            "packProperties": dict(sorted(self.pack_properties.items())),
            "packIncludeSymbols": self.pack_include_symbols,
            "localFeed": self.local_feed.to_dict(),
            "nativeBuild": section(self.native_build),
            "rustBuild": section(self.rust_build),
            "goBuild": section(self.go_build),
            "unityBuild": section(self.unity_build),
            "legacy": self.legacy.to_dict(),
        }
