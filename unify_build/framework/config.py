from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, ClassVar

from unify_build.foundation.errors import ConfigSchemaError

DEFAULT_VERSION_ENV = "Version"


class ProjectAction(str, Enum):
    COMPILE = "compile"
    PACK = "pack"
    PUBLISH = "publish"

    @classmethod
    def parse(cls, text: str | None) -> tuple["ProjectAction", bool]:
        """Return (action, recognised). Unknown or missing text maps to COMPILE."""

        normalized = (text or "").strip().casefold()
        for action in cls:
            if action.value == normalized:
                return action, True
        return cls.COMPILE, not normalized


def lookup(mapping: Mapping[str, Any], key: str) -> tuple[bool, Any]:
    """
    Case-insensitive key lookup.

    An exact match wins; otherwise the first key equal under casefold is used.
    """

    if key in mapping:
        return True, mapping[key]
    folded = key.casefold()
    for candidate, value in mapping.items():
        if isinstance(candidate, str) and candidate.casefold() == folded:
            return True, value
    return False, None


def unknown_keys(mapping: Mapping[str, Any], known: set[str], *, prefix: str) -> list[str]:
    known_folded = {k.casefold() for k in known}
    unknown: list[str] = []
    for key in mapping:
        if not isinstance(key, str) or key.startswith("$"):
            continue
        if key.casefold() not in known_folded:
            unknown.append(f"{prefix}{key}")
    return unknown


def parse_bool(value: Any, path: str) -> bool:
    """
    Strict boolean parsing to avoid bool('false') footguns.

    Accepts True/False, 0/1 and the strings true/false/1/0/yes/no
    (case-insensitive, surrounding whitespace ignored).
    """

    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value in (0, 1):
            return bool(value)
        raise ConfigSchemaError(f"Invalid boolean for {path}: {value!r}", key_path=path)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"true", "1", "yes"}:
            return True
        if normalized in {"false", "0", "no"}:
            return False
    raise ConfigSchemaError(f"Invalid boolean for {path}: {value!r}", key_path=path)


def parse_str(value: Any, path: str) -> str:
    if not isinstance(value, str):
        raise ConfigSchemaError(
            f"Invalid config type for {path}: expected string, got {type(value).__name__}",
            key_path=path,
        )
    return value


def parse_str_list(value: Any, path: str) -> tuple[str, ...]:
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ConfigSchemaError(
            f"Invalid config type for {path}: expected array of strings, got {type(value).__name__}",
            key_path=path,
        )
    return tuple(parse_str(item, f"{path}[{idx}]") for idx, item in enumerate(value))


def parse_str_map(value: Any, path: str) -> dict[str, str]:
    if not isinstance(value, Mapping):
        raise ConfigSchemaError(
            f"Invalid config type for {path}: expected object, got {type(value).__name__}",
            key_path=path,
        )
    return {str(key): parse_str(item, f"{path}.{key}") for key, item in value.items()}


def parse_mapping(value: Any, path: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ConfigSchemaError(
            f"Invalid config type for {path}: expected object, got {type(value).__name__}",
            key_path=path,
        )
    return value


Parser = Callable[[Any, str], Any]


class SectionConfig:
    """
    Mixin for optional JSON sections whose fields are all optional.

    `_FIELDS` maps the canonical camelCase JSON key to (attribute, parser). A
    field left as None means "not specified"; defaults are applied later by the
    sub-context builders.
    """

    _FIELDS: ClassVar[tuple[tuple[str, str, Parser], ...]] = ()

    @classmethod
    def from_dict(cls, mapping: Any, path: str):
        data = parse_mapping(mapping, path)
        kwargs: dict[str, Any] = {}
        for json_key, attr, parser in cls._FIELDS:
            found, raw = lookup(data, json_key)
            if not found or raw is None:
                continue
            kwargs[attr] = parser(raw, f"{path}.{json_key}")
        return cls(**kwargs)

    @classmethod
    def known_keys(cls) -> set[str]:
        return {json_key for json_key, _attr, _parser in cls._FIELDS}

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for json_key, attr, _parser in self._FIELDS:
            value = getattr(self, attr)
            if value is None:
                continue
            out[json_key] = _to_json_value(value)
        return out


def _to_json_value(value: Any) -> Any:
    if isinstance(value, SectionConfig):
        return value.to_dict()
    if isinstance(value, tuple):
        return [_to_json_value(item) for item in value]
    if isinstance(value, Mapping):
        return {str(k): _to_json_value(v) for k, v in value.items()}
    return value


@dataclass(frozen=True)
class NativeBuildConfig(SectionConfig):
    enabled: bool | None = None
    cmake_source_dir: str | None = None
    cmake_build_dir: str | None = None
    cmake_preset: str | None = None
    cmake_options: tuple[str, ...] | None = None
    build_config: str | None = None
    auto_detect_vcpkg: bool | None = None
    output_dir: str | None = None
    artifact_patterns: tuple[str, ...] | None = None
    custom_commands: tuple[str, ...] | None = None
    platform: str | None = None

    _FIELDS: ClassVar[tuple[tuple[str, str, Parser], ...]] = (
        ("enabled", "enabled", parse_bool),
        ("cmakeSourceDir", "cmake_source_dir", parse_str),
        ("cmakeBuildDir", "cmake_build_dir", parse_str),
        ("cmakePreset", "cmake_preset", parse_str),
        ("cmakeOptions", "cmake_options", parse_str_list),
        ("buildConfig", "build_config", parse_str),
        ("autoDetectVcpkg", "auto_detect_vcpkg", parse_bool),
        ("outputDir", "output_dir", parse_str),
        ("artifactPatterns", "artifact_patterns", parse_str_list),
        ("customCommands", "custom_commands", parse_str_list),
        ("platform", "platform", parse_str),
    )


@dataclass(frozen=True)
class RustBuildConfig(SectionConfig):
    enabled: bool | None = None
    cargo_manifest_dir: str | None = None
    profile: str | None = None
    features: tuple[str, ...] | None = None
    target_triple: str | None = None
    output_dir: str | None = None
    artifact_patterns: tuple[str, ...] | None = None

    _FIELDS: ClassVar[tuple[tuple[str, str, Parser], ...]] = (
        ("enabled", "enabled", parse_bool),
        ("cargoManifestDir", "cargo_manifest_dir", parse_str),
        ("profile", "profile", parse_str),
        ("features", "features", parse_str_list),
        ("targetTriple", "target_triple", parse_str),
        ("outputDir", "output_dir", parse_str),
        ("artifactPatterns", "artifact_patterns", parse_str_list),
    )


@dataclass(frozen=True)
class GoBuildConfig(SectionConfig):
    enabled: bool | None = None
    go_module_dir: str | None = None
    build_flags: tuple[str, ...] | None = None
    output_binary: str | None = None
    output_dir: str | None = None
    env_vars: Mapping[str, str] | None = None

    _FIELDS: ClassVar[tuple[tuple[str, str, Parser], ...]] = (
        ("enabled", "enabled", parse_bool),
        ("goModuleDir", "go_module_dir", parse_str),
        ("buildFlags", "build_flags", parse_str_list),
        ("outputBinary", "output_binary", parse_str),
        ("outputDir", "output_dir", parse_str),
        ("envVars", "env_vars", parse_str_map),
    )


@dataclass(frozen=True)
class UnityPackageMappingConfig(SectionConfig):
    package_name: str | None = None
    scoped_index: str | None = None
    source_projects: tuple[str, ...] | None = None
    source_project_globs: tuple[str, ...] | None = None
    dependency_dlls: tuple[str, ...] | None = None

    _FIELDS: ClassVar[tuple[tuple[str, str, Parser], ...]] = (
        ("packageName", "package_name", parse_str),
        ("scopedIndex", "scoped_index", parse_str),
        ("sourceProjects", "source_projects", parse_str_list),
        ("sourceProjectGlobs", "source_project_globs", parse_str_list),
        ("dependencyDlls", "dependency_dlls", parse_str_list),
    )


def _parse_unity_packages(value: Any, path: str) -> tuple[UnityPackageMappingConfig, ...]:
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ConfigSchemaError(
            f"Invalid config type for {path}: expected array of objects, got {type(value).__name__}",
            key_path=path,
        )
    return tuple(
        UnityPackageMappingConfig.from_dict(item, f"{path}[{idx}]") for idx, item in enumerate(value)
    )


@dataclass(frozen=True)
class UnityBuildConfig(SectionConfig):
    enabled: bool | None = None
    target_framework: str | None = None
    unity_project_root: str | None = None
    packages: tuple[UnityPackageMappingConfig, ...] | None = None

    _FIELDS: ClassVar[tuple[tuple[str, str, Parser], ...]] = (
        ("enabled", "enabled", parse_bool),
        ("targetFramework", "target_framework", parse_str),
        ("unityProjectRoot", "unity_project_root", parse_str),
        ("packages", "packages", _parse_unity_packages),
    )


@dataclass(frozen=True)
class ProjectGroup:
    name: str
    source_dir: str = ""
    declared_action: str = ProjectAction.COMPILE.value
    action: ProjectAction = ProjectAction.COMPILE
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    output_dir: str | None = None
    properties: Mapping[str, str] = field(default_factory=dict)

    KNOWN_KEYS: ClassVar[set[str]] = {
        "sourceDir",
        "action",
        "include",
        "exclude",
        "outputDir",
        "properties",
    }

    @property
    def action_recognised(self) -> bool:
        return ProjectAction.parse(self.declared_action)[1]

    @staticmethod
    def from_dict(name: str, mapping: Any, path: str) -> "ProjectGroup":
        data = parse_mapping(mapping, path)

        def get(key: str, parser: Parser) -> Any:
            found, raw = lookup(data, key)
            if not found or raw is None:
                return None
            return parser(raw, f"{path}.{key}")

        declared = get("action", parse_str)
        action, _known = ProjectAction.parse(declared)
        return ProjectGroup(
            name=name,
            source_dir=get("sourceDir", parse_str) or "",
            declared_action=(declared or ProjectAction.COMPILE.value).strip(),
            action=action,
            include=get("include", parse_str_list) or (),
            exclude=get("exclude", parse_str_list) or (),
            output_dir=get("outputDir", parse_str),
            properties=get("properties", parse_str_map) or {},
        )


@dataclass(frozen=True)
class BuildConfig:
    version: str | None = None
    version_env: str | None = DEFAULT_VERSION_ENV
    artifacts_version: str | None = None
    solution: str | None = None
    project_groups: tuple[ProjectGroup, ...] = ()
    compile_projects: tuple[str, ...] = ()
    publish_projects: tuple[str, ...] = ()
    pack_projects: tuple[str, ...] = ()
    nuget_output_dir: str | None = None
    publish_output_dir: str | None = None
    pack_properties: Mapping[str, str] = field(default_factory=dict)
    pack_include_symbols: bool = False
    sync_local_nuget_feed: bool = False
    local_nuget_feed_root: str | None = None
    local_nuget_feed_flat_subdir: str = "flat"
    local_nuget_feed_hierarchical_subdir: str = "hierarchical"
    local_nuget_feed_base_url: str | None = None
    native_build: NativeBuildConfig | None = None
    rust_build: RustBuildConfig | None = None
    go_build: GoBuildConfig | None = None
    unity_build: UnityBuildConfig | None = None

    # JSON key -> attribute for the flat scalar/list properties.
    SCALAR_KEYS: ClassVar[tuple[tuple[str, str, Parser], ...]] = (
        ("version", "version", parse_str),
        ("artifactsVersion", "artifacts_version", parse_str),
        ("solution", "solution", parse_str),
        ("compileProjects", "compile_projects", parse_str_list),
        ("publishProjects", "publish_projects", parse_str_list),
        ("packProjects", "pack_projects", parse_str_list),
        ("nuGetOutputDir", "nuget_output_dir", parse_str),
        ("publishOutputDir", "publish_output_dir", parse_str),
        ("packProperties", "pack_properties", parse_str_map),
        ("packIncludeSymbols", "pack_include_symbols", parse_bool),
        ("syncLocalNugetFeed", "sync_local_nuget_feed", parse_bool),
        ("localNugetFeedRoot", "local_nuget_feed_root", parse_str),
        ("localNugetFeedFlatSubdir", "local_nuget_feed_flat_subdir", parse_str),
        ("localNugetFeedHierarchicalSubdir", "local_nuget_feed_hierarchical_subdir", parse_str),
        ("localNugetFeedBaseUrl", "local_nuget_feed_base_url", parse_str),
    )

    SECTION_KEYS: ClassVar[tuple[tuple[str, str, type[SectionConfig]], ...]] = (
        ("nativeBuild", "native_build", NativeBuildConfig),
        ("rustBuild", "rust_build", RustBuildConfig),
        ("goBuild", "go_build", GoBuildConfig),
        ("unityBuild", "unity_build", UnityBuildConfig),
    )

    @classmethod
    def known_keys(cls) -> set[str]:
        keys = {json_key for json_key, _attr, _parser in cls.SCALAR_KEYS}
        keys.update(json_key for json_key, _attr, _cls in cls.SECTION_KEYS)
        keys.update({"versionEnv", "projectGroups"})
        return keys

    @staticmethod
    def from_dict(doc: Mapping[str, Any]) -> tuple["BuildConfig", list[str]]:
        """
        Parse a current-schema document into the typed model, returning (BuildConfig, warnings).

        Raises:
            ConfigSchemaError: if a property has the wrong JSON type.
        """

        if not isinstance(doc, Mapping):
            raise ConfigSchemaError("Config must be a JSON object")

        warnings = [f"Unknown config key: {key}" for key in unknown_keys(doc, BuildConfig.known_keys(), prefix="")]
        kwargs: dict[str, Any] = {}

        for json_key, attr, parser in BuildConfig.SCALAR_KEYS:
            found, raw = lookup(doc, json_key)
            if found and raw is not None:
                kwargs[attr] = parser(raw, json_key)

        found, raw = lookup(doc, "versionEnv")
        if found:
            kwargs["version_env"] = None if raw is None else parse_str(raw, "versionEnv")

        groups: list[ProjectGroup] = []
        found, raw = lookup(doc, "projectGroups")
        if found and raw is not None:
            for name, group_raw in parse_mapping(raw, "projectGroups").items():
                group_path = f"projectGroups.{name}"
                if isinstance(group_raw, Mapping):
                    warnings.extend(
                        f"Unknown config key: {key}"
                        for key in unknown_keys(group_raw, ProjectGroup.KNOWN_KEYS, prefix=f"{group_path}.")
                    )
                groups.append(ProjectGroup.from_dict(str(name), group_raw, group_path))
        kwargs["project_groups"] = tuple(groups)

        for json_key, attr, section_cls in BuildConfig.SECTION_KEYS:
            found, raw = lookup(doc, json_key)
            if not found or raw is None:
                continue
            if isinstance(raw, Mapping):
                warnings.extend(
                    f"Unknown config key: {key}"
                    for key in unknown_keys(raw, section_cls.known_keys(), prefix=f"{json_key}.")
                )
            kwargs[attr] = section_cls.from_dict(raw, json_key)

        return BuildConfig(**kwargs), warnings
