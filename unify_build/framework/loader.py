"""Load a build config file and resolve it into a `BuildContext`.

Resolution is all-or-nothing: a failure or a fired cancellation token raises
and no partially populated context is returned.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Sequence

from unify_build.foundation.cancellation import CancellationToken
from unify_build.foundation.config_io import (
    DEFAULT_CONFIG_NAME,
    find_config_file,
    load_json_mapping,
    repo_root_for,
)
from unify_build.foundation.environment import EnvironmentProvider, process_environment
from unify_build.foundation.errors import ConfigSchemaError
from unify_build.framework.config import BuildConfig, ProjectAction
from unify_build.framework.context import BuildContext, LocalFeedSettings, frozen_mapping
from unify_build.framework.discovery import discover_groups
from unify_build.framework.groups import map_legacy_layout, resolve_groups, route_projects
from unify_build.framework.migration import SchemaVersion, detect_schema_version
from unify_build.framework.subcontexts import artifacts_dir, build_sub_contexts, resolve_path
from unify_build.framework.versioning import resolve_version

LOGGER = logging.getLogger("unify_build.loader")


def _resolve_project_paths(repo_root: Path, paths: Sequence[str]) -> list[str]:
    return [os.path.normpath(str(resolve_path(repo_root, p))) for p in paths if p and p.strip()]


def resolve_build_context(
    cfg: BuildConfig,
    *,
    repo_root: Path,
    config_path: Path | None = None,
    external_version: str | None = None,
    env: EnvironmentProvider | None = None,
    cancel: CancellationToken | None = None,
    max_workers: int | None = None,
) -> BuildContext:
    """Resolve a parsed config against `repo_root` into an immutable `BuildContext`."""

    root = Path(repo_root).resolve()
    environ = process_environment() if env is None else env

    version = resolve_version(
        version=cfg.version,
        version_env=cfg.version_env,
        artifacts_version=cfg.artifacts_version,
        external_version=external_version,
        env=environ,
    )
    artifacts_version = (cfg.artifacts_version or "").strip() or version

    groups = cfg.project_groups
    LOGGER.debug("Discovering projects for %d group(s) under %s", len(groups), root)
    discovered = discover_groups(root, groups, cancel=cancel, max_workers=max_workers)

    explicit = {
        ProjectAction.COMPILE: _resolve_project_paths(root, cfg.compile_projects),
        ProjectAction.PUBLISH: _resolve_project_paths(root, cfg.publish_projects),
        ProjectAction.PACK: _resolve_project_paths(root, cfg.pack_projects),
    }
    routed = route_projects(groups, discovered, explicit=explicit)

    if cancel is not None:
        cancel.raise_if_cancelled("sub-contexts")
    sub = build_sub_contexts(root, cfg, artifacts_version=artifacts_version, env=environ)

    context = BuildContext(
        repo_root=root,
        config_path=config_path,
        version=version,
        artifacts_version=artifacts_version,
        legacy=map_legacy_layout(root, groups),
        solution=resolve_path(root, cfg.solution) if cfg.solution else None,
        compile_projects=routed.compile_projects,
        publish_projects=routed.publish_projects,
        pack_projects=routed.pack_projects,
        project_groups=resolve_groups(root, groups, discovered),
        nuget_output_dir=(
            resolve_path(root, cfg.nuget_output_dir)
            if cfg.nuget_output_dir
            else artifacts_dir(root, artifacts_version, "nuget")
        ),
        publish_output_dir=(
            resolve_path(root, cfg.publish_output_dir)
            if cfg.publish_output_dir
            else artifacts_dir(root, artifacts_version)
        ),
        pack_properties=frozen_mapping(cfg.pack_properties),
        pack_include_symbols=cfg.pack_include_symbols,
        local_feed=LocalFeedSettings(
            sync=cfg.sync_local_nuget_feed,
            root=resolve_path(root, cfg.local_nuget_feed_root) if cfg.local_nuget_feed_root else None,
            flat_subdir=cfg.local_nuget_feed_flat_subdir,
            hierarchical_subdir=cfg.local_nuget_feed_hierarchical_subdir,
            base_url=cfg.local_nuget_feed_base_url,
        ),
        native_build=sub.native_build,
        rust_build=sub.rust_build,
        go_build=sub.go_build,
        unity_build=sub.unity_build,
    )

    if cancel is not None:
        cancel.raise_if_cancelled("finalize")
    LOGGER.info(
        "Resolved build context: version=%s compile=%d publish=%d pack=%d",
        context.version,
        len(context.compile_projects),
        len(context.publish_projects),
        len(context.pack_projects),
    )
    return context


def load_build_context_from_path(
    config_path: str | os.PathLike[str],
    repo_root: str | os.PathLike[str] | None = None,
    *,
    external_version: str | None = None,
    env: EnvironmentProvider | None = None,
    cancel: CancellationToken | None = None,
    max_workers: int | None = None,
) -> BuildContext:
    """
    Load `config_path` and resolve it.

    Raises:
      FileNotFoundError if the file is missing.
      ConfigParseError for malformed JSON or a non-object root.
      ConfigSchemaError for wrongly typed properties or a legacy-shaped document.
      ResolutionCancelledError if `cancel` fires.
    """

    path = Path(config_path).resolve()
    root = Path(repo_root).resolve() if repo_root is not None else repo_root_for(path)

    doc = load_json_mapping(path)
    LOGGER.info("Loaded build config %s (repo root: %s)", path, root)

    if detect_schema_version(doc) is SchemaVersion.LEGACY:
        raise ConfigSchemaError(
            f"Config {path} uses the legacy hostsDir/pluginsDir/contractsDir schema; "
            "migrate it to projectGroups before loading"
        )

    cfg, warnings = BuildConfig.from_dict(doc)
    for warning in warnings:
        LOGGER.warning("%s (%s)", warning, path)

    return resolve_build_context(
        cfg,
        repo_root=root,
        config_path=path,
        external_version=external_version,
        env=env,
        cancel=cancel,
        max_workers=max_workers,
    )


def load_build_context(
    start_dir: str | os.PathLike[str] | None = None,
    *,
    config_name: str = DEFAULT_CONFIG_NAME,
    external_version: str | None = None,
    env: EnvironmentProvider | None = None,
    cancel: CancellationToken | None = None,
    max_workers: int | None = None,
) -> BuildContext:
    """Find the config file by walking up from `start_dir`, then load and resolve it."""

    located = find_config_file(start_dir, config_name=config_name)
    return load_build_context_from_path(
        located.path,
        located.repo_root,
        external_version=external_version,
        env=env,
        cancel=cancel,
        max_workers=max_workers,
    )
