from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Sequence

from unify_build.framework.config import ProjectAction, ProjectGroup
from unify_build.framework.context import LegacyLayout, ResolvedProjectGroup, frozen_mapping
from unify_build.framework.discovery import group_source_dir

LOGGER = logging.getLogger("unify_build.groups")


class ProjectRole(Enum):
    EXECUTABLES = "executables"
    LIBRARIES = "libraries"
    CONTRACTS = "contracts"


# Group names (casefolded) recognised as one of the legacy single-directory roles.
LEGACY_ROLE_BY_GROUP_NAME: Mapping[str, ProjectRole] = MappingProxyType(
    {
        "executables": ProjectRole.EXECUTABLES,
        "hosts": ProjectRole.EXECUTABLES,
        "apps": ProjectRole.EXECUTABLES,
        "libraries": ProjectRole.LIBRARIES,
        "plugins": ProjectRole.LIBRARIES,
        "libs": ProjectRole.LIBRARIES,
        "contracts": ProjectRole.CONTRACTS,
        "packages": ProjectRole.CONTRACTS,
        "abstractions": ProjectRole.CONTRACTS,
    }
)

DEFAULT_HOSTS_DIR = ("project", "hosts")
DEFAULT_PLUGINS_DIR = ("project", "plugins")


def legacy_role_for(group_name: str) -> ProjectRole | None:
    return LEGACY_ROLE_BY_GROUP_NAME.get((group_name or "").strip().casefold())


def legacy_role_conflicts(groups: Sequence[ProjectGroup]) -> dict[ProjectRole, list[str]]:
    """Return roles claimed by more than one group, with group names in declaration order."""

    claimed: dict[ProjectRole, list[str]] = {}
    for group in groups:
        role = legacy_role_for(group.name)
        if role is not None:
            claimed.setdefault(role, []).append(group.name)
    return {role: names for role, names in claimed.items() if len(names) > 1}


@dataclass(frozen=True)
class RoutedProjects:
    compile_projects: tuple[str, ...]
    publish_projects: tuple[str, ...]
    pack_projects: tuple[str, ...]


def route_projects(
    groups: Sequence[ProjectGroup],
    discovered: Sequence[Sequence[str]],
    *,
    explicit: Mapping[ProjectAction, Sequence[str]] | None = None,
) -> RoutedProjects:
    """
    Route each group's discovered projects into exactly one action bucket.

    `discovered[i]` belongs to `groups[i]`. Unknown actions fall back to compile.
    Each bucket is de-duplicated and sorted by full path.
    """

    if len(groups) != len(discovered):
        raise ValueError("discovered project lists must align with groups")

    buckets: dict[ProjectAction, set[str]] = {action: set() for action in ProjectAction}
    for action, paths in (explicit or {}).items():
        buckets[action].update(paths)

    for group, paths in zip(groups, discovered):
        if not group.action_recognised:
            LOGGER.warning(
                "Unknown action '%s' in group '%s', treating as 'compile'",
                group.declared_action,
                group.name,
            )
        buckets[group.action].update(paths)

    return RoutedProjects(
        compile_projects=tuple(sorted(buckets[ProjectAction.COMPILE])),
        publish_projects=tuple(sorted(buckets[ProjectAction.PUBLISH])),
        pack_projects=tuple(sorted(buckets[ProjectAction.PACK])),
    )


def resolve_groups(
    repo_root: Path,
    groups: Sequence[ProjectGroup],
    discovered: Sequence[Sequence[str]],
) -> tuple[ResolvedProjectGroup, ...]:
    resolved: list[ResolvedProjectGroup] = []
    for group, paths in zip(groups, discovered):
        resolved.append(
            ResolvedProjectGroup(
                name=group.name,
                action=group.action,
                source_dir=group_source_dir(repo_root, group),
                projects=tuple(sorted(paths)),
                output_dir=(repo_root / group.output_dir).resolve() if group.output_dir else None,
                properties=frozen_mapping(group.properties),
            )
        )
    return tuple(resolved)


def map_legacy_layout(repo_root: Path, groups: Sequence[ProjectGroup]) -> LegacyLayout:
    """
    Surface well-known group names as the legacy hosts/plugins/contracts fields.

    When several groups map to the same role the last one in declaration order
    wins; the validator reports the ambiguity.
    """

    by_role: dict[ProjectRole, ProjectGroup] = {}
    for group in groups:
        role = legacy_role_for(group.name)
        if role is None:
            continue
        previous = by_role.get(role)
        if previous is not None:
            LOGGER.warning(
                "Groups '%s' and '%s' both map to legacy role '%s'; using '%s'",
                previous.name,
                group.name,
                role.value,
                group.name,
            )
        by_role[role] = group

    hosts = by_role.get(ProjectRole.EXECUTABLES)
    plugins = by_role.get(ProjectRole.LIBRARIES)
    contracts = by_role.get(ProjectRole.CONTRACTS)

    return LegacyLayout(
        hosts_dir=repo_root.joinpath(hosts.source_dir if hosts else Path(*DEFAULT_HOSTS_DIR)),
        plugins_dir=repo_root.joinpath(plugins.source_dir if plugins else Path(*DEFAULT_PLUGINS_DIR)),
        contracts_dir=repo_root / contracts.source_dir if contracts else None,
        include_hosts=hosts.include if hosts else (),
        exclude_hosts=hosts.exclude if hosts else (),
        include_plugins=plugins.include if plugins else (),
        exclude_plugins=plugins.exclude if plugins else (),
        include_contracts=contracts.include if contracts else (),
        exclude_contracts=contracts.exclude if contracts else (),
    )
