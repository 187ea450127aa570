from __future__ import annotations

import concurrent.futures
import logging
import os
from pathlib import Path
from typing import Iterable, Sequence

from unify_build.foundation.cancellation import CancellationToken
from unify_build.framework.config import ProjectGroup

LOGGER = logging.getLogger("unify_build.discovery")

PROJECT_FILE_SUFFIXES: tuple[str, ...] = (".csproj", ".fsproj", ".vbproj")

# Build output, dependency caches, VCS metadata and IDE state. Generated copies
# of project files live here and must never be counted twice.
SKIPPED_DIRECTORIES: frozenset[str] = frozenset(
    {"bin", "obj", ".git", ".vs", ".idea", "node_modules"}
)


def is_project_file(name: str) -> bool:
    return name.casefold().endswith(PROJECT_FILE_SUFFIXES)


def project_name(path: str | os.PathLike[str]) -> str:
    return Path(path).stem


def is_skipped_directory(name: str) -> bool:
    return name.casefold() in SKIPPED_DIRECTORIES


def find_project_files(
    base_dir: str | os.PathLike[str],
    *,
    cancel: CancellationToken | None = None,
) -> list[str]:
    """
    Recursively list project files under `base_dir`, pruning skipped directories.

    Returns absolute paths sorted ordinally. A missing `base_dir` yields [].
    """

    root = Path(base_dir)
    if not root.is_dir():
        return []

    found: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        if cancel is not None:
            cancel.raise_if_cancelled(f"walking {dirpath}")
        dirnames[:] = [name for name in dirnames if not is_skipped_directory(name)]
        for filename in filenames:
            if is_project_file(filename):
                found.append(os.path.abspath(os.path.join(dirpath, filename)))
    return sorted(found)


def filter_projects(
    paths: Iterable[str],
    *,
    include: Sequence[str] = (),
    exclude: Sequence[str] = (),
) -> list[str]:
    """
    Apply include/exclude filters by case-insensitive project base name.

    A non-empty `include` keeps only listed names and `exclude` is then ignored.
    """

    if include:
        include_set = {name.casefold() for name in include}
        kept = [p for p in paths if project_name(p).casefold() in include_set]
    else:
        exclude_set = {name.casefold() for name in exclude if name}
        kept = [p for p in paths if project_name(p).casefold() not in exclude_set]
    return sorted(kept)


def discover_projects(
    base_dir: str | os.PathLike[str],
    *,
    include: Sequence[str] = (),
    exclude: Sequence[str] = (),
    cancel: CancellationToken | None = None,
) -> list[str]:
    if not Path(base_dir).is_dir():
        return []
    return filter_projects(
        find_project_files(base_dir, cancel=cancel),
        include=include,
        exclude=exclude,
    )


def group_source_dir(repo_root: Path, group: ProjectGroup) -> Path:
    return (repo_root / group.source_dir).resolve() if group.source_dir else repo_root.resolve()


def _discover_group(repo_root: Path, group: ProjectGroup, cancel: CancellationToken | None) -> tuple[str, ...]:
    if cancel is not None:
        cancel.raise_if_cancelled(f"group {group.name}")
    source_dir = group_source_dir(repo_root, group)
    if not source_dir.is_dir():
        LOGGER.warning(
            "Source directory '%s' for group '%s' does not exist, skipping group",
            source_dir,
            group.name,
        )
        return ()
    projects = discover_projects(source_dir, include=group.include, exclude=group.exclude, cancel=cancel)
    LOGGER.debug("Group '%s': %d project(s) under %s", group.name, len(projects), source_dir)
    return tuple(projects)


def discover_groups(
    repo_root: Path,
    groups: Sequence[ProjectGroup],
    *,
    cancel: CancellationToken | None = None,
    max_workers: int | None = None,
) -> list[tuple[str, ...]]:
    """
    Discover projects for every group, one task per group.

    Results are returned in group declaration order; completion order of the
    worker tasks has no effect on the output. The first failure (including
    cancellation) is re-raised after pending tasks are cancelled.
    """

    if not groups:
        return []
    if max_workers == 1 or len(groups) == 1:
        return [_discover_group(repo_root, group, cancel) for group in groups]

    results: list[tuple[str, ...] | None] = [None] * len(groups)
    workers = max_workers or min(8, len(groups))
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {
            executor.submit(_discover_group, repo_root, group, cancel): idx
            for idx, group in enumerate(groups)
        }
        try:
            for future in concurrent.futures.as_completed(futures):
                results[futures[future]] = future.result()
        except BaseException:
            for future in futures:
                future.cancel()
            raise
    return [result if result is not None else () for result in results]
