"""Discover projects (directories holding a project.properties file)."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from libtree.core.project import ProjectHandle
from libtree.core.properties import PROJECT_PROPERTIES
from libtree.core.workspace import Workspace

logger = logging.getLogger(__name__)

# os.pathsep-separated list of directories to scan when none are given.
WORKSPACE_ENV = "LIBTREE_WORKSPACE"


def workspace_roots_from_env() -> list[Path]:
    """Split LIBTREE_WORKSPACE by os.pathsep and return existing directories."""
    value = os.environ.get(WORKSPACE_ENV, "")
    if not value:
        return []
    return [Path(p).resolve() for p in value.split(os.pathsep) if p.strip() and Path(p).is_dir()]


def is_project_dir(path: Path) -> bool:
    return (path / PROJECT_PROPERTIES).is_file()


def find_projects(root: Path, *, max_depth: int = 4) -> list[ProjectHandle]:
    """
    Find projects under ``root``.

    A directory with a project.properties file is a project; its
    subdirectories are not searched. Hidden directories are skipped.
    Returns handles sorted by name, then location.
    """
    found: list[ProjectHandle] = []
    seen: set[Path] = set()

    def _scan_dir(p: Path, depth: int) -> None:
        if depth > max_depth:
            return
        try:
            resolved = p.resolve()
            if resolved in seen:
                return
            seen.add(resolved)
            if is_project_dir(p):
                found.append(ProjectHandle(p.name, p))
                return
            for child in sorted(p.iterdir()):
                if child.is_dir() and not child.name.startswith("."):
                    _scan_dir(child, depth + 1)
        except OSError as e:
            logger.debug("cannot scan %s: %s", p, e)

    root = Path(root)
    if root.is_dir():
        _scan_dir(root, 0)
    return sorted(found, key=lambda h: (h.name, str(h.location)))


def load_workspace(
    roots: list[Path] | None = None,
    *,
    max_depth: int = 4,
) -> Workspace:
    """
    Open every project found under ``roots`` in a new Workspace.

    Defaults to LIBTREE_WORKSPACE, then the current directory.
    """
    if not roots:
        roots = workspace_roots_from_env() or [Path.cwd()]
    workspace = Workspace()
    seen: set[Path] = set()
    for root in roots:
        for handle in find_projects(Path(root), max_depth=max_depth):
            canonical = handle.location.resolve()
            if canonical in seen:
                continue
            seen.add(canonical)
            workspace.open_project(handle)
    return workspace
