"""Public API: use libtree from Python or from other tools."""

from __future__ import annotations

from pathlib import Path

from libtree.core.finder import find_projects, load_workspace
from libtree.core.project import ProjectHandle
from libtree.core.state import ProjectState
from libtree.core.workspace import Workspace


def scan_projects(
    roots: list[Path],
    *,
    max_depth: int = 4,
) -> list[ProjectHandle]:
    """
    Find projects (directories with a project.properties file) under ``roots``.

    Args:
        roots: Directories to scan.
        max_depth: How deep to recurse when looking for projects.

    Returns:
        ProjectHandle list sorted by name; a project reachable from two roots
        is listed once.
    """
    out: list[ProjectHandle] = []
    seen: set[Path] = set()
    for root in roots:
        for handle in find_projects(Path(root), max_depth=max_depth):
            canonical = handle.location.resolve()
            if canonical not in seen:
                seen.add(canonical)
                out.append(handle)
    return sorted(out, key=lambda h: h.name)


def open_workspace(
    roots: list[Path] | None = None,
    *,
    max_depth: int = 4,
) -> Workspace:
    """
    Open every project under ``roots`` and resolve their library links.

    Args:
        roots: Directories to scan. Defaults to LIBTREE_WORKSPACE, then the
            current directory.
        max_depth: How deep to recurse when looking for projects.

    Returns:
        Workspace holding one ProjectState per discovered project.
    """
    return load_workspace(roots, max_depth=max_depth)


def full_dependencies(
    project: str,
    roots: list[Path] | None = None,
) -> list[ProjectHandle] | None:
    """
    Resolved libraries of ``project``, direct and indirect, highest priority first.

    Args:
        project: Name of the project.
        roots: Directories to scan; same defaults as open_workspace.

    Returns:
        ProjectHandle list ordered for resource packaging, or None if no
        project by that name is found under ``roots``.
    """
    workspace = open_workspace(roots)
    state = workspace.get_project(project)
    if state is None:
        return None
    return list(state.full_library_projects)


def library_tree(state: ProjectState, _stack: set[ProjectState] | None = None) -> dict:
    """
    Nested JSON-friendly view of the libraries declared by ``state``.

    Args:
        state: Project whose libraryRefN entries are shown.
        _stack: Internal set of projects on the current path (cycle marker).

    Returns:
        Dict with name, location, is_library and a ``libraries`` list; each
        entry carries path, resolved, location and, once resolved, the
        library name plus its own ``libraries`` (or ``cycle: True``).
    """
    if _stack is None:
        _stack = set()
    _stack.add(state)
    libraries = []
    for library in state.libraries:
        entry: dict = {
            "path": library.relative_path,
            "resolved": library.is_resolved,
            "location": library.project_location,
        }
        lib_state = library.project_state
        if lib_state is not None:
            entry["name"] = lib_state.project.name
            if lib_state in _stack:
                entry["cycle"] = True
            else:
                entry["libraries"] = library_tree(lib_state, _stack)["libraries"]
        libraries.append(entry)
    _stack.discard(state)
    return {
        "name": state.project.name,
        "location": str(state.project.location),
        "is_library": state.is_library,
        "libraries": libraries,
    }
