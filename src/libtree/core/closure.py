"""Flatten resolved library links into a priority-ordered project list."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from libtree.core.project import ProjectHandle

if TYPE_CHECKING:
    from libtree.core.state import LibraryState, ProjectState


def build_full_library_dependencies(
    libraries: Sequence[LibraryState],
    out: list[ProjectHandle],
    _stack: set[ProjectState] | None = None,
) -> None:
    """
    Add every resolved direct and indirect library of ``libraries`` to ``out``.

    ``out`` is ordered for resource packaging: index 0 has the highest
    priority. Libraries are walked in reverse declaration order and each one
    is inserted at the front after its own dependencies, so a library shared
    by two others lands in front of both. A project already in ``out`` keeps
    its position. Unresolved links contribute nothing.

    The dependency list of a library is read through ``ProjectState.libraries``,
    i.e. under that library's own lock.
    """
    if _stack is None:
        _stack = set()
    for library in reversed(libraries):
        lib_state = library.project_state
        if lib_state is None or lib_state in _stack:
            continue

        _stack.add(lib_state)
        build_full_library_dependencies(lib_state.libraries, out, _stack)
        _stack.discard(lib_state)

        handle = lib_state.project
        if handle not in out:
            out.insert(0, handle)
