"""
Per-project library state: declared library links and their resolution.

A ``ProjectState`` owns one ``LibraryState`` per ``libraryRefN`` entry of the
project's properties. Links are bound to the ``ProjectState`` of an open
library project when its canonical location matches the declared relative
path. The bound libraries, direct and indirect, are flattened into
``full_library_projects`` in resource-packaging priority order.

Locking: each ProjectState guards its links and cached list with its own
RLock. While holding it, a state only ever takes the lock of a library it
depends on (to read that library's links), never the lock of a project that
depends on it. Property saves and dependent refreshes run after the lock is
released.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from libtree.core.closure import build_full_library_dependencies
from libtree.core.project import ProjectHandle
from libtree.core.properties import (
    PROPERTY_LIBRARY,
    PROPERTY_TARGET,
    PersistError,
    PropertySource,
    iter_library_references,
)

logger = logging.getLogger(__name__)


def convert_path(path: str) -> str:
    """Replace ``/`` with the platform separator."""
    return path.replace("/", os.sep)


def normalize_path(path: str) -> str:
    """Platform separators and no trailing separator."""
    path = convert_path(path)
    if path.endswith(os.sep):
        path = path[:-1]
    return path


def _canonical(root: Path, relative_path: str) -> Path | None:
    """Canonical ``root/relative_path``, or None if it cannot be resolved."""
    try:
        return (root / relative_path).resolve()
    except (OSError, RuntimeError):
        # RuntimeError: symlink loop on Python < 3.13
        return None


class Severity(Enum):
    OK = "ok"
    ERROR = "error"


@dataclass(frozen=True)
class PersistStatus:
    """Outcome of writing a property change back to disk."""

    severity: Severity
    message: str = ""
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.severity is Severity.OK


PERSIST_OK = PersistStatus(Severity.OK)


@dataclass
class UpdateResult:
    """Return value of ProjectState.update_library."""

    library: LibraryState | None = None
    # None when nothing matched, or when no property held the old path
    status: PersistStatus | None = None

    @property
    def matched(self) -> bool:
        return self.library is not None


@dataclass
class LibraryDifference:
    """Libraries removed and whether any were added by a properties reload."""

    removed: list[LibraryState] = field(default_factory=list)
    added: bool = False

    def has_diff(self) -> bool:
        return bool(self.removed) or self.added


class LibraryState:
    """
    A library declared by a main project.

    The same library project used by two main projects has two LibraryState
    instances, one per main project. ``project_state`` is None until the link
    is resolved against an open project.

    Hashing uses the normalized relative path, which update_library may
    change: do not keep a LibraryState in a set across a path update.
    """

    def __init__(self, main_state: ProjectState, relative_path: str) -> None:
        self._main_state = main_state
        self._relative_path = relative_path
        self._project_state: ProjectState | None = None
        self._path: str | None = None

    @property
    def main_project_state(self) -> ProjectState:
        """The project declaring this library."""
        return self._main_state

    @property
    def relative_path(self) -> str:
        """Declared path of the library, relative to the main project."""
        return self._relative_path

    @property
    def project_state(self) -> ProjectState | None:
        """State of the resolved library project, or None if unresolved."""
        return self._project_state

    @property
    def project_location(self) -> str | None:
        """Canonical location of the resolved library project, or None."""
        return self._path

    @property
    def is_resolved(self) -> bool:
        return self._project_state is not None

    def close(self) -> None:
        """
        Unlink the library project.

        ``project_state`` becomes None and the library no longer shows up in
        the main project's ``full_library_projects``. No-op if unresolved.
        """
        self._main_state._close_library(self)

    def matches_link(self, other: LibraryState) -> bool:
        """Same declared path in the same main project."""
        return (
            normalize_path(self._relative_path) == normalize_path(other._relative_path)
            and self._main_state == other._main_state
        )

    def matches_resolved(self, target: ProjectState | ProjectHandle) -> bool:
        """True if this link is bound to ``target``."""
        state = self._project_state
        return state is not None and state == target

    def matches_path(self, path: str) -> bool:
        """True if ``path`` names the same declared path, modulo separators."""
        return normalize_path(self._relative_path) == normalize_path(path)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, LibraryState):
            return self.matches_link(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(normalize_path(self._relative_path))

    def __repr__(self) -> str:
        target = self._project_state.project.name if self._project_state else None
        return f"LibraryState({self._relative_path!r}, resolved={target!r})"


class ProjectState:
    """Library links, flattened dependencies and settings of one open project."""

    def __init__(
        self,
        project: ProjectHandle,
        properties: PropertySource,
        *,
        apk_settings: Any = None,
    ) -> None:
        self._project = project
        self._properties = properties
        self._target: Any = None
        self._apk_settings = apk_settings
        self._lock = threading.RLock()
        self._libraries: list[LibraryState] = []
        # Never None; recomputed after each change to the links.
        self._library_projects: tuple[ProjectHandle, ...] = ()
        # Projects depending on this one. Non-owning; has its own leaf lock.
        self._parent_projects: set[ProjectState] = set()
        self._parents_lock = threading.Lock()

        with self._lock:
            for _key, value in iter_library_references(properties):
                self._libraries.append(LibraryState(self, convert_path(value)))

    # -- plain accessors ---------------------------------------------------

    @property
    def project(self) -> ProjectHandle:
        return self._project

    @property
    def properties(self) -> PropertySource:
        return self._properties

    @property
    def target(self) -> Any:
        return self._target

    def set_target(self, target: Any) -> None:
        self._target = target

    @property
    def target_hash_string(self) -> str | None:
        """
        Hash string of the platform target.

        ``str(target)`` when a target is set, otherwise the ``target`` property.
        """
        if self._target is not None:
            return str(self._target)
        return self._properties.get_property(PROPERTY_TARGET)

    @property
    def apk_settings(self) -> Any:
        return self._apk_settings

    def set_apk_settings(self, apk_settings: Any) -> None:
        self._apk_settings = apk_settings

    @property
    def libraries(self) -> tuple[LibraryState, ...]:
        with self._lock:
            return tuple(self._libraries)

    @property
    def full_library_projects(self) -> tuple[ProjectHandle, ...]:
        """
        All resolved library projects, including indirect dependencies.

        Ordered for resource packaging: first entry has the highest priority.
        Unresolved libraries do not show up. May be empty.
        """
        with self._lock:
            return self._library_projects

    @property
    def parent_projects(self) -> tuple[ProjectState, ...]:
        """Open projects that have a resolved link to this one."""
        with self._parents_lock:
            return tuple(self._parent_projects)

    @property
    def is_library(self) -> bool:
        value = self._properties.get_property(PROPERTY_LIBRARY)
        return value is not None and value.strip().lower() == "true"

    @property
    def has_libraries(self) -> bool:
        with self._lock:
            return len(self._libraries) > 0

    @property
    def is_missing_libraries(self) -> bool:
        with self._lock:
            return any(lib.project_state is None for lib in self._libraries)

    def get_library(self, library: ProjectState | ProjectHandle) -> LibraryState | None:
        """The link resolved to ``library``, or None."""
        with self._lock:
            for state in self._libraries:
                if state.matches_resolved(library):
                    return state
        return None

    def get_library_by_name(self, name: str) -> LibraryState | None:
        """The link resolved to the open project called ``name``, or None."""
        with self._lock:
            for state in self._libraries:
                ps = state.project_state
                if ps is not None and ps.project.name == name:
                    return state
        return None

    # -- resolution --------------------------------------------------------

    def needs(self, library_project: ProjectState) -> LibraryState | None:
        """
        Bind the first unresolved link pointing at ``library_project``.

        The link's path is joined to this project's location and compared,
        canonicalized, with the canonical location of ``library_project``.
        Links whose path cannot be canonicalized are skipped.

        Returns the bound LibraryState, or None if no unresolved link matches.
        """
        try:
            library_location = library_project.project.canonical_location()
        except OSError:
            logger.debug("%s: %s has no location on disk", self, library_project)
            return None

        root = self._project.location
        bound: LibraryState | None = None
        with self._lock:
            for state in self._libraries:
                if state.project_state is not None:
                    continue
                if _canonical(root, state.relative_path) == library_location:
                    self._bind(state, library_project, str(library_location))
                    bound = state
                    break

        if bound is not None:
            self._refresh_dependents()
        return bound

    def depends_on(self, library: ProjectState) -> bool:
        """True if a resolved link points at ``library``."""
        with self._lock:
            for state in self._libraries:
                ps = state.project_state
                if ps is not None and ps.project == library.project:
                    return True
        return False

    def update_library(
        self,
        old_relative_path: str,
        new_relative_path: str,
        new_library_state: ProjectState,
    ) -> UpdateResult:
        """
        Point an unresolved library link at a moved library project.

        The link whose path canonicalizes to the same location as
        ``old_relative_path`` gets ``new_relative_path`` and is bound to
        ``new_library_state``. The matching ``libraryRefN`` property is then
        rewritten and saved. A failed save is reported in ``status`` and does
        not undo the new binding.

        Resolved links are left alone. Returns an empty UpdateResult if no
        unresolved link matches.
        """
        root = self._project.location
        old_location = _canonical(root, old_relative_path)
        if old_location is None:
            return UpdateResult()

        try:
            new_location = str(new_library_state.project.canonical_location())
        except OSError:
            new_location = str(new_library_state.project.location)

        matched: LibraryState | None = None
        old_property = ""
        with self._lock:
            for state in self._libraries:
                if state.project_state is not None:
                    continue
                if _canonical(root, state.relative_path) != old_location:
                    continue
                # exact declared string, to find the property to rewrite
                old_property = state.relative_path
                state._relative_path = convert_path(new_relative_path)
                self._bind(state, new_library_state, new_location)
                matched = state
                break

        if matched is None:
            return UpdateResult()

        status = self._replace_library_property(old_property, new_relative_path)
        self._refresh_dependents()
        return UpdateResult(matched, status)

    # -- reload ------------------------------------------------------------

    def reload_properties(self) -> LibraryDifference:
        """
        Re-read the properties and reconcile the library links.

        Links whose path is still declared are kept, with their resolution, in
        the new declaration order. The target is reset since it may have
        changed. The caller should resolve added links and close removed ones.
        """
        self._target = None
        self._properties.reload()

        diff = LibraryDifference()
        with self._lock:
            old_libraries = list(self._libraries)
            self._libraries = []

            for _key, value in iter_library_references(self._properties):
                converted = convert_path(value)
                for i, state in enumerate(old_libraries):
                    if state.matches_path(converted):
                        self._libraries.append(state)
                        del old_libraries[i]
                        break
                else:
                    diff.added = True
                    self._libraries.append(LibraryState(self, converted))

            diff.removed.extend(old_libraries)
            self._update_full_library_list()

        logger.debug(
            "%s: reloaded %d librar(ies), %d removed, added=%s",
            self,
            len(self._libraries),
            len(diff.removed),
            diff.added,
        )
        self._refresh_dependents()
        return diff

    # -- flattened list ----------------------------------------------------

    def compute_full_dependencies(self) -> tuple[ProjectHandle, ...]:
        """Recompute and return ``full_library_projects``."""
        self._update_full_library_list()
        return self.full_library_projects

    def _update_full_library_list(self) -> None:
        out: list[ProjectHandle] = []
        with self._lock:
            build_full_library_dependencies(self._libraries, out, {self})
            self._library_projects = tuple(out)

    def _refresh_dependents(self) -> None:
        """Recompute the flattened list of every project depending on this one."""
        seen: set[ProjectState] = {self}
        pending = list(self.parent_projects)
        while pending:
            parent = pending.pop()
            if parent in seen:
                continue
            seen.add(parent)
            parent._update_full_library_list()
            pending.extend(parent.parent_projects)

    # -- link internals ----------------------------------------------------

    def _bind(self, state: LibraryState, library_project: ProjectState, location: str) -> None:
        # caller holds self._lock
        state._project_state = library_project
        state._path = location
        library_project._add_parent_project(self)
        logger.debug("%s: %s -> %s", self, state.relative_path, library_project)
        self._update_full_library_list()

    def _close_library(self, state: LibraryState) -> None:
        with self._lock:
            library_project = state._project_state
            if library_project is None:
                return
            state._project_state = None
            state._path = None
            if not any(lib.project_state is library_project for lib in self._libraries):
                library_project._remove_parent_project(self)
            self._update_full_library_list()

        logger.debug("%s: closed %s", self, state.relative_path)
        self._refresh_dependents()

    def _add_parent_project(self, parent: ProjectState) -> None:
        with self._parents_lock:
            self._parent_projects.add(parent)

    def _remove_parent_project(self, parent: ProjectState) -> None:
        with self._parents_lock:
            self._parent_projects.discard(parent)

    # -- persistence -------------------------------------------------------

    def _replace_library_property(self, old_value: str, new_value: str) -> PersistStatus | None:
        for key, value in iter_library_references(self._properties):
            if convert_path(value) != old_value:
                continue
            self._properties.set_property(key, new_value)
            try:
                self._properties.save()
            except PersistError as e:
                return PersistStatus(
                    Severity.ERROR,
                    f"Failed to save {self._properties.filename} for project {self._project.name}",
                    e,
                )
            return PERSIST_OK
        return None

    def save_properties(self) -> None:
        """Save the properties; raises PersistError on failure."""
        try:
            self._properties.save()
        except PersistError as e:
            msg = f"Failed to save {self._properties.filename} for project {self._project.name}"
            logger.error("%s: %s", msg, e)
            raise PersistError(msg) from e

    # -- identity ----------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ProjectState):
            return self._project == other._project
        if isinstance(other, ProjectHandle):
            return self._project == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._project)

    def __str__(self) -> str:
        return self._project.name

    def __repr__(self) -> str:
        return f"ProjectState({self._project.name!r})"
