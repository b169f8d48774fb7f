"""Registry of open projects that keeps library links resolved as projects come and go."""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path

from libtree.core.project import ProjectHandle
from libtree.core.properties import PROJECT_PROPERTIES, PropertiesFile, PropertySource
from libtree.core.state import LibraryDifference, ProjectState, UpdateResult

logger = logging.getLogger(__name__)


class Workspace:
    """
    The set of open projects.

    Opening a project links it to the libraries it declares and to the open
    projects declaring it; closing it unlinks both ways. The registry lock is
    never held while a ProjectState is being linked or unlinked.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._states: dict[ProjectHandle, ProjectState] = {}

    @property
    def projects(self) -> list[ProjectState]:
        """Open projects, sorted by name."""
        with self._lock:
            states = list(self._states.values())
        return sorted(states, key=lambda s: s.project.name)

    def get_project(self, project: ProjectHandle | str) -> ProjectState | None:
        """Look up an open project by handle or by name."""
        with self._lock:
            if isinstance(project, ProjectHandle):
                return self._states.get(project)
            for handle, state in self._states.items():
                if handle.name == project:
                    return state
        return None

    def open_project(
        self,
        project: ProjectHandle,
        properties: PropertySource | None = None,
    ) -> ProjectState:
        """
        Open a project and resolve links in both directions.

        Without ``properties``, ``project.properties`` in the project
        directory is used. Opening an already open project returns its state.
        """
        with self._lock:
            existing = self._states.get(project)
            if existing is not None:
                return existing
            if properties is None:
                properties = PropertiesFile(project.location / PROJECT_PROPERTIES)
            state = ProjectState(project, properties)
            others = list(self._states.values())
            self._states[project] = state

        for other in others:
            # the new project as a library of an open one, then the reverse
            other.needs(state)
            state.needs(other)
        logger.debug("opened %s (%d open)", project.name, len(others) + 1)
        return state

    def close_project(self, project: ProjectHandle) -> ProjectState | None:
        """Close a project: every link to it and from it is unlinked."""
        with self._lock:
            state = self._states.pop(project, None)
            others = list(self._states.values())
        if state is None:
            return None

        for other in others:
            library = other.get_library(state)
            while library is not None:
                library.close()
                library = other.get_library(state)
        for library in state.libraries:
            library.close()
        logger.debug("closed %s", project.name)
        return state

    def reload_project(self, project: ProjectHandle) -> LibraryDifference | None:
        """
        Reload a project's properties and relink what changed.

        Removed links are closed; if links were added, they are resolved
        against the open projects.
        """
        state = self.get_project(project)
        if state is None:
            return None

        diff = state.reload_properties()
        for library in diff.removed:
            library.close()
        if diff.added:
            for other in self.projects:
                if other is not state:
                    state.needs(other)
        return diff

    def relocate_project(
        self,
        old_project: ProjectHandle,
        new_project: ProjectHandle,
        properties: PropertySource | None = None,
    ) -> list[UpdateResult]:
        """
        Handle a project that moved or was renamed.

        The old project is closed and the new one opened. Projects whose
        links pointed at the old location get their declared path rewritten
        and saved. Save failures are logged, not raised.
        """
        if self.close_project(old_project) is None:
            logger.debug("relocate: %s was not open", old_project.name)
        new_state = self.open_project(new_project, properties)

        results: list[UpdateResult] = []
        for other in self.projects:
            if other is new_state:
                continue
            base = other.project.location
            old_rel = _relative_path(old_project.location, base)
            new_rel = _relative_path(new_project.location, base)
            result = other.update_library(old_rel, new_rel, new_state)
            if not result.matched:
                continue
            if result.status is not None and not result.status.ok:
                logger.warning("%s", result.status.message)
            results.append(result)
        return results

    def full_dependencies(self, project: ProjectHandle | str) -> tuple[ProjectHandle, ...]:
        """Flattened, prioritized library list of an open project (empty if not open)."""
        state = self.get_project(project)
        if state is None:
            return ()
        return state.full_library_projects


def _relative_path(target: Path, base: Path) -> str:
    """``target`` relative to ``base``, with ``/`` separators as written in property files."""
    return os.path.relpath(target, base).replace(os.sep, "/")
