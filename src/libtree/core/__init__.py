"""Core library: property sources, library link resolution, dependency flattening."""

from libtree.core.finder import find_projects, load_workspace, workspace_roots_from_env
from libtree.core.project import ProjectHandle
from libtree.core.properties import (
    MemoryProperties,
    PersistError,
    PropertiesFile,
    PropertySource,
    iter_library_references,
)
from libtree.core.state import (
    LibraryDifference,
    LibraryState,
    PersistStatus,
    ProjectState,
    Severity,
    UpdateResult,
)
from libtree.core.workspace import Workspace

__all__ = [
    "find_projects",
    "load_workspace",
    "workspace_roots_from_env",
    "ProjectHandle",
    "MemoryProperties",
    "PersistError",
    "PropertiesFile",
    "PropertySource",
    "iter_library_references",
    "LibraryDifference",
    "LibraryState",
    "PersistStatus",
    "ProjectState",
    "Severity",
    "UpdateResult",
    "Workspace",
]
