"""libtree: resolve and prioritize library project references (library and CLI)."""

from importlib.metadata import version, PackageNotFoundError

from libtree.api import (
    full_dependencies,
    library_tree,
    open_workspace,
    scan_projects,
)
from libtree.core.project import ProjectHandle
from libtree.core.state import LibraryState, ProjectState
from libtree.core.workspace import Workspace

__all__ = [
    "full_dependencies",
    "library_tree",
    "open_workspace",
    "scan_projects",
    "ProjectHandle",
    "LibraryState",
    "ProjectState",
    "Workspace",
    "__version__",
]

try:
    __version__ = version("libtree")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"  # Not installed as package
