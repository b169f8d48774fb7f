"""Shared fixtures: small project layouts under tmp_path."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from libtree.core.project import ProjectHandle
from libtree.core.properties import PROJECT_PROPERTIES, MemoryProperties
from libtree.core.state import ProjectState


def lib_refs(*paths: str) -> dict[str, str]:
    """Property dict declaring ``paths`` as libraryRef1, libraryRef2, ..."""
    return {f"libraryRef{i}": p for i, p in enumerate(paths, start=1)}


def write_project(root: Path, name: str, *refs: str, library: bool = False) -> Path:
    """Create ``root/name/project.properties`` declaring ``refs``; return the directory."""
    project_dir = root / name
    project_dir.mkdir(parents=True, exist_ok=True)
    lines = [f"{k}={v}" for k, v in lib_refs(*refs).items()]
    if library:
        lines.append("library=true")
    (project_dir / PROJECT_PROPERTIES).write_text("\n".join(lines) + "\n")
    return project_dir


@pytest.fixture
def make_state(tmp_path: Path) -> Callable[..., ProjectState]:
    """Factory: make_state("app", "../lib") -> ProjectState backed by MemoryProperties."""

    def _make(name: str, *refs: str, **properties: str) -> ProjectState:
        project_dir = tmp_path / name
        project_dir.mkdir(parents=True, exist_ok=True)
        values = lib_refs(*refs)
        values.update(properties)
        return ProjectState(ProjectHandle(name, project_dir), MemoryProperties(values))

    return _make
