"""Tests for libtree.core.workspace module."""

from __future__ import annotations

import logging
from pathlib import Path

from conftest import lib_refs, write_project

from libtree.core.project import ProjectHandle
from libtree.core.properties import PROJECT_PROPERTIES, MemoryProperties
from libtree.core.workspace import Workspace, _relative_path


def _handle(path: Path) -> ProjectHandle:
    return ProjectHandle(path.name, path)


class TestOpenProject:
    """Tests for Workspace.open_project."""

    def test_library_opened_after_main_project(self, tmp_path: Path) -> None:
        app_dir = write_project(tmp_path, "app", "../lib")
        lib_dir = write_project(tmp_path, "lib", library=True)
        ws = Workspace()
        app = ws.open_project(_handle(app_dir))
        assert app.is_missing_libraries
        lib = ws.open_project(_handle(lib_dir))
        assert not app.is_missing_libraries
        assert app.full_library_projects == (lib.project,)
        assert lib.is_library

    def test_library_opened_first(self, tmp_path: Path) -> None:
        lib_dir = write_project(tmp_path, "lib")
        app_dir = write_project(tmp_path, "app", "../lib")
        ws = Workspace()
        lib = ws.open_project(_handle(lib_dir))
        app = ws.open_project(_handle(app_dir))
        assert app.full_library_projects == (lib.project,)
        assert lib.parent_projects == (app,)

    def test_transitive_regardless_of_open_order(self, tmp_path: Path) -> None:
        dirs = {
            "app": write_project(tmp_path, "app", "../ui", "../net"),
            "ui": write_project(tmp_path, "ui", "../core"),
            "net": write_project(tmp_path, "net"),
            "core": write_project(tmp_path, "core"),
        }
        for order in (["app", "ui", "net", "core"], ["core", "net", "ui", "app"]):
            ws = Workspace()
            for name in order:
                ws.open_project(_handle(dirs[name]))
            names = [h.name for h in ws.full_dependencies("app")]
            assert names == ["ui", "core", "net"]

    def test_open_twice_returns_same_state(self, tmp_path: Path) -> None:
        app_dir = write_project(tmp_path, "app")
        ws = Workspace()
        assert ws.open_project(_handle(app_dir)) is ws.open_project(_handle(app_dir))
        assert len(ws.projects) == 1

    def test_explicit_property_source(self, tmp_path: Path) -> None:
        (tmp_path / "app").mkdir()
        lib_dir = write_project(tmp_path, "lib")
        ws = Workspace()
        ws.open_project(_handle(lib_dir))
        app = ws.open_project(_handle(tmp_path / "app"), MemoryProperties(lib_refs("../lib")))
        assert [h.name for h in app.full_library_projects] == ["lib"]

    def test_get_project(self, tmp_path: Path) -> None:
        app_dir = write_project(tmp_path, "app")
        ws = Workspace()
        state = ws.open_project(_handle(app_dir))
        assert ws.get_project("app") is state
        assert ws.get_project(_handle(app_dir)) is state
        assert ws.get_project("nope") is None
        assert ws.full_dependencies("nope") == ()


class TestCloseProject:
    """Tests for Workspace.close_project."""

    def test_close_library_unlinks_dependents(self, tmp_path: Path) -> None:
        app_dir = write_project(tmp_path, "app", "../lib")
        lib_dir = write_project(tmp_path, "lib")
        ws = Workspace()
        app = ws.open_project(_handle(app_dir))
        lib = ws.open_project(_handle(lib_dir))
        assert ws.close_project(_handle(lib_dir)) is lib
        assert app.full_library_projects == ()
        assert app.is_missing_libraries
        assert lib.parent_projects == ()
        assert ws.get_project("lib") is None

    def test_close_main_project_releases_back_links(self, tmp_path: Path) -> None:
        app_dir = write_project(tmp_path, "app", "../lib")
        lib_dir = write_project(tmp_path, "lib")
        ws = Workspace()
        ws.open_project(_handle(app_dir))
        lib = ws.open_project(_handle(lib_dir))
        ws.close_project(_handle(app_dir))
        assert lib.parent_projects == ()

    def test_close_unknown(self) -> None:
        assert Workspace().close_project(ProjectHandle("x", Path("/nonexistent"))) is None

    def test_reopen_relinks(self, tmp_path: Path) -> None:
        app_dir = write_project(tmp_path, "app", "../lib")
        lib_dir = write_project(tmp_path, "lib")
        ws = Workspace()
        app = ws.open_project(_handle(app_dir))
        ws.open_project(_handle(lib_dir))
        ws.close_project(_handle(lib_dir))
        lib = ws.open_project(_handle(lib_dir))
        assert app.full_library_projects == (lib.project,)


class TestReloadProject:
    """Tests for Workspace.reload_project."""

    def test_reload_relinks(self, tmp_path: Path) -> None:
        app_dir = write_project(tmp_path, "app", "../x", "../y")
        dirs = {n: write_project(tmp_path, n) for n in ("x", "y", "z")}
        ws = Workspace()
        app = ws.open_project(_handle(app_dir))
        states = {n: ws.open_project(_handle(d)) for n, d in dirs.items()}
        assert [h.name for h in app.full_library_projects] == ["x", "y"]

        (app_dir / PROJECT_PROPERTIES).write_text("libraryRef1=../y\nlibraryRef2=../z\n")
        diff = ws.reload_project(_handle(app_dir))

        assert diff.added is True
        assert [lib.relative_path for lib in diff.removed] == [str(Path("../x"))]
        assert [h.name for h in app.full_library_projects] == ["y", "z"]
        assert states["x"].parent_projects == ()
        assert states["z"].parent_projects == (app,)

    def test_reload_unknown(self, tmp_path: Path) -> None:
        assert Workspace().reload_project(_handle(tmp_path)) is None


class TestRelocateProject:
    """Tests for Workspace.relocate_project."""

    def test_moved_library_is_rewritten(self, tmp_path: Path) -> None:
        app_dir = write_project(tmp_path, "app", "../lib")
        lib_dir = write_project(tmp_path, "lib")
        ws = Workspace()
        app = ws.open_project(_handle(app_dir))
        ws.open_project(_handle(lib_dir))

        new_dir = tmp_path / "libs" / "lib2"
        new_dir.parent.mkdir()
        lib_dir.rename(new_dir)
        results = ws.relocate_project(_handle(lib_dir), ProjectHandle("lib", new_dir))

        assert len(results) == 1
        assert results[0].status.ok
        assert [h.location for h in app.full_library_projects] == [new_dir]
        assert "libraryRef1=../libs/lib2" in (app_dir / PROJECT_PROPERTIES).read_text()

        fresh = Workspace()
        fresh.open_project(_handle(app_dir))
        fresh.open_project(ProjectHandle("lib", new_dir))
        assert [h.location for h in fresh.full_dependencies("app")] == [new_dir]

    def test_save_failure_is_logged(self, tmp_path: Path, caplog) -> None:
        (tmp_path / "app").mkdir()
        lib_dir = write_project(tmp_path, "lib")
        ws = Workspace()
        props = MemoryProperties(lib_refs("../lib"), fail_on_save=True)
        app = ws.open_project(_handle(tmp_path / "app"), props)
        ws.open_project(_handle(lib_dir))

        new_dir = tmp_path / "lib2"
        lib_dir.rename(new_dir)
        with caplog.at_level(logging.WARNING, logger="libtree.core.workspace"):
            results = ws.relocate_project(_handle(lib_dir), ProjectHandle("lib2", new_dir))

        assert len(results) == 1
        assert not results[0].status.ok
        assert "Failed to save" in caplog.text
        assert [h.name for h in app.full_library_projects] == ["lib2"]

    def test_unrelated_projects_untouched(self, tmp_path: Path) -> None:
        other_dir = write_project(tmp_path, "other", "../somewhere")
        lib_dir = write_project(tmp_path, "lib")
        ws = Workspace()
        ws.open_project(_handle(other_dir))
        ws.open_project(_handle(lib_dir))
        new_dir = tmp_path / "lib2"
        lib_dir.rename(new_dir)
        assert ws.relocate_project(_handle(lib_dir), ProjectHandle("lib", new_dir)) == []
        assert "libraryRef1=../somewhere" in (other_dir / PROJECT_PROPERTIES).read_text()


class TestRelativePath:
    def test_sibling(self, tmp_path: Path) -> None:
        assert _relative_path(tmp_path / "lib", tmp_path / "app") == "../lib"

    def test_nested(self, tmp_path: Path) -> None:
        assert _relative_path(tmp_path / "app" / "libs" / "x", tmp_path / "app") == "libs/x"
