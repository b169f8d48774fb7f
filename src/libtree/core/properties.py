"""Project property sources: where declared library references live."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator, Protocol

# Keys read from a project's property file.
PROPERTY_LIB_REF = "libraryRef"
PROPERTY_LIBRARY = "library"
PROPERTY_TARGET = "target"

# A directory holding this file is a project.
PROJECT_PROPERTIES = "project.properties"


class LibtreeError(Exception):
    """Base class for libtree errors."""


class PersistError(LibtreeError):
    """A property source could not be written back to its storage."""


class PropertySource(Protocol):
    """String-keyed project configuration, as used by ProjectState."""

    filename: str

    def get_property(self, key: str) -> str | None: ...

    def set_property(self, key: str, value: str) -> None: ...

    def save(self) -> None: ...

    def reload(self) -> None: ...


def library_reference_key(index: int) -> str:
    """Key of the index-th declared library reference (1-based)."""
    return f"{PROPERTY_LIB_REF}{index}"


def iter_library_references(source: PropertySource) -> Iterator[tuple[str, str]]:
    """
    Yield (key, value) for libraryRef1, libraryRef2, ... in index order.

    Stops at the first missing index: a declaration after a gap is never seen,
    so renumbering the file with a hole silently drops the tail.
    """
    index = 1
    while True:
        key = library_reference_key(index)
        value = source.get_property(key)
        if value is None:
            return
        yield key, value
        index += 1


class MemoryProperties:
    """Dict-backed property source; handy for tests and generated projects."""

    def __init__(
        self,
        values: dict[str, str] | None = None,
        *,
        filename: str = PROJECT_PROPERTIES,
        fail_on_save: bool = False,
    ) -> None:
        self.filename = filename
        self.fail_on_save = fail_on_save
        self._values: dict[str, str] = dict(values or {})
        self._saved: dict[str, str] = dict(self._values)
        self.save_count = 0

    def get_property(self, key: str) -> str | None:
        return self._values.get(key)

    def set_property(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove_property(self, key: str) -> None:
        self._values.pop(key, None)

    def save(self) -> None:
        if self.fail_on_save:
            raise PersistError(f"cannot write {self.filename}")
        self._saved = dict(self._values)
        self.save_count += 1

    def reload(self) -> None:
        self._values = dict(self._saved)

    def replace_saved(self, values: dict[str, str]) -> None:
        """Simulate an external edit: next reload() sees these values."""
        self._saved = dict(values)

    def to_dict(self) -> dict[str, str]:
        return dict(self._values)


class PropertiesFile:
    """
    A ``key=value`` property file on disk.

    Lines starting with ``#`` or ``!`` are comments; ``:`` is accepted as a
    separator as well. Comments and key order are kept on save; new keys are
    appended at the end.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.filename = self.path.name
        self._lines: list[str] = []
        self._values: dict[str, str] = {}
        self.reload()

    def reload(self) -> None:
        self._lines = []
        self._values = {}
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError:
            return
        for line in text.splitlines():
            self._lines.append(line)
            parsed = _parse_line(line)
            if parsed is not None:
                key, value = parsed
                self._values[key] = value

    def get_property(self, key: str) -> str | None:
        return self._values.get(key)

    def set_property(self, key: str, value: str) -> None:
        if key in self._values:
            for i, line in enumerate(self._lines):
                parsed = _parse_line(line)
                if parsed is not None and parsed[0] == key:
                    self._lines[i] = f"{key}={value}"
        else:
            self._lines.append(f"{key}={value}")
        self._values[key] = value

    def save(self) -> None:
        content = "\n".join(self._lines) + "\n" if self._lines else ""
        try:
            self.path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise PersistError(f"cannot write {self.path}: {e}") from e

    def to_dict(self) -> dict[str, str]:
        return dict(self._values)


def _parse_line(line: str) -> tuple[str, str] | None:
    """Split one property line into (key, value); None for blanks and comments."""
    stripped = line.strip()
    if not stripped or stripped[0] in "#!":
        return None
    positions = [p for p in (stripped.find("="), stripped.find(":")) if p != -1]
    if not positions:
        return stripped, ""
    sep = min(positions)
    key = stripped[:sep].strip()
    if not key:
        return None
    return key, stripped[sep + 1 :].strip()
