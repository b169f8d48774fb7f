"""Project handles: identity and on-disk location of an open project."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ProjectHandle:
    """An open project: a display name and the directory it lives in."""

    name: str
    location: Path

    def __post_init__(self) -> None:
        object.__setattr__(self, "location", Path(self.location))

    def canonical_location(self) -> Path:
        """Location with symlinks and ``..`` resolved; raises OSError if missing."""
        return self.location.resolve(strict=True)

    def to_dict(self) -> dict:
        """Serialize to dict for JSON output."""
        return {"name": self.name, "location": str(self.location)}

    def __str__(self) -> str:
        return self.name
