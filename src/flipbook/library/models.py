"""Value types shared by the config store and its callers."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


@dataclass(frozen=True)
class BookSummary:
    """One row of the bookshelf."""

    id: str
    title: str
    author: str = ""
    chapters_count: int = 0


@dataclass(frozen=True)
class VersionedDocument:
    """A raw config document tagged with the schema version it follows."""

    version: int
    data: dict = field(default_factory=dict)


class SaveState(enum.Enum):
    IDLE = "idle"
    WRITING = "writing"
    WRITING_AGAIN = "writing_again"  # a mutation arrived during the write
