from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple


class ChangeEventType(str, Enum):
    ADDED = "added"
    CHANGED = "changed"
    REMOVED = "removed"
    MOVED = "moved"
    RESET = "reset"


class LoadingStatus(str, Enum):
    LOADING_NO_CONTENT = "loading_no_content"
    LOADING_CONTENT = "loading_content"
    DONE = "done"


@dataclass(frozen=True, eq=False)
class Entry:
    """One (key, value) pair of the mirrored sequence. Identity is the key."""

    key: str
    value: Any = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Entry):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)


@dataclass(frozen=True)
class WindowSnapshot:
    """Complete ordered content of one query window, in remote order."""

    entries: Tuple[Entry, ...] = ()
    count: Optional[int] = field(default=None)

    def __post_init__(self) -> None:
        object.__setattr__(self, "entries", tuple(self.entries))
        if self.count is None:
            object.__setattr__(self, "count", len(self.entries))
