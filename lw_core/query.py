from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from .types import Entry, WindowSnapshot


class ChildEventListener(ABC):
    """Per-child notifications for one windowed query.

    `previous_key` is the key immediately preceding the entry in remote order,
    or None when the entry is now first in the window.
    """

    @abstractmethod
    def on_child_added(self, entry: Entry, previous_key: Optional[str]) -> None:
        raise NotImplementedError

    @abstractmethod
    def on_child_changed(self, entry: Entry, previous_key: Optional[str]) -> None:
        raise NotImplementedError

    @abstractmethod
    def on_child_removed(self, entry: Entry) -> None:
        raise NotImplementedError

    @abstractmethod
    def on_child_moved(self, entry: Entry, previous_key: Optional[str]) -> None:
        raise NotImplementedError

    @abstractmethod
    def on_cancelled(self, error: Any) -> None:
        raise NotImplementedError


class SnapshotListener(ABC):
    """Single-shot listener for the full content of a window."""

    @abstractmethod
    def on_snapshot(self, snapshot: WindowSnapshot) -> None:
        raise NotImplementedError

    @abstractmethod
    def on_cancelled(self, error: Any) -> None:
        raise NotImplementedError


class OrderedQuery(ABC):
    """An already ordered (and filtered) remote query.

    Implementations must not be limited by the caller; the collection applies
    `limit_to_first` / `limit_to_last` itself. Removing a listener is a request:
    events already in flight may still be delivered afterwards.
    """

    @abstractmethod
    def limit_to_first(self, n: int) -> "OrderedQuery":
        raise NotImplementedError

    @abstractmethod
    def limit_to_last(self, n: int) -> "OrderedQuery":
        raise NotImplementedError

    @abstractmethod
    def add_child_listener(self, listener: ChildEventListener) -> None:
        raise NotImplementedError

    @abstractmethod
    def add_snapshot_listener(self, listener: SnapshotListener) -> None:
        raise NotImplementedError

    @abstractmethod
    def remove_listener(self, listener: ChildEventListener | SnapshotListener) -> None:
        raise NotImplementedError


class Subscription:
    """The single live (child listener, snapshot listener) pair of a window."""

    def __init__(
        self,
        query: OrderedQuery,
        child_listener: ChildEventListener,
        snapshot_listener: SnapshotListener,
    ) -> None:
        self.query = query
        self.child_listener = child_listener
        self.snapshot_listener = snapshot_listener
        self.attached = False

    def attach(self) -> None:
        self.query.add_child_listener(self.child_listener)
        self.query.add_snapshot_listener(self.snapshot_listener)
        self.attached = True

    def detach(self) -> None:
        if not self.attached:
            return
        self.attached = False
        self.query.remove_listener(self.child_listener)
        self.query.remove_listener(self.snapshot_listener)
