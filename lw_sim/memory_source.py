from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Deque, Dict, List, Optional

from sortedcontainers import SortedList

from lw_core.query import ChildEventListener, OrderedQuery, SnapshotListener
from lw_core.types import Entry, WindowSnapshot


log = logging.getLogger("lw_sim.memory_source")


@dataclass(frozen=True)
class SourceError:
    code: str
    message: str = ""


@dataclass
class _Attachment:
    query: "MemoryQuery"
    listener: Any
    window: List[str]
    detached: bool = False


class InMemoryOrderedSource:
    """Ordered key/value store that behaves like a real-time remote source.

    Entries are ordered by `order_by(key, value)` (ties broken by key; default is
    key order). Every mutation is diffed against the window of each attached
    child listener and turned into removed/added/changed/moved events carrying
    the previous sibling key within that window.

    Events are queued and delivered serially by `flush()`. Removing a listener
    does not cancel events already queued for it unless
    `drop_pending_on_detach` is set, like a remote whose detach is not
    synchronous.
    """

    def __init__(
        self,
        order_by: Optional[Callable[[str, Any], Any]] = None,
        auto_flush: bool = False,
        drop_pending_on_detach: bool = False,
    ) -> None:
        self._order_by = order_by or (lambda key, value: key)
        self.auto_flush = auto_flush
        self.drop_pending_on_detach = drop_pending_on_detach

        self._values: Dict[str, Any] = {}
        self._sort_keys: Dict[str, Any] = {}
        self._order: SortedList = SortedList()

        self._child_attachments: List[_Attachment] = []
        self._snapshot_attachments: List[_Attachment] = []
        self._pending: Deque[tuple[_Attachment, Callable[[], None]]] = deque()
        self._flushing = False

    # --------------------------
    # Remote data
    # --------------------------

    def query(self) -> "MemoryQuery":
        return MemoryQuery(self)

    def keys(self) -> List[str]:
        return [key for _sort_key, key in self._order]

    def get(self, key: str) -> Any:
        return self._values.get(key)

    def __len__(self) -> int:
        return len(self._values)

    def set(self, key: str, value: Any) -> None:
        old_value = self._values.get(key)
        existed = key in self._values
        if existed:
            self._order.remove((self._sort_keys[key], key))
        sort_key = self._order_by(key, value)
        self._values[key] = value
        self._sort_keys[key] = sort_key
        self._order.add((sort_key, key))
        self._propagate(key, changed=existed and old_value != value, removed_values={})
        self._maybe_flush()

    def update(self, items: Dict[str, Any]) -> None:
        for key, value in items.items():
            self.set(key, value)

    def remove(self, key: str) -> None:
        if key not in self._values:
            return
        old_value = self._values.pop(key)
        self._order.remove((self._sort_keys.pop(key), key))
        self._propagate(key, changed=False, removed_values={key: old_value})
        self._maybe_flush()

    def cancel(self, error: Any) -> None:
        """Cancel every attached listener with `error`, then drop them."""
        log.warning("Cancelling %d listeners: %s",
                    len(self._child_attachments) + len(self._snapshot_attachments), error)
        for att in self._child_attachments + self._snapshot_attachments:
            self._enqueue(att, partial(att.listener.on_cancelled, error))
            att.detached = True
        self._child_attachments.clear()
        self._snapshot_attachments.clear()
        self._maybe_flush()

    # --------------------------
    # Delivery
    # --------------------------

    @property
    def pending(self) -> int:
        return len(self._pending)

    def flush(self) -> int:
        """Deliver queued events one at a time. Returns the number delivered."""
        if self._flushing:
            # Listener re-entered the source; the outer loop drains the queue.
            return 0
        self._flushing = True
        delivered = 0
        try:
            while self._pending:
                att, deliver = self._pending.popleft()
                if att.detached and self.drop_pending_on_detach:
                    continue
                deliver()
                delivered += 1
        finally:
            self._flushing = False
        if delivered:
            log.debug("Delivered %d events", delivered)
        return delivered

    def _maybe_flush(self) -> None:
        if self.auto_flush:
            self.flush()

    def _enqueue(self, att: _Attachment, deliver: Callable[[], None]) -> None:
        self._pending.append((att, deliver))

    # --------------------------
    # Listener bookkeeping (used by MemoryQuery)
    # --------------------------

    def _window(self, query: "MemoryQuery") -> List[str]:
        keys = self.keys()
        if query.mode == "first":
            return keys[: query.limit]
        if query.mode == "last":
            if query.limit <= 0:
                return []
            return keys[-query.limit:]
        return keys

    def _attach_child(self, query: "MemoryQuery", listener: ChildEventListener) -> None:
        window = self._window(query)
        att = _Attachment(query=query, listener=listener, window=window)
        self._child_attachments.append(att)
        for i, key in enumerate(window):
            prev = window[i - 1] if i > 0 else None
            self._enqueue(att, partial(listener.on_child_added, Entry(key, self._values[key]), prev))
        self._maybe_flush()

    def _attach_snapshot(self, query: "MemoryQuery", listener: SnapshotListener) -> None:
        window = self._window(query)
        att = _Attachment(query=query, listener=listener, window=window)
        self._snapshot_attachments.append(att)
        snapshot = WindowSnapshot(tuple(Entry(key, self._values[key]) for key in window))
        self._enqueue(att, partial(self._deliver_snapshot, att, snapshot))
        self._maybe_flush()

    def _deliver_snapshot(self, att: _Attachment, snapshot: WindowSnapshot) -> None:
        # Single shot: the listener is gone once it has seen its window.
        if att in self._snapshot_attachments:
            self._snapshot_attachments.remove(att)
        att.listener.on_snapshot(snapshot)

    def _detach(self, listener: Any) -> None:
        for bucket in (self._child_attachments, self._snapshot_attachments):
            for att in [a for a in bucket if a.listener is listener]:
                att.detached = True
                bucket.remove(att)

    # --------------------------
    # Window diffing
    # --------------------------

    def _value_of(self, key: str, removed_values: Dict[str, Any]) -> Any:
        if key in removed_values:
            return removed_values[key]
        return self._values[key]

    def _propagate(self, key: str, changed: bool, removed_values: Dict[str, Any]) -> None:
        for att in list(self._child_attachments):
            old = att.window
            new = self._window(att.query)
            att.window = new
            self._diff(att, key, old, new, changed, removed_values)

    def _diff(
        self,
        att: _Attachment,
        key: str,
        old: List[str],
        new: List[str],
        changed: bool,
        removed_values: Dict[str, Any],
    ) -> None:
        listener = att.listener
        old_set = set(old)
        new_set = set(new)

        for k in old:
            if k not in new_set:
                self._enqueue(att, partial(listener.on_child_removed, Entry(k, self._value_of(k, removed_values))))

        for i, k in enumerate(new):
            if k not in old_set:
                prev = new[i - 1] if i > 0 else None
                self._enqueue(att, partial(listener.on_child_added, Entry(k, self._values[k]), prev))

        if key not in old_set or key not in new_set:
            return

        pos = new.index(key)
        prev = new[pos - 1] if pos > 0 else None
        entry = Entry(key, self._values[key])
        if changed:
            self._enqueue(att, partial(listener.on_child_changed, entry, prev))

        # Only the mutated key can change its order relative to the others.
        common_old = [k for k in old if k in new_set]
        common_new = [k for k in new if k in old_set]
        if common_old.index(key) != common_new.index(key):
            self._enqueue(att, partial(listener.on_child_moved, entry, prev))


class MemoryQuery(OrderedQuery):
    def __init__(self, source: InMemoryOrderedSource, mode: Optional[str] = None, limit: int = 0) -> None:
        self.source = source
        self.mode = mode
        self.limit = int(limit)

    def limit_to_first(self, n: int) -> "MemoryQuery":
        if n < 0:
            raise ValueError(f"limit must be >= 0 (got {n!r})")
        return MemoryQuery(self.source, "first", n)

    def limit_to_last(self, n: int) -> "MemoryQuery":
        if n < 0:
            raise ValueError(f"limit must be >= 0 (got {n!r})")
        return MemoryQuery(self.source, "last", n)

    def add_child_listener(self, listener: ChildEventListener) -> None:
        self.source._attach_child(self, listener)

    def add_snapshot_listener(self, listener: SnapshotListener) -> None:
        self.source._attach_snapshot(self, listener)

    def remove_listener(self, listener) -> None:
        self.source._detach(listener)

    def __repr__(self) -> str:
        return f"MemoryQuery(mode={self.mode!r}, limit={self.limit})"
