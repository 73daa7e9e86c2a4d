from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

from .types import ChangeEventType, Entry, WindowSnapshot

if TYPE_CHECKING:
    from .collection import OrderedSyncCollection


log = logging.getLogger("lw_core.reconcile")


class ReconcileStrategy(ABC):
    """Decides which remote stream owns the structure of the local sequence.

    Every handler must tolerate stale input: events from a superseded
    subscription, keys that are no longer mirrored, repeated adds.
    """

    @abstractmethod
    def on_child_added(self, coll: "OrderedSyncCollection", entry: Entry, previous_key: Optional[str]) -> None:
        raise NotImplementedError

    @abstractmethod
    def on_child_removed(self, coll: "OrderedSyncCollection", entry: Entry) -> None:
        raise NotImplementedError

    @abstractmethod
    def on_child_moved(self, coll: "OrderedSyncCollection", entry: Entry, previous_key: Optional[str]) -> None:
        raise NotImplementedError

    @abstractmethod
    def on_snapshot(self, coll: "OrderedSyncCollection", snapshot: WindowSnapshot) -> None:
        raise NotImplementedError


class LiveOrderStrategy(ReconcileStrategy):
    """Per-child events drive the structure; positions follow the remote order."""

    def on_child_added(self, coll, entry, previous_key):
        coll._apply_pending_erase()

        # previous_key may be None for more than one child (e.g. a local write
        # racing the first child), so a slot check alone is not enough.
        if coll.get_index_for_key(entry.key) != -1:
            log.debug("Ignoring duplicate add key=%s", entry.key)
            return

        index = coll._insertion_index(previous_key)
        first_child = len(coll._entries) == 0
        coll._entries.insert(index, entry)
        if first_child:
            coll._notify_loading_status()
        coll._emit_change(ChangeEventType.ADDED, index)

    def on_child_removed(self, coll, entry):
        index = coll.get_index_for_key(entry.key)
        if index == -1:
            log.debug("Ignoring remove for unknown key=%s", entry.key)
            return
        del coll._entries[index]
        coll._emit_change(ChangeEventType.REMOVED, index)

    def on_child_moved(self, coll, entry, previous_key):
        old_index = coll.get_index_for_key(entry.key)
        if old_index == -1:
            log.debug("Ignoring move for unknown key=%s", entry.key)
            return
        del coll._entries[old_index]
        new_index = coll._insertion_index(previous_key)
        coll._entries.insert(new_index, entry)
        coll._emit_change(ChangeEventType.MOVED, new_index, old_index)

    def on_snapshot(self, coll, snapshot):
        # Structure already arrived through the child events of this window.
        return


class FixedPositionStrategy(ReconcileStrategy):
    """Only window snapshots add entries; placed entries never move or go away."""

    def on_child_added(self, coll, entry, previous_key):
        return

    def on_child_removed(self, coll, entry):
        return

    def on_child_moved(self, coll, entry, previous_key):
        return

    def on_snapshot(self, coll, snapshot):
        coll._apply_pending_erase()
        limit = coll.limit
        entries = coll._entries
        first_added: int = -1

        for entry in snapshot.entries:
            if coll.get_index_for_key(entry.key) != -1:
                continue
            if len(entries) >= limit:
                break
            if coll.ascending:
                entries.append(entry)
                coll._emit_change(ChangeEventType.ADDED, len(entries) - 1)
                continue
            # Each newcomer goes in front of the previous ones, reversing snapshot order.
            if first_added == -1:
                entries.append(entry)
                first_added = len(entries) - 1
            else:
                entries.insert(first_added, entry)
            coll._emit_change(ChangeEventType.ADDED, first_added)


def strategy_for(fixed_item_positions: bool) -> ReconcileStrategy:
    if fixed_item_positions:
        return FixedPositionStrategy()
    return LiveOrderStrategy()
