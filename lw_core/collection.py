from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Callable, Iterator, List, Optional, Union

from .config import CollectionConfig
from .listeners import ListenerRegistry, ListenerToken
from .query import ChildEventListener, OrderedQuery, SnapshotListener, Subscription
from .reconcile import ReconcileStrategy, strategy_for
from .types import ChangeEventType, Entry, LoadingStatus, WindowSnapshot
from .window_state import WindowState

OnChanged = Callable[[ChangeEventType, int, int], None]
OnLoadingStatus = Callable[[LoadingStatus], None]
OnError = Callable[[Any], None]

log = logging.getLogger("lw_core.collection")


class _ChildEvents(ChildEventListener):
    def __init__(self, coll: "OrderedSyncCollection") -> None:
        self.coll = coll

    def on_child_added(self, entry, previous_key):
        self.coll._handle_child_added(entry, previous_key)

    def on_child_changed(self, entry, previous_key):
        self.coll._handle_child_changed(entry)

    def on_child_removed(self, entry):
        self.coll._handle_child_removed(entry)

    def on_child_moved(self, entry, previous_key):
        self.coll._handle_child_moved(entry, previous_key)

    def on_cancelled(self, error):
        self.coll._handle_cancelled(error)


class _WindowEvents(SnapshotListener):
    def __init__(self, coll: "OrderedSyncCollection") -> None:
        self.coll = coll

    def on_snapshot(self, snapshot):
        self.coll._handle_snapshot(snapshot)

    def on_cancelled(self, error):
        self.coll._handle_cancelled(error)


class OrderedSyncCollection:
    """Live, paginated local mirror of an ordered remote query.

    Supports pull-to-refresh (`reset`) and load-more (`more`). Structural
    deltas go to the changed listener, loading progress to the status
    listeners. The remote source is real-time: even after `DONE` is reported,
    updates keep arriving until `cleanup` is called.

    Two window modes:
      - ascending: first N entries, local order equals remote order
      - descending: last N entries, local order is the reverse of remote order
        (meant for a presentation layer that reverses again)

    With `fixed_item_positions` the child stream is ignored for structure and
    entries are only appended from window snapshots.
    """

    def __init__(
        self,
        item_type: Optional[Callable[..., Any]],
        query: OrderedQuery,
        initial_size: int,
        page_size: int,
        ascending: bool = True,
        fixed_item_positions: bool = False,
    ) -> None:
        config = CollectionConfig(
            initial_size=initial_size,
            page_size=page_size,
            ascending=ascending,
            fixed_item_positions=fixed_item_positions,
        )
        self.item_type = item_type
        self.query = query
        self.initial_size = config.initial_size
        self.page_size = config.page_size
        self.ascending = config.ascending
        self.fixed_item_positions = config.fixed_item_positions

        self._entries: List[Entry] = []
        self._state = WindowState()
        self._strategy: ReconcileStrategy = strategy_for(self.fixed_item_positions)
        self._subscription: Optional[Subscription] = None

        self._on_changed: Optional[OnChanged] = None
        self._on_error: Optional[OnError] = None
        self._status_listeners: ListenerRegistry[OnLoadingStatus] = ListenerRegistry(log)

        self.reset()

    @classmethod
    def from_config(
        cls,
        query: OrderedQuery,
        config: CollectionConfig,
        item_type: Optional[Callable[..., Any]] = None,
    ) -> "OrderedSyncCollection":
        return cls(
            item_type,
            query,
            config.initial_size,
            config.page_size,
            ascending=config.ascending,
            fixed_item_positions=config.fixed_item_positions,
        )

    # --------------------------
    # Pagination and lifecycle
    # --------------------------

    def reset(self) -> None:
        """Go back to the initial window size and resubscribe.

        The local sequence is not cleared here: the old subscription may still
        deliver events, so the erase happens once fresh data arrives.
        """
        self._teardown()
        self._state = self._state.on_reset(self.initial_size)
        log.info("Reset window limit=%d ascending=%s", self.limit, self.ascending)
        self._notify_loading_status()
        self._open()

    def more(self) -> None:
        """Grow the window by one page. Ignored while loading or at end of data."""
        if not self._state.can_grow:
            log.debug(
                "Ignoring more() loading=%s end_of_data=%s",
                self._state.loading,
                self._state.end_of_data,
            )
            return
        self._teardown()
        self._state = self._state.on_more(self.page_size)
        log.info("Growing window limit=%d", self.limit)
        self._notify_loading_status()
        self._open()

    def cleanup(self) -> None:
        """Detach the current subscription without opening a new one."""
        self._teardown()

    def force_remove_item_at(self, index: int) -> None:
        """Remove an entry locally without waiting for the remote source. Use with caution."""
        self._check_index(index)
        del self._entries[index]
        self._emit_change(ChangeEventType.REMOVED, index)

    # --------------------------
    # Queries
    # --------------------------

    @property
    def limit(self) -> int:
        return self._state.limit

    @property
    def state(self) -> WindowState:
        return self._state

    def is_loading(self) -> bool:
        return self._state.loading

    def is_refreshing(self) -> bool:
        return self._state.refreshing

    def has_more_data(self) -> bool:
        return not self._state.end_of_data

    def get_count(self) -> int:
        return len(self._entries)

    def get_item(self, position: int) -> Entry:
        self._check_index(position)
        entry = self._entries[position]
        return Entry(entry.key, self._convert(entry.value))

    def get_index_for_key(self, key: str) -> int:
        for i, entry in enumerate(self._entries):
            if entry.key == key:
                return i
        return -1

    def keys(self) -> List[str]:
        return [entry.key for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Entry]:
        for i in range(len(self._entries)):
            yield self.get_item(i)

    # --------------------------
    # Listeners
    # --------------------------

    def set_on_changed_listener(self, listener: Optional[OnChanged]) -> None:
        self._on_changed = listener

    def set_on_error_listener(self, listener: Optional[OnError]) -> None:
        self._on_error = listener

    def add_on_loading_status_listener(self, listener: OnLoadingStatus) -> ListenerToken:
        return self._status_listeners.add(listener)

    def remove_on_loading_status_listener(self, token_or_listener: Union[ListenerToken, OnLoadingStatus]) -> None:
        self._status_listeners.remove(token_or_listener)

    def _emit_change(self, event_type: ChangeEventType, index: int = -1, old_index: int = -1) -> None:
        if self._on_changed is None:
            return
        try:
            self._on_changed(event_type, index, old_index)
        except Exception:
            log.exception("Changed listener error (type=%s index=%d)", event_type.value, index)

    def _notify_loading_status(self) -> None:
        self._status_listeners.notify(self._state.status(bool(self._entries)))

    def _notify_error(self, error: Any) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception:
            log.exception("Error listener failed")

    # --------------------------
    # Remote event handling
    # --------------------------

    def _handle_child_added(self, entry: Entry, previous_key: Optional[str]) -> None:
        self._state = self._state.on_child_added()
        self._strategy.on_child_added(self, entry, previous_key)

    def _handle_child_changed(self, entry: Entry) -> None:
        index = self.get_index_for_key(entry.key)
        if index == -1:
            log.debug("Ignoring change for unknown key=%s", entry.key)
            return
        self._entries[index] = entry
        self._emit_change(ChangeEventType.CHANGED, index)

    def _handle_child_removed(self, entry: Entry) -> None:
        self._strategy.on_child_removed(self, entry)

    def _handle_child_moved(self, entry: Entry, previous_key: Optional[str]) -> None:
        self._strategy.on_child_moved(self, entry, previous_key)

    def _handle_snapshot(self, snapshot: WindowSnapshot) -> None:
        # Fires after the child events of the same window, and covers the full window.
        self._state = self._state.on_snapshot(int(snapshot.count))
        if self._state.end_of_data:
            log.debug("End of data reached limit=%d", self.limit)
        self._strategy.on_snapshot(self, snapshot)
        self._notify_loading_status()

    def _handle_cancelled(self, error: Any) -> None:
        self._teardown()
        log.warning("Remote subscription cancelled: %s", error)
        self._notify_error(error)

    # --------------------------
    # Helpers used by reconcile strategies
    # --------------------------

    def _apply_pending_erase(self) -> None:
        if not self._state.erase_pending:
            return
        self._state = self._state.on_erase_applied()
        self._entries.clear()
        self._emit_change(ChangeEventType.RESET)

    def _insertion_index(self, previous_key: Optional[str]) -> int:
        prev_index = -1 if previous_key is None else self.get_index_for_key(previous_key)
        if self.ascending:
            return prev_index + 1
        # Descending mode mirrors the remote order reversed: an entry goes in
        # front of its remote predecessor, or last when it has none here.
        if prev_index == -1:
            return len(self._entries)
        return prev_index

    # --------------------------
    # Subscription setup and teardown
    # --------------------------

    def _open(self) -> None:
        if self.ascending:
            windowed = self.query.limit_to_first(self.limit)
        else:
            windowed = self.query.limit_to_last(self.limit)
        self._subscription = Subscription(windowed, _ChildEvents(self), _WindowEvents(self))
        self._subscription.attach()

    def _teardown(self) -> None:
        if self._subscription is not None:
            self._subscription.detach()
        self._subscription = None

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._entries):
            raise IndexError(f"position {index} out of range (count={len(self._entries)})")

    def _convert(self, value: Any) -> Any:
        if self.item_type is None or value is None:
            return value
        if isinstance(self.item_type, type) and isinstance(value, self.item_type):
            return value
        if isinstance(value, Mapping):
            return self.item_type(**value)
        return self.item_type(value)
