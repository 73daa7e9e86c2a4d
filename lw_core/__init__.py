"""Core data structures and reconciliation logic for live windowed collections."""

from .collection import OrderedSyncCollection
from .config import CollectionConfig
from .listeners import ListenerRegistry, ListenerToken
from .query import ChildEventListener, OrderedQuery, SnapshotListener, Subscription
from .reconcile import FixedPositionStrategy, LiveOrderStrategy, ReconcileStrategy
from .types import ChangeEventType, Entry, LoadingStatus, WindowSnapshot
from .window_state import WindowPhase, WindowState

__all__ = [
    "OrderedSyncCollection",
    "CollectionConfig",
    "ListenerRegistry",
    "ListenerToken",
    "ChildEventListener",
    "OrderedQuery",
    "SnapshotListener",
    "Subscription",
    "ReconcileStrategy",
    "LiveOrderStrategy",
    "FixedPositionStrategy",
    "ChangeEventType",
    "Entry",
    "LoadingStatus",
    "WindowSnapshot",
    "WindowPhase",
    "WindowState",
]
