from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from lw_core.collection import OrderedSyncCollection
from lw_core.config import CollectionConfig
from lw_core.query import ChildEventListener, OrderedQuery, SnapshotListener

from . import settings
from .event_log import CHILD_KINDS, entry_from_record, iter_events, resolve_event_log, snapshot_from_record
from .logging_config import setup_logging


log = logging.getLogger("lw_sim.replay")


@dataclass
class ReplayStats:
    ops: int = 0
    subscribes: int = 0
    child_events: int = 0
    snapshots: int = 0
    errors: int = 0
    skipped: int = 0
    limit_mismatches: int = 0


class _ReplayDriver:
    """Holds the listeners a collection attached to its replay queries.

    Recorded events were delivered to whatever listener was live at the time,
    including ones already asked to detach. Handlers do not filter on listener
    identity, so replay keeps feeding the most recently attached pair.
    """

    def __init__(self) -> None:
        self.child: Optional[ChildEventListener] = None
        self.snapshot: Optional[SnapshotListener] = None
        self.attached = 0
        self.detached = 0

    def deliver(self, rec: Dict[str, Any]) -> bool:
        kind = rec["type"]
        if kind in CHILD_KINDS:
            if self.child is None:
                return False
            entry = entry_from_record(rec)
            prev = rec.get("prev")
            if kind == "child_added":
                self.child.on_child_added(entry, prev)
            elif kind == "child_changed":
                self.child.on_child_changed(entry, prev)
            elif kind == "child_removed":
                self.child.on_child_removed(entry)
            else:
                self.child.on_child_moved(entry, prev)
            return True
        if kind == "snapshot":
            if self.snapshot is None:
                return False
            self.snapshot.on_snapshot(snapshot_from_record(rec))
            return True
        if kind == "cancelled":
            target = self.child or self.snapshot
            if target is None:
                return False
            target.on_cancelled(rec.get("error"))
            return True
        return False


class ReplayQuery(OrderedQuery):
    def __init__(self, driver: _ReplayDriver, mode: Optional[str] = None, limit: Optional[int] = None) -> None:
        self.driver = driver
        self.mode = mode
        self.limit = limit

    def limit_to_first(self, n: int) -> "ReplayQuery":
        return ReplayQuery(self.driver, "first", n)

    def limit_to_last(self, n: int) -> "ReplayQuery":
        return ReplayQuery(self.driver, "last", n)

    def add_child_listener(self, listener: ChildEventListener) -> None:
        self.driver.child = listener
        self.driver.attached += 1

    def add_snapshot_listener(self, listener: SnapshotListener) -> None:
        self.driver.snapshot = listener

    def remove_listener(self, listener) -> None:
        self.driver.detached += 1


def _config_from_open(rec: Dict[str, Any], fallback: Optional[CollectionConfig]) -> CollectionConfig:
    fields = {k: rec[k] for k in ("initial_size", "page_size", "ascending", "fixed_item_positions") if k in rec}
    if fallback is None:
        if "initial_size" not in fields or "page_size" not in fields:
            raise ValueError("open record lacks initial_size/page_size and no config was given")
        return CollectionConfig(**fields)
    merged = asdict(fallback)
    merged.update(fields)
    return CollectionConfig(**merged)


def replay_events(
    records: Iterable[Dict[str, Any]],
    config: Optional[CollectionConfig] = None,
    item_type: Optional[Callable[..., Any]] = None,
) -> Tuple[OrderedSyncCollection, ReplayStats]:
    """Rebuild a collection from a recorded session.

    `op` records are replayed as calls on the collection (the `open` record
    constructs it, carrying the config unless one is given), remote records
    are delivered to the listeners the collection attached.
    """
    driver = _ReplayDriver()
    stats = ReplayStats()
    coll: Optional[OrderedSyncCollection] = None

    for rec in records:
        kind = rec.get("type")
        if kind == "op":
            stats.ops += 1
            op = rec.get("op")
            if op == "open":
                coll = OrderedSyncCollection.from_config(ReplayQuery(driver), _config_from_open(rec, config), item_type)
                continue
            if coll is None:
                coll = _open_default(driver, config, item_type)
            if op == "reset":
                coll.reset()
            elif op == "more":
                coll.more()
            elif op == "cleanup":
                coll.cleanup()
            elif op == "force_remove":
                coll.force_remove_item_at(int(rec["index"]))
            else:
                log.warning("Unknown op %r at seq=%s", op, rec.get("seq"))
                stats.skipped += 1
            continue

        if coll is None:
            coll = _open_default(driver, config, item_type)

        if kind == "subscribe":
            stats.subscribes += 1
            if rec.get("limit") is not None and int(rec["limit"]) != coll.limit:
                stats.limit_mismatches += 1
                log.warning("Recorded limit=%s differs from replayed limit=%d (seq=%s)",
                            rec.get("limit"), coll.limit, rec.get("seq"))
            continue

        if not driver.deliver(rec):
            log.warning("Skipping record type=%r seq=%s", kind, rec.get("seq"))
            stats.skipped += 1
            continue
        if kind in CHILD_KINDS:
            stats.child_events += 1
        elif kind == "snapshot":
            stats.snapshots += 1
        else:
            stats.errors += 1

    if coll is None:
        coll = _open_default(driver, config, item_type)
    return coll, stats


def _open_default(
    driver: _ReplayDriver,
    config: Optional[CollectionConfig],
    item_type: Optional[Callable[..., Any]],
) -> OrderedSyncCollection:
    if config is None:
        raise ValueError("Event log does not start with an open record and no config was given")
    return OrderedSyncCollection.from_config(ReplayQuery(driver), config, item_type)


def main() -> int:
    parser = argparse.ArgumentParser(description="Replay a recorded event log into a live window collection")
    parser.add_argument("--events", required=True, help="NDJSON event log (.ndjson or .ndjson.gz), or a session name under LW_EVENT_LOG_DIR")
    parser.add_argument("--config", default=None, help="YAML config (overrides the open record)")
    parser.add_argument("--log-level", default=None, help="Defaults to the config's log_level, then LW_LOG_LEVEL")
    args = parser.parse_args()

    events_path = resolve_event_log(args.events)
    if not events_path.exists():
        raise SystemExit(f"Event log not found: {args.events}")

    raw = settings.load_config(args.config) if args.config else None
    level = args.log_level or settings.config_log_level(raw)
    setup_logging(level, component="replay", events_path=events_path, base_dir=settings.LOG_DIR)

    config = settings.collection_config(raw) if raw is not None else None

    try:
        coll, stats = replay_events(iter_events(events_path), config)
    except ValueError as e:
        raise SystemExit(str(e))

    for i, entry in enumerate(coll):
        print(json.dumps({"index": i, "key": entry.key, "value": entry.value}, ensure_ascii=False, default=str))
    print(json.dumps({
        "count": coll.get_count(),
        "limit": coll.limit,
        "loading": coll.is_loading(),
        "has_more_data": coll.has_more_data(),
        "stats": asdict(stats),
    }))
    log.info("Replayed %s: %s", events_path, stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
