from __future__ import annotations

import dataclasses
import gzip
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, Optional

from lw_core.collection import OrderedSyncCollection
from lw_core.config import CollectionConfig
from lw_core.query import ChildEventListener, OrderedQuery, SnapshotListener
from lw_core.types import Entry, WindowSnapshot

from . import settings


log = logging.getLogger("lw_sim.event_log")

CHILD_KINDS = ("child_added", "child_changed", "child_removed", "child_moved")


def _encode_default(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    return str(obj)


def _open_text(path: Path, mode: str):
    if path.suffix == ".gz":
        return gzip.open(path, mode + "t", encoding="utf-8")
    return open(path, mode, encoding="utf-8")


def session_name(path: str | Path) -> str:
    """`out/event_logs/demo.ndjson.gz` -> `demo`."""
    name = Path(path).name
    for suffix in (".gz", ".ndjson"):
        if name.endswith(suffix):
            name = name[: -len(suffix)]
    return name or "default"


def session_log_path(session: str, base_dir: Optional[str | Path] = None, compress: bool = True) -> Path:
    """Where a named session is recorded, under `LW_EVENT_LOG_DIR` by default."""
    suffix = ".ndjson.gz" if compress else ".ndjson"
    return Path(base_dir or settings.EVENT_LOG_DIR) / f"{session}{suffix}"


def resolve_event_log(arg: str | Path) -> Path:
    """Accept a path, a path relative to `LW_EVENT_LOG_DIR`, or a bare session name."""
    path = Path(arg)
    candidates = [path]
    if not path.is_absolute():
        candidates.append(Path(settings.EVENT_LOG_DIR) / path)
        if not path.suffix:
            candidates.append(session_log_path(str(path)))
            candidates.append(session_log_path(str(path), compress=False))
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return path


class EventLogWriter:
    """Append-only NDJSON log of everything a collection was fed.

    Records carry a monotonic `seq` and a `type`:
      op, subscribe, child_added, child_changed, child_removed, child_moved,
      snapshot, cancelled
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = _open_text(self.path, "a")
        self._seq = 0

    def write(self, kind: str, **fields: Any) -> int:
        if self._fh is None:
            raise ValueError(f"Event log {self.path} is closed")
        self._seq += 1
        payload: Dict[str, Any] = {"seq": self._seq, "type": kind}
        payload.update(fields)
        self._fh.write(json.dumps(payload, ensure_ascii=False, default=_encode_default) + "\n")
        return self._seq

    def record_op(self, op: str, **fields: Any) -> int:
        return self.write("op", op=op, **fields)

    def flush(self) -> None:
        if self._fh is not None:
            self._fh.flush()

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None

    def __enter__(self) -> "EventLogWriter":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def iter_events(path: Path) -> Iterator[Dict[str, Any]]:
    with _open_text(Path(path), "r") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            yield json.loads(line)


def entry_from_record(rec: Dict[str, Any]) -> Entry:
    return Entry(str(rec["key"]), rec.get("value"))


def snapshot_from_record(rec: Dict[str, Any]) -> WindowSnapshot:
    entries = tuple(Entry(str(k), v) for k, v in rec.get("entries", []))
    return WindowSnapshot(entries, rec.get("count"))


class _RecordingChildListener(ChildEventListener):
    def __init__(self, inner: ChildEventListener, writer: EventLogWriter) -> None:
        self.inner = inner
        self.writer = writer

    def on_child_added(self, entry, previous_key):
        self.writer.write("child_added", key=entry.key, value=entry.value, prev=previous_key)
        self.inner.on_child_added(entry, previous_key)

    def on_child_changed(self, entry, previous_key):
        self.writer.write("child_changed", key=entry.key, value=entry.value, prev=previous_key)
        self.inner.on_child_changed(entry, previous_key)

    def on_child_removed(self, entry):
        self.writer.write("child_removed", key=entry.key, value=entry.value)
        self.inner.on_child_removed(entry)

    def on_child_moved(self, entry, previous_key):
        self.writer.write("child_moved", key=entry.key, value=entry.value, prev=previous_key)
        self.inner.on_child_moved(entry, previous_key)

    def on_cancelled(self, error):
        self.writer.write("cancelled", error=error)
        self.inner.on_cancelled(error)


class _RecordingSnapshotListener(SnapshotListener):
    def __init__(self, inner: SnapshotListener, writer: EventLogWriter) -> None:
        self.inner = inner
        self.writer = writer

    def on_snapshot(self, snapshot):
        self.writer.write(
            "snapshot",
            entries=[[e.key, e.value] for e in snapshot.entries],
            count=snapshot.count,
        )
        self.inner.on_snapshot(snapshot)

    def on_cancelled(self, error):
        self.writer.write("cancelled", error=error)
        self.inner.on_cancelled(error)


class RecordingQuery(OrderedQuery):
    """Wraps another query and logs every event delivered through it."""

    def __init__(
        self,
        inner: OrderedQuery,
        writer: EventLogWriter,
        mode: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> None:
        self.inner = inner
        self.writer = writer
        self.mode = mode
        self.limit = limit
        self._wrappers: Dict[int, Any] = {}

    def limit_to_first(self, n: int) -> "RecordingQuery":
        return RecordingQuery(self.inner.limit_to_first(n), self.writer, "first", n)

    def limit_to_last(self, n: int) -> "RecordingQuery":
        return RecordingQuery(self.inner.limit_to_last(n), self.writer, "last", n)

    def add_child_listener(self, listener: ChildEventListener) -> None:
        wrapper = _RecordingChildListener(listener, self.writer)
        self._wrappers[id(listener)] = wrapper
        self.writer.write("subscribe", mode=self.mode, limit=self.limit)
        self.inner.add_child_listener(wrapper)

    def add_snapshot_listener(self, listener: SnapshotListener) -> None:
        wrapper = _RecordingSnapshotListener(listener, self.writer)
        self._wrappers[id(listener)] = wrapper
        self.inner.add_snapshot_listener(wrapper)

    def remove_listener(self, listener) -> None:
        wrapper = self._wrappers.pop(id(listener), None)
        if wrapper is None:
            log.debug("remove_listener for unknown listener %r", listener)
            return
        self.inner.remove_listener(wrapper)


def write_records(path: Path, records: Iterable[Dict[str, Any]]) -> int:
    """Write already-built records (e.g. hand-written fixtures) as an event log."""
    count = 0
    with EventLogWriter(path) as writer:
        for rec in records:
            fields = {k: v for k, v in rec.items() if k not in ("seq", "type")}
            writer.write(rec["type"], **fields)
            count += 1
    return count


class RecordingCollection(OrderedSyncCollection):
    """An OrderedSyncCollection that logs its own calls next to the remote events.

    `open` is written before the first subscription, `reset`/`more`/`cleanup`
    before the call (so the `subscribe` it causes follows it), `force_remove`
    only once the index was accepted. Remote deliveries go through a
    `RecordingQuery` on the same writer.
    """

    def __init__(
        self,
        item_type: Optional[Callable[..., Any]],
        query: OrderedQuery,
        initial_size: int,
        page_size: int,
        ascending: bool = True,
        fixed_item_positions: bool = False,
        *,
        writer: EventLogWriter,
    ) -> None:
        config = CollectionConfig(
            initial_size=initial_size,
            page_size=page_size,
            ascending=ascending,
            fixed_item_positions=fixed_item_positions,
        )
        self.writer = writer
        self._recording = False
        writer.record_op("open", **dataclasses.asdict(config))
        super().__init__(
            item_type,
            RecordingQuery(query, writer),
            config.initial_size,
            config.page_size,
            ascending=config.ascending,
            fixed_item_positions=config.fixed_item_positions,
        )
        self._recording = True

    @classmethod
    def from_config(
        cls,
        query: OrderedQuery,
        config: CollectionConfig,
        item_type: Optional[Callable[..., Any]] = None,
        *,
        writer: EventLogWriter,
    ) -> "RecordingCollection":
        return cls(
            item_type,
            query,
            config.initial_size,
            config.page_size,
            ascending=config.ascending,
            fixed_item_positions=config.fixed_item_positions,
            writer=writer,
        )

    def reset(self) -> None:
        # The constructor's reset is implied by the open record.
        if self._recording:
            self.writer.record_op("reset")
        super().reset()

    def more(self) -> None:
        self.writer.record_op("more")
        super().more()

    def cleanup(self) -> None:
        self.writer.record_op("cleanup")
        super().cleanup()

    def force_remove_item_at(self, index: int) -> None:
        super().force_remove_item_at(index)
        self.writer.record_op("force_remove", index=index)
