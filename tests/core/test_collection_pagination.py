from __future__ import annotations

from lw_core.collection import OrderedSyncCollection
from lw_core.types import LoadingStatus
from tests._fakes import ChangeLog, ScriptedSource


def _make(ascending: bool = True, fixed: bool = False, initial_size: int = 3, page_size: int = 2):
    source = ScriptedSource()
    coll = OrderedSyncCollection(None, source.query(), initial_size, page_size, ascending, fixed)
    return source, coll


def _fill(source: ScriptedSource, keys):
    prev = None
    for key in keys:
        source.added(key, prev)
        prev = key


def test_construction_opens_first_n_subscription():
    source, coll = _make(initial_size=3)

    assert len(source.subscriptions) == 1
    assert source.last_mode == "first"
    assert source.last_limit == 3
    assert coll.is_loading() is True
    assert coll.is_refreshing() is True
    assert coll.has_more_data() is True


def test_descending_uses_last_n_window():
    source, coll = _make(ascending=False, initial_size=4)

    assert source.last_mode == "last"
    assert source.last_limit == 4


def test_more_is_noop_while_loading():
    source, coll = _make(initial_size=3)

    coll.more()

    assert coll.limit == 3
    assert len(source.subscriptions) == 1


def test_more_grows_window_after_snapshot():
    source, coll = _make(initial_size=3, page_size=2)
    _fill(source, ["A", "B", "C"])
    source.snapshot(["A", "B", "C"])

    coll.more()

    assert coll.limit == 5
    assert coll.is_loading() is True
    assert coll.is_refreshing() is False
    assert len(source.subscriptions) == 2
    assert source.last_limit == 5
    # old pair was asked to detach
    assert len(source.removed) == 2


def test_more_is_noop_at_end_of_data():
    source, coll = _make(initial_size=3)
    _fill(source, ["A"])
    source.snapshot(["A"])

    coll.more()

    assert coll.limit == 1
    assert len(source.subscriptions) == 1


def test_more_keeps_existing_entries_and_skips_redelivered_adds():
    source, coll = _make(initial_size=2, page_size=2)
    changes = ChangeLog()
    coll.set_on_changed_listener(changes)
    _fill(source, ["A", "B"])
    source.snapshot(["A", "B"])

    coll.more()
    _fill(source, ["A", "B", "C", "D"])
    source.snapshot(["A", "B", "C", "D"])

    assert coll.keys() == ["A", "B", "C", "D"]
    assert len(changes.of("added")) == 4
    assert len(changes.of("reset")) == 1


def test_reset_restores_initial_window():
    source, coll = _make(initial_size=2, page_size=2)
    _fill(source, ["A", "B"])
    source.snapshot(["A", "B"])
    coll.more()
    _fill(source, ["A", "B", "C", "D"])
    source.snapshot(["A", "B", "C", "D"])
    assert coll.limit == 4

    coll.reset()

    assert coll.limit == 2
    assert coll.is_refreshing() is True
    assert coll.is_loading() is True
    assert source.last_limit == 2


def test_reset_on_empty_collection_emits_loading_no_content():
    source, coll = _make()
    statuses = []
    coll.add_on_loading_status_listener(statuses.append)

    coll.reset()

    assert statuses == [LoadingStatus.LOADING_NO_CONTENT]


def test_reset_with_content_emits_loading_content():
    source, coll = _make()
    _fill(source, ["A"])
    source.snapshot(["A"])
    statuses = []
    coll.add_on_loading_status_listener(statuses.append)

    coll.reset()

    assert statuses == [LoadingStatus.LOADING_CONTENT]


def test_status_sequence_over_initial_load():
    source, coll = _make(initial_size=3)
    statuses = []
    coll.add_on_loading_status_listener(statuses.append)

    _fill(source, ["A", "B"])
    source.snapshot(["A", "B"])

    # first child flips the report to content, the snapshot finishes the load
    assert statuses == [LoadingStatus.LOADING_CONTENT, LoadingStatus.DONE]


def test_more_emits_loading_content_then_done():
    source, coll = _make(initial_size=1, page_size=1)
    _fill(source, ["A"])
    source.snapshot(["A"])
    statuses = []
    coll.add_on_loading_status_listener(statuses.append)

    coll.more()
    _fill(source, ["A", "B"])
    source.snapshot(["A", "B"])

    assert statuses == [LoadingStatus.LOADING_CONTENT, LoadingStatus.DONE]


def test_cleanup_detaches_without_resubscribing():
    source, coll = _make()

    coll.cleanup()

    assert len(source.subscriptions) == 1
    assert len(source.removed) == 2

    coll.cleanup()
    assert len(source.removed) == 2


def test_cancel_detaches_and_reports_error():
    source, coll = _make()
    _fill(source, ["A"])
    errors = []
    coll.set_on_error_listener(errors.append)

    source.cancel("permission_denied")

    assert errors == ["permission_denied"]
    assert len(source.removed) == 2
    assert coll.keys() == ["A"]


def test_listener_errors_do_not_break_reconciliation():
    source, coll = _make()

    def boom(*_args):
        raise RuntimeError("listener failure")

    coll.set_on_changed_listener(boom)
    coll.add_on_loading_status_listener(boom)

    _fill(source, ["A", "B"])
    source.snapshot(["A", "B"])

    assert coll.keys() == ["A", "B"]
    assert coll.is_loading() is False
