from __future__ import annotations

import pytest

from lw_core.types import LoadingStatus
from lw_core.window_state import WindowPhase, WindowState


def test_reset_enters_refreshing_with_pending_erase():
    state = WindowState().on_reset(10)

    assert state.phase is WindowPhase.REFRESHING
    assert state.loading is True
    assert state.refreshing is True
    assert state.limit == 10
    assert state.erase_pending is True
    assert state.end_of_data is False


def test_more_grows_limit_without_refreshing():
    state = WindowState().on_reset(10).on_snapshot(10).on_more(5)

    assert state.limit == 15
    assert state.loading is True
    assert state.refreshing is False


def test_snapshot_clamps_when_short():
    state = WindowState().on_reset(10).on_snapshot(3)

    assert state.limit == 3
    assert state.end_of_data is True
    assert state.loading is False
    assert state.can_grow is False


def test_snapshot_keeps_limit_when_full():
    state = WindowState().on_reset(10).on_snapshot(10)

    assert state.limit == 10
    assert state.end_of_data is False
    assert state.can_grow is True


def test_child_added_reopens_end_of_data():
    state = WindowState().on_reset(10).on_snapshot(3).on_child_added()

    assert state.end_of_data is False
    assert state.limit == 3


def test_erase_applied_clears_flag_only():
    state = WindowState().on_reset(4).on_erase_applied()

    assert state.erase_pending is False
    assert state.refreshing is True


def test_reset_after_end_of_data_clears_it():
    state = WindowState().on_reset(10).on_snapshot(2).on_reset(10)

    assert state.end_of_data is False
    assert state.limit == 10


def test_status_values():
    loading = WindowState().on_reset(5)
    done = loading.on_snapshot(5)

    assert loading.status(has_content=False) is LoadingStatus.LOADING_NO_CONTENT
    assert loading.status(has_content=True) is LoadingStatus.LOADING_CONTENT
    assert done.status(has_content=False) is LoadingStatus.DONE
    assert done.status(has_content=True) is LoadingStatus.DONE


def test_negative_limit_rejected():
    with pytest.raises(ValueError):
        WindowState(limit=-1)
