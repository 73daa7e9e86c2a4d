from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from .types import LoadingStatus


class WindowPhase(str, Enum):
    REFRESHING = "refreshing"
    LOADING_MORE = "loading_more"
    IDLE = "idle"


@dataclass(frozen=True)
class WindowState:
    """Pagination window plus loading flags as one immutable value.

    Transitions return a new state:
      - on_reset: window back to the initial size, end of data unknown, the
        local sequence is erased once fresh data shows up
      - on_more: window grows by one page
      - on_snapshot: the full window arrived; clamps the limit when fewer
        entries exist than requested
      - on_child_added: new data means the end is no longer confirmed
      - on_erase_applied: the deferred erase has been carried out
    """

    phase: WindowPhase = WindowPhase.IDLE
    limit: int = 0
    end_of_data: bool = False
    erase_pending: bool = False

    def __post_init__(self) -> None:
        if self.limit < 0:
            raise ValueError(f"limit must be >= 0 (got {self.limit!r})")

    @property
    def loading(self) -> bool:
        return self.phase is not WindowPhase.IDLE

    @property
    def refreshing(self) -> bool:
        return self.phase is WindowPhase.REFRESHING

    @property
    def can_grow(self) -> bool:
        return not self.loading and not self.end_of_data

    def status(self, has_content: bool) -> LoadingStatus:
        if not self.loading:
            return LoadingStatus.DONE
        if has_content:
            return LoadingStatus.LOADING_CONTENT
        return LoadingStatus.LOADING_NO_CONTENT

    def on_reset(self, initial_size: int) -> "WindowState":
        return WindowState(
            phase=WindowPhase.REFRESHING,
            limit=initial_size,
            end_of_data=False,
            erase_pending=True,
        )

    def on_more(self, page_size: int) -> "WindowState":
        return replace(self, phase=WindowPhase.LOADING_MORE, limit=self.limit + page_size)

    def on_snapshot(self, count: int) -> "WindowState":
        if count < self.limit:
            return replace(self, phase=WindowPhase.IDLE, limit=int(count), end_of_data=True)
        return replace(self, phase=WindowPhase.IDLE)

    def on_child_added(self) -> "WindowState":
        if not self.end_of_data:
            return self
        return replace(self, end_of_data=False)

    def on_erase_applied(self) -> "WindowState":
        return replace(self, erase_pending=False)
