from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Iterator, List, Optional, Tuple, TypeVar, Union

L = TypeVar("L", bound=Callable)

_token_ids = itertools.count(1)


@dataclass(frozen=True)
class ListenerToken:
    id: int


class ListenerRegistry(Generic[L]):
    """Multi-subscriber callback registry.

    Registrations are keyed by a generated token. Removing by callback matches
    on object identity, so two equal-but-distinct callables stay independent.
    """

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self._entries: Dict[ListenerToken, L] = {}
        self._log = log or logging.getLogger("lw_core.listeners")

    def add(self, listener: L) -> ListenerToken:
        if not callable(listener):
            raise TypeError(f"listener must be callable (got {listener!r})")
        token = ListenerToken(next(_token_ids))
        self._entries[token] = listener
        return token

    def remove(self, token_or_listener: Union[ListenerToken, L]) -> int:
        """Remove by token or by callback identity. Returns the number removed."""
        if isinstance(token_or_listener, ListenerToken):
            return 1 if self._entries.pop(token_or_listener, None) is not None else 0
        matches = [t for t, cb in self._entries.items() if cb is token_or_listener]
        for t in matches:
            del self._entries[t]
        return len(matches)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Tuple[ListenerToken, L]]:
        return iter(list(self._entries.items()))

    def notify(self, *args) -> None:
        # Snapshot the registrations so listeners may unsubscribe while being notified.
        listeners: List[L] = list(self._entries.values())
        for cb in listeners:
            try:
                cb(*args)
            except Exception:
                self._log.exception("Listener callback error (args=%r)", args)
