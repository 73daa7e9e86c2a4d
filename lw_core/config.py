from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CollectionConfig:
    initial_size: int
    page_size: int
    ascending: bool = True
    fixed_item_positions: bool = False

    def __post_init__(self) -> None:
        if int(self.initial_size) < 0:
            raise ValueError(f"initial_size must be >= 0 (got {self.initial_size!r})")
        if int(self.page_size) <= 0:
            raise ValueError(f"page_size must be positive (got {self.page_size!r})")
        object.__setattr__(self, "initial_size", int(self.initial_size))
        object.__setattr__(self, "page_size", int(self.page_size))
        object.__setattr__(self, "ascending", bool(self.ascending))
        object.__setattr__(self, "fixed_item_positions", bool(self.fixed_item_positions))
