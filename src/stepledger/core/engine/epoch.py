from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, TypeAlias

from stepledger.core.engine.state import parse_int
from stepledger.storage.base import PropertyStore

# Returns the live epoch. Must never decrease across process lifetimes.
EpochSource: TypeAlias = Callable[[], int]


def fixed_epoch(value: int) -> EpochSource:
    if value < 0:
        raise ValueError("epoch must be >= 0")

    def _epoch() -> int:
        return value

    return _epoch


@dataclass(frozen=True, slots=True)
class PropertyEpoch:
    """
    Reads the live epoch from a property maintained by the environment
    (e.g. a reset counter written by the host application).

    Unset reads as epoch 0.
    """

    store: PropertyStore
    key: str

    def __call__(self) -> int:
        value = parse_int(self.store.get(self.key), key=self.key)
        return 0 if value is None else value
