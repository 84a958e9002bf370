from __future__ import annotations

from typing import Protocol


class PropertyStore(Protocol):
    """
    Namespaced string key/value store.

    - get returns "" for an unset key
    - set("") is equivalent to unsetting the key
    - only single-key read/write guarantees; no transactions
    """

    def get(self, key: str) -> str:
        ...

    def set(self, key: str, value: str) -> None:
        ...
