from __future__ import annotations

from typing import Mapping, Optional


class InMemoryPropertyStore:
    """
    Dict-backed PropertyStore for tests and throwaway runs.

    Lost on process exit, so it cannot resume across invocations by itself;
    tests simulate a restart by building a new engine over the same store.
    """

    def __init__(self, initial: Optional[Mapping[str, str]] = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str:
        return self._values.get(key, "")

    def set(self, key: str, value: str) -> None:
        if value == "":
            self._values.pop(key, None)
        else:
            self._values[key] = value

    def snapshot(self) -> dict[str, str]:
        return dict(self._values)
