from __future__ import annotations

import os
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import IO, Any, Iterator, Optional

import orjson

from stepledger.core.events.base import Event


class JsonlEventStore:
    """
    Append-only audit log of engine events, one JSON object per line.

    Lines are written whole and flushed immediately, so a crash loses at most
    the event being written. Resumption never reads this file; the property
    store is the only source of truth for progress.
    """

    def __init__(self, *, path: Path, fsync: bool = True) -> None:
        self._path = path
        self._fsync = fsync
        self._fh: Optional[IO[bytes]] = None
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def closed(self) -> bool:
        return self._fh is None

    def __enter__(self) -> "JsonlEventStore":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def append(self, event: Event) -> None:
        if self._fh is None:
            self._fh = self._path.open("ab")

        self._fh.write(orjson.dumps(event_to_dict(event), option=orjson.OPT_SORT_KEYS) + b"\n")
        self._fh.flush()
        if self._fsync:
            os.fsync(self._fh.fileno())

    def close(self) -> None:
        if self._fh is None:
            return
        fh, self._fh = self._fh, None
        fh.close()

    def iter_events(self) -> Iterator[dict[str, Any]]:
        if not self._path.exists():
            return
        with self._path.open("rb") as fh:
            for line in fh:
                if line.strip():
                    yield orjson.loads(line)


def event_to_dict(event: Event) -> dict[str, Any]:
    d = asdict(event) if is_dataclass(event) else dict(vars(event))
    # ClassVar, skipped by asdict()
    d["event_type"] = event.event_type
    d["event_id"] = str(event.event_id)
    d["timestamp_utc"] = event.timestamp_utc.isoformat()
    return d
