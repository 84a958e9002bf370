from __future__ import annotations

import os
import tempfile
from pathlib import Path

import orjson
import structlog
from filelock import FileLock

log = structlog.get_logger()


class JsonFilePropertyStore:
    """
    Durable PropertyStore backed by a single JSON object on disk.

    Scripts and the operator API share the file, each through its own store
    instance, possibly from different processes:
      - every get re-reads the file, so out-of-band edits are seen at once
      - every set holds `<file>.lock` across load / modify / replace, so a
        writer never restores another writer's stale keys
      - each write goes to its own temp file, then replaces the original
    """

    def __init__(self, *, path: Path, fsync: bool = True, lock_timeout: float = 10.0) -> None:
        self._path = path
        self._fsync = fsync
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = FileLock(str(self._path) + ".lock", timeout=lock_timeout)

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> str:
        with self._lock:
            return self._load().get(key, "")

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"property values must be str, got {type(value).__name__}")

        with self._lock:
            data = self._load()
            if value == "":
                data.pop(key, None)
            else:
                data[key] = value
            self._write_atomic(data)

        log.debug("store.set", path=str(self._path), key=key, value=value)

    def snapshot(self) -> dict[str, str]:
        with self._lock:
            return self._load()

    # ---------------- Internals ----------------

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        raw = self._path.read_bytes()
        if not raw.strip():
            return {}
        data = orjson.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"property file must hold a JSON object: {self._path}")
        return {str(k): str(v) for k, v in data.items()}

    def _write_atomic(self, data: dict[str, str]) -> None:
        payload = orjson.dumps(data, option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS) + b"\n"
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=self._path.name + ".", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(payload)
                fh.flush()
                if self._fsync:
                    os.fsync(fh.fileno())
            os.replace(tmp, self._path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
