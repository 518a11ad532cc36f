"""Write-through JSON file store shared by the credential and settings stores.

WHY: Both per-user stores are "user id → record" maps that must survive a
restart. They differ only in the record shape, so the file handling
(load once, persist on every mutation) lives here once.

HOW: The whole mapping is held in memory and serialized to disk after
each mutation. Writes go to a sibling temp file that is then moved over
the target with os.replace, so a crash mid-write never leaves a truncated
file behind.

RULES:
- The file is read exactly once, at construction
- A missing file is created as {} immediately (parent dirs included)
- Every mutation persists before the mutating call returns
- A failed write leaves the in-memory map unchanged
- All access holds self._lock; slack-bolt runs listeners on a worker pool
- Load/persist errors (bad JSON, permissions) propagate to the caller
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Iterator

logger = logging.getLogger(__name__)


class JsonFileStore:
    """A process-wide "user id → JSON value" map persisted to one file."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._data: Dict[str, Any] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> Dict[str, Any]:
        if not self._path.exists():
            logger.info("Creating empty store at %s", self._path)
            self._write({})
            return {}

        with open(self._path, "r", encoding="utf-8") as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(
                "Store file {} must contain a JSON object, got {}".format(
                    self._path, type(data).__name__
                )
            )
        logger.info("Loaded %d entries from %s", len(data), self._path)
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self._path)

    # ------------------------------------------------------------------
    # Raw access (subclasses wrap these with typed methods)
    # ------------------------------------------------------------------

    def _get_raw(self, user_id: str) -> Any:
        with self._lock:
            return self._data.get(user_id)

    def _set_raw(self, user_id: str, value: Any) -> None:
        with self._lock:
            data = dict(self._data)
            data[user_id] = value
            self._write(data)
            self._data = data

    def _delete_raw(self, user_id: str) -> bool:
        with self._lock:
            if user_id not in self._data:
                return False
            data = dict(self._data)
            del data[user_id]
            self._write(data)
            self._data = data
            return True

    def __contains__(self, user_id: object) -> bool:
        with self._lock:
            return user_id in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._data))
