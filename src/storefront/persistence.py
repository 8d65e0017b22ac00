"""Durable local records, keyed by a fixed name.

The local store survives process restarts: whatever was last written under a
key is what the next process reads back.
"""

import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class LocalStore(ABC):
    @abstractmethod
    def read(self, key: str) -> Any | None:
        """Return the JSON value stored under ``key``, or None."""

    @abstractmethod
    def write(self, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``. Missing keys are ignored."""


class MemoryStore(LocalStore):
    """Process-local store, for tests and throwaway sessions."""

    def __init__(self):
        self._records: dict[str, str] = {}

    def read(self, key):
        raw = self._records.get(key)
        return None if raw is None else json.loads(raw)

    def write(self, key, value):
        # Round-trip through JSON so callers get the same types a file would give
        self._records[key] = json.dumps(value)

    def delete(self, key):
        self._records.pop(key, None)


class JsonFileStore(LocalStore):
    """One JSON file per key inside ``directory``.

    Writes go to a temporary file in the same directory that is then renamed
    over the target, so a crash mid-write leaves the previous record intact.
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def read(self, key):
        path = self._path(key)
        try:
            with path.open(encoding="utf-8") as fh:
                return json.load(fh)
        except FileNotFoundError:
            return None
        except json.JSONDecodeError:
            logger.error("Unreadable local record", key=key, path=str(path))
            raise

    def write(self, key, value):
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(value, fh)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self._path(key))
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def delete(self, key):
        self._path(key).unlink(missing_ok=True)
