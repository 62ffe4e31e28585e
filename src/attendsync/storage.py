"""Durable key/value storage backends.

The engine treats storage as an opaque string store with last-write-wins
semantics per key.  Each piece of engine state lives under its own key and
is rewritten in full on every change.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Protocol

from attendsync.exceptions import StorageReadFailure

_logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class KeyValueStorage(Protocol):
    """Structural storage interface.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementations concrete.
    """

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryStorage:
    """Process-local storage; contents are lost when the object is dropped."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)


class JsonFileStorage:
    """One file per key inside *directory*.

    Writes go to a temporary file in the same directory which then replaces
    the target, so a crash mid-write leaves the previous value intact.
    """

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self._dir = Path(directory)
        self._dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self._dir / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError):
            _logger.warning("Could not read storage file %s", path, exc_info=True)
            return None

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        fd, tmp_name = tempfile.mkstemp(dir=self._dir, prefix=f".{path.stem}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise


def load_json(storage: KeyValueStorage, key: str) -> Any:
    """Read and JSON-decode the blob stored under *key*.

    Returns ``None`` when the key has never been written.

    Raises
    ------
    StorageReadFailure
        If the stored text is not valid JSON.
    """
    text = storage.get(key)
    if text is None or not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise StorageReadFailure(f"Stored value for {key!r} is not JSON: {text[:64]}", key=key) from exc


def dump_json(storage: KeyValueStorage, key: str, value: Any) -> None:
    storage.set(key, json.dumps(value, separators=(",", ":")))
