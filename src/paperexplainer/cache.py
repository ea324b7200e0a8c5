"""Paper cache keyed by the stable paper identifier."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

from .exceptions import CacheCorruptedError
from .models import Paper

logger = logging.getLogger(__name__)


class PaperCache(Protocol):
    def get(self, key: str) -> Paper | None:  # pragma: no cover - structural protocol
        """Return the cached paper or ``None``."""

    def put(self, key: str, paper: Paper) -> None:  # pragma: no cover - structural protocol
        """Insert or overwrite the paper stored under ``key``."""


def serialize_paper(paper: Paper) -> str:
    return json.dumps(paper.to_dict(), ensure_ascii=False, indent=2)


def deserialize_paper(raw: str) -> Paper:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise CacheCorruptedError(f"Cached paper is not valid JSON: {exc}") from exc
    return Paper.from_dict(payload)


class InMemoryCache:
    """Process-local cache; values are stored serialized so reads never share state."""

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}
        self._lock = threading.Lock()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def get(self, key: str) -> Paper | None:
        with self._lock:
            raw = self._entries.get(key)
        if raw is None:
            return None
        return deserialize_paper(raw)

    def put(self, key: str, paper: Paper) -> None:
        raw = serialize_paper(paper)
        with self._lock:
            self._entries[key] = raw


class JsonFileCache:
    """One JSON document per paper under ``cache_dir``.

    Writes go to a temporary file that replaces the target, so readers see
    either the old or the new document and concurrent writers end up with the
    last one.
    """

    def __init__(self, cache_dir: Path) -> None:
        self.cache_dir = cache_dir
        self._write_lock = threading.Lock()

    def path_for(self, key: str) -> Path:
        return self.cache_dir / f"{quote(key, safe='')}.json"

    def get(self, key: str) -> Paper | None:
        path = self.path_for(key)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

        try:
            return deserialize_paper(raw)
        except CacheCorruptedError as exc:
            logger.warning("Ignoring corrupt cache entry %s: %s", path, exc)
            return None

    def put(self, key: str, paper: Paper) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        raw = serialize_paper(paper)

        with self._write_lock:
            fd, tmp_name = tempfile.mkstemp(
                dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fp:
                    fp.write(raw)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
