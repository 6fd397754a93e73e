"""TTL cache for repository facts and impact analyses, optionally persisted to disk."""

from __future__ import annotations

import hashlib
import json
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

from ..logging import get_logger
from ..models import ImpactAnalysis, RepositoryFacts

logger = get_logger("stores.analysis_cache")

_CACHE_VERSION = 1

_LOADERS: Dict[str, Callable[[Mapping[str, Any]], Any]] = {
    "facts": RepositoryFacts.from_dict,
    "impact": ImpactAnalysis.from_dict,
}
_KINDS: Dict[type, str] = {RepositoryFacts: "facts", ImpactAnalysis: "impact"}


def normalize_repository(repository: str | Path) -> str:
    """Return a stable identity for a repository root."""
    text = str(repository).strip()
    if "://" in text:
        return text.rstrip("/")
    resolved = str(Path(text).expanduser().resolve())
    return resolved.rstrip(os.sep) or os.sep


def normalize_change(change_text: str | None) -> str:
    return " ".join((change_text or "").split()).lower()


def make_key(repository: str | Path, change_text: str | None = "", namespace: str = "facts") -> str:
    """Hash the normalized repository identity, change text and namespace into a key."""
    digest = hashlib.sha256()
    for part in (namespace, normalize_repository(repository), normalize_change(change_text)):
        digest.update(part.encode("utf-8"))
        digest.update(b"\0")
    return digest.hexdigest()


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    created_at: float


class AnalysisCache:
    """Keyed TTL store shared across runs.

    ``get`` ignores entries older than the TTL without evicting them; the next
    ``set`` for the key replaces the entry. When a ``path`` is given, entries whose
    values know how to serialize themselves are written by ``persist`` and read
    back on construction.
    """

    def __init__(
        self,
        ttl_seconds: float = 3600.0,
        path: Path | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ttl = ttl_seconds
        self._path = path
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._dirty = False
        if self._path is not None:
            self._load(self._path)

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def entry(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.created_at > self._ttl:
            logger.debug("Cache entry %s expired", key[:12])
            return None
        logger.debug("Cache hit for %s", key[:12])
        return entry.value

    def set(self, key: str, value: Any) -> CacheEntry:
        entry = CacheEntry(key=key, value=value, created_at=self._clock())
        self._entries[key] = entry
        self._dirty = True
        return entry

    def clear(self) -> None:
        self._entries.clear()
        self._dirty = True

    def persist(self) -> None:
        if not self._dirty or self._path is None:
            return
        serialised: Dict[str, Dict[str, Any]] = {}
        for key, entry in self._entries.items():
            kind = _KINDS.get(type(entry.value))
            if kind is None:
                continue
            serialised[key] = {
                "kind": kind,
                "created_at": entry.created_at,
                "value": entry.value.to_dict(),
            }
        payload = {"version": _CACHE_VERSION, "entries": serialised}
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        self._dirty = False

    # ------------------------------------------------------------------
    # Internal helpers

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable cache file %s: %s", path, exc)
            return
        if not isinstance(data, dict) or data.get("version") != _CACHE_VERSION:
            return
        entries = data.get("entries")
        if not isinstance(entries, dict):
            return
        for key, raw in entries.items():
            if not isinstance(key, str) or not isinstance(raw, dict):
                continue
            loader = _LOADERS.get(str(raw.get("kind")))
            created_at = raw.get("created_at")
            value = raw.get("value")
            if loader is None or not isinstance(created_at, (int, float)) or not isinstance(value, dict):
                continue
            try:
                restored = loader(value)
            except (KeyError, TypeError, ValueError) as exc:
                logger.debug("Dropping cache entry %s: %s", key[:12], exc)
                continue
            self._entries[key] = CacheEntry(key=key, value=restored, created_at=float(created_at))
        self._dirty = False


__all__ = ["AnalysisCache", "CacheEntry", "make_key", "normalize_change", "normalize_repository"]
