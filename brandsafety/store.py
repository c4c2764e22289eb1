"""
brandsafety/store.py
=====================
Local persistence — Brand Safety

Responsibility:
    - Define the injected key→value store contract (get / set / keys)
    - Provide an in-memory store and a JSON-file store
    - Wrap a store as a classification cache (evidence URL → Classification)
    - Wrap a store as a result cache (creator key → RiskOutcome + timestamp)
      with a freshness check

Concurrency contract:
    Reads and writes are last-writer-wins. Concurrent rescans of the SAME
    creator are not guarded; callers that need a consistent entry must
    serialize rescans per creator key. The storage layer enforces no TTL;
    freshness is decided by ResultCache.is_fresh().

This module does NOT:
    - Perform network I/O
    - Decide pipeline flow
"""

import json
import logging
import os
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Protocol

from brandsafety.config import FRESHNESS_DAYS
from brandsafety.models import Classification, RiskOutcome

logger = logging.getLogger("brandsafety.store")

DAY_SECONDS: int = 24 * 60 * 60


# =====================================================================
# Store contract + implementations
# =====================================================================


class KeyValueStore(Protocol):
    """Minimal store contract consumed by the pipeline."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...

    def keys(self) -> Iterable[str]: ...


class InMemoryStore:
    """Process-local dict store. Values must be JSON-compatible."""

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Any | None:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def keys(self) -> Iterable[str]:
        return list(self._data.keys())


class JsonFileStore(InMemoryStore):
    """
    Dict store mirrored to a JSON file on every write.

    A missing or unreadable file starts an empty store; write failures are
    logged and leave the in-memory copy authoritative for this process.
    """

    def __init__(self, path: str | os.PathLike[str]):
        self.path = Path(path)
        super().__init__(self._load())

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Failed to load store %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.error("Store %s does not contain a JSON object; ignoring.", self.path)
            return {}
        return data

    def set(self, key: str, value: Any) -> None:
        super().set(key, value)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            with tmp.open("w", encoding="utf-8") as f:
                json.dump(self._data, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except OSError as exc:
            logger.error("Failed to persist store %s: %s", self.path, exc)


def default_store() -> KeyValueStore:
    """JSON-file store when BRANDSAFETY_STORE_PATH is set, else in-memory."""
    path = os.getenv("BRANDSAFETY_STORE_PATH")
    if path:
        return JsonFileStore(path)
    return InMemoryStore()


# =====================================================================
# Typed caches over a store
# =====================================================================


class ClassificationCache:
    """Evidence URL → Classification. Hits are authoritative; no TTL."""

    PREFIX = "classification:"

    def __init__(self, store: KeyValueStore):
        self._store = store

    def get(self, url: str) -> Classification | None:
        raw = self._store.get(self.PREFIX + url)
        if not raw:
            return None
        try:
            return Classification.from_dict(raw)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Ignoring malformed cached classification for %s: %s", url, exc)
            return None

    def set(self, url: str, classification: Classification) -> None:
        self._store.set(self.PREFIX + url, classification.to_dict())


class ResultCache:
    """Creator key → latest RiskOutcome. A rescan overwrites the entry."""

    PREFIX = "result:"

    def __init__(self, store: KeyValueStore):
        self._store = store

    @staticmethod
    def normalise_key(creator_key: str) -> str:
        return creator_key.strip()

    def _entry(self, creator_key: str) -> dict[str, Any] | None:
        entry = self._store.get(self.PREFIX + self.normalise_key(creator_key))
        if not isinstance(entry, dict) or "data" not in entry:
            return None
        return entry

    def get(self, creator_key: str) -> RiskOutcome | None:
        entry = self._entry(creator_key)
        if entry is None:
            return None
        return RiskOutcome.from_dict(entry["data"])

    def set(self, creator_key: str, outcome: RiskOutcome, now: float | None = None) -> None:
        self._store.set(
            self.PREFIX + self.normalise_key(creator_key),
            {"timestamp": time.time() if now is None else now, "data": outcome.to_dict()},
        )

    def last_scanned(self, creator_key: str) -> datetime | None:
        entry = self._entry(creator_key)
        if entry is None:
            return None
        return datetime.fromtimestamp(entry["timestamp"], tz=timezone.utc)

    def is_fresh(
        self,
        creator_key: str,
        days: int = FRESHNESS_DAYS,
        now: float | None = None,
    ) -> bool:
        entry = self._entry(creator_key)
        if entry is None:
            return False
        current = time.time() if now is None else now
        return current - entry["timestamp"] <= days * DAY_SECONDS

    def all(self) -> list[RiskOutcome]:
        outcomes: list[RiskOutcome] = []
        for key in self._store.keys():
            if key.startswith(self.PREFIX):
                entry = self._store.get(key)
                if isinstance(entry, dict) and "data" in entry:
                    outcomes.append(RiskOutcome.from_dict(entry["data"]))
        return outcomes
