"""Last viewed issue store.

Tools that show a single issue record its key here, and tools taking a key
fall back to it when called without one. The store is passed in by the
caller, so each server (or test) owns its own.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import structlog

logger = structlog.get_logger()


class LastIssueStore(Protocol):
    """Remembers the most recently viewed issue key."""

    def get(self) -> str | None: ...

    def set(self, key: str) -> None: ...


class MemoryLastIssueStore:
    """In-process store; forgotten when the process exits."""

    def __init__(self, key: str | None = None) -> None:
        self._key = key

    def get(self) -> str | None:
        return self._key

    def set(self, key: str) -> None:
        self._key = key


class JsonFileLastIssueStore:
    """Store persisted as a small JSON document.

    File contents::

        {"issueKey": "PROJ-123", "timestamp": "2026-01-01T00:00:00+00:00"}

    An unreadable or malformed file reads as "no issue".
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def get(self) -> str | None:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("last_issue_unreadable", path=str(self.path), error=str(e))
            return None
        key = data.get("issueKey") if isinstance(data, dict) else None
        return key if isinstance(key, str) and key else None

    def set(self, key: str) -> None:
        payload = {"issueKey": key, "timestamp": datetime.now(timezone.utc).isoformat()}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload), encoding="utf-8")
        except OSError as e:
            logger.warning("last_issue_not_saved", path=str(self.path), error=str(e))


def resolve_issue_key(key: str | None, store: LastIssueStore) -> str | None:
    """Return ``key`` if given, else the last viewed key (if any)."""
    if key and key.strip():
        return key.strip().upper()
    return store.get()
