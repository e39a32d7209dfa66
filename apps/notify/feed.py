"""Recent-notification feed.

A bounded ring buffer of the notifications this process has sent, for the
dashboard's notification panel. Entries are evicted when the buffer is full
(oldest first) and when they are older than the configured age. The buffer
is owned by the notify AppConfig; callers reach it through get_feed().

Public API:
- FeedEntry
- RecentNotificationFeed
- get_feed
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any

from django.apps import apps
from django.utils import timezone


@dataclass(frozen=True)
class FeedEntry:
    kind: str  # "alert" or "test"
    title: str
    message: str
    severity: str
    created_at: datetime
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        entry = asdict(self)
        entry["created_at"] = self.created_at.isoformat()
        return entry


class RecentNotificationFeed:
    """Thread-safe ring buffer with count and age eviction."""

    def __init__(self, max_items: int = 200, max_age_hours: float = 24):
        if max_items < 1:
            raise ValueError("max_items must be at least 1")
        self.max_items = max_items
        self.max_age = timedelta(hours=max_age_hours)
        self._entries: deque[FeedEntry] = deque(maxlen=max_items)
        self._lock = threading.Lock()

    def push(
        self,
        kind: str,
        title: str,
        message: str,
        severity: str = "medium",
        data: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> FeedEntry:
        now = now or timezone.now()
        entry = FeedEntry(
            kind=kind,
            title=title,
            message=message,
            severity=severity,
            created_at=now,
            data=dict(data or {}),
        )
        with self._lock:
            self._entries.append(entry)
            self._evict(now)
        return entry

    def recent(
        self,
        limit: int | None = None,
        kind: str | None = None,
        now: datetime | None = None,
    ) -> list[FeedEntry]:
        """Entries newest first, optionally filtered by kind."""
        with self._lock:
            self._evict(now or timezone.now())
            entries = [e for e in reversed(self._entries) if kind is None or e.kind == kind]
        if limit is not None:
            entries = entries[:limit]
        return entries

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _evict(self, now: datetime) -> None:
        cutoff = now - self.max_age
        while self._entries and self._entries[0].created_at < cutoff:
            self._entries.popleft()


def get_feed() -> RecentNotificationFeed:
    return apps.get_app_config("notify").feed
