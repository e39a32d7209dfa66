"""Base driver and event types for CI/CD provider webhooks.

Each provider has its own ProviderEvent subclass carrying the status fields in
the provider's own vocabulary. `to_canonical()` maps them onto BuildStatus;
the ingestor never inspects provider-specific fields itself.

Public API:
- ProviderEvent
- BaseProviderDriver
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from datetime import timezone as dt_tz
from typing import Any

from django.utils.dateparse import parse_datetime

from apps.pipelines.exceptions import EventValidationError


@dataclass
class ProviderEvent(ABC):
    """Provider-independent view of a single build/run event."""

    # Required fields
    native_ref: str  # repository / project id / job name
    external_id: str

    # Optional fields with defaults
    branch: str = ""
    commit_hash: str = ""
    commit_message: str = ""
    author: str = ""
    web_url: str = ""
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration: float | None = None  # seconds, when the provider reports it
    raw_payload: dict[str, Any] = field(default_factory=dict)

    provider = "base"

    @abstractmethod
    def to_canonical(self) -> str:
        """Return the canonical BuildStatus value for this event."""


class BaseProviderDriver(ABC):
    """Abstract base class for provider webhook drivers."""

    name: str = "base"

    @abstractmethod
    def parse(self, payload: dict[str, Any], event_type: str | None = None) -> list[ProviderEvent]:
        """Parse a webhook body into provider events.

        Args:
            payload: Decoded JSON body.
            event_type: Provider event name from the delivery headers, if any.

        Raises:
            EventValidationError: If required fields are missing.
        """

    def _require(self, data: Any, key: str, context: str = "payload") -> Any:
        if not isinstance(data, dict):
            raise EventValidationError(f"{self.name}: {context} must be an object")
        value = data.get(key)
        if value is None or value == "":
            raise EventValidationError(f"{self.name}: missing required field '{context}.{key}'")
        return value

    def _require_object(self, data: Any, key: str, context: str = "payload") -> dict[str, Any]:
        value = self._require(data, key, context)
        if not isinstance(value, dict):
            raise EventValidationError(f"{self.name}: field '{context}.{key}' must be an object")
        return value

    def _object(self, data: dict[str, Any], key: str) -> dict[str, Any]:
        value = data.get(key)
        return value if isinstance(value, dict) else {}

    def _synthesize_push_id(self, commit_hash: str) -> str:
        """Stable external id for push events, which carry no run id."""
        return f"push-{commit_hash[:8]}"

    def _strip_ref(self, ref: str | None) -> str:
        if not ref:
            return ""
        for prefix in ("refs/heads/", "refs/tags/"):
            if ref.startswith(prefix):
                return ref[len(prefix):]
        return ref

    def _parse_timestamp(self, timestamp: Any) -> datetime | None:
        """Parse ISO-8601 strings and epoch seconds/milliseconds; None when absent."""
        if timestamp in (None, ""):
            return None

        if isinstance(timestamp, datetime):
            return timestamp

        if isinstance(timestamp, (int, float)):
            try:
                # Handle milliseconds
                if timestamp > 1e12:
                    timestamp = timestamp / 1000
                return datetime.fromtimestamp(timestamp, tz=dt_tz.utc)
            except (ValueError, OSError, OverflowError):
                return None

        if isinstance(timestamp, str):
            # GitLab: "2024-01-08 10:00:00 UTC"
            if timestamp.endswith(" UTC"):
                timestamp = timestamp[: -len(" UTC")] + "+00:00"
            try:
                parsed = parse_datetime(timestamp)
                if parsed is None:
                    parsed = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
            except (ValueError, TypeError):
                return None
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=dt_tz.utc)
            return parsed

        return None
