"""Errors raised while ingesting provider events.

None of these ever reach a webhook sender: the ingestor records them on the
IngestResult and acknowledges the delivery anyway.
"""


class IngestError(Exception):
    """Base class for provider event ingestion failures."""


class EventValidationError(IngestError):
    """The provider event is malformed or missing required fields."""


class UnresolvedPipelineError(IngestError):
    """No active pipeline matches the provider reference in the event."""

    def __init__(self, provider: str, native_ref):
        self.provider = provider
        self.native_ref = native_ref
        super().__init__(f"No pipeline found for {provider} reference {native_ref!r}")


class UnknownProviderError(IngestError):
    """The event names a provider with no registered driver."""
