from __future__ import annotations


class RelayError(Exception):
    """Base class for errors raised by the relay."""


class ConfigurationError(RelayError):
    """Startup configuration is unusable (e.g. an empty credential pool)."""


class UpstreamError(RelayError):
    """The chat provider failed while producing a turn."""


class DeadlineExceeded(RelayError):
    def __init__(self, seconds: float) -> None:
        super().__init__(f"turn timed out after {seconds:g}s")
        self.seconds = seconds
