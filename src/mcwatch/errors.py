"""Exceptions raised by mcwatch."""


class MonitorError(Exception):
    """Base exception for all mcwatch errors."""
    pass


class InvalidConfiguration(MonitorError, ValueError):
    """Raised when monitor settings are rejected before the engine starts."""
    pass


class CaptureError(MonitorError, RuntimeError):
    """Raised when a capture device or capture file cannot be used."""
    pass


class ClockRegressionError(MonitorError, AssertionError):
    """Raised when eviction runs with a `now` earlier than a recorded last_seen.

    This is an invariant failure of the caller and is never handled inside
    the engine.
    """
    pass
