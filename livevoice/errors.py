"""Exceptions raised by the session layer."""

DEFAULT_ACQUISITION_MESSAGE = "Could not start microphone."
DEFAULT_CONNECTION_MESSAGE = "A connection error occurred."
CONNECT_TIMEOUT_MESSAGE = "Connection timed out."


class LiveVoiceError(Exception):
    """Base class for livevoice errors."""


class AcquisitionError(LiveVoiceError):
    """Microphone access was denied or no input device is available."""


class TransportOpenError(LiveVoiceError):
    """The transport failed before the session was opened."""


class TransportRuntimeError(LiveVoiceError):
    """The transport failed during an established session."""
