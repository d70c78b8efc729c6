"""Session transport module for livevoice."""

from .base import AbstractSessionTransport, TransportCallbacks, TransportConnection
from .gemini import GeminiLiveConnection, GeminiLiveTransport

__all__ = [
    "AbstractSessionTransport",
    "TransportCallbacks",
    "TransportConnection",
    "GeminiLiveConnection",
    "GeminiLiveTransport",
]
