"""Data models for the livevoice application."""

from .audio import AudioStats, CaptureFrame, MediaFrame, PlaybackChunk
from .events import TransportMessage
from .session import SessionHandle, SessionState, SessionStatus

__all__ = [
    "AudioStats",
    "CaptureFrame",
    "MediaFrame",
    "PlaybackChunk",
    "TransportMessage",
    "SessionHandle",
    "SessionState",
    "SessionStatus",
]
