"""Audio-related data models."""

from dataclasses import dataclass
from typing import Any, Optional

import numpy as np


@dataclass
class AudioStats:
    """Streaming statistics for one session."""
    frames_captured: int = 0
    frames_sent: int = 0
    frames_dropped: int = 0
    chunks_scheduled: int = 0
    chunks_interrupted: int = 0


@dataclass
class CaptureFrame:
    """One fixed-size buffer of microphone samples."""
    samples: np.ndarray  # float32, normalized to [-1, 1]
    sample_rate: int
    sequence_number: int
    timestamp: float


@dataclass
class MediaFrame:
    """Outbound media unit sent to the voice service."""
    data: bytes
    mime_type: str


@dataclass
class PlaybackChunk:
    """A decoded inbound audio buffer and its place on the output timeline."""
    samples: np.ndarray
    duration: float
    start_time: float
    source: Optional[Any] = None
