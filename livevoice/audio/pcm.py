"""Linear PCM conversion between float samples and the service wire format."""

import logging

import numpy as np

from ..models.audio import MediaFrame

logger = logging.getLogger(__name__)

INT16_SCALE = 32768.0


class PcmCodec:
    """Converts float32 samples to 16-bit little-endian PCM and back."""

    def __init__(self, input_sample_rate: int = 16000, output_sample_rate: int = 24000,
                 channels: int = 1):
        self.input_sample_rate = input_sample_rate
        self.output_sample_rate = output_sample_rate
        self.channels = channels

    @property
    def mime_type(self) -> str:
        return f"audio/pcm;rate={self.input_sample_rate}"

    def encode(self, samples: np.ndarray) -> bytes:
        """Encode float samples in [-1, 1] as int16 little-endian bytes."""
        clipped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
        return (clipped * (INT16_SCALE - 1)).astype('<i2').tobytes()

    def create_media_frame(self, samples: np.ndarray) -> MediaFrame:
        return MediaFrame(data=self.encode(samples), mime_type=self.mime_type)

    def decode(self, payload: bytes) -> np.ndarray:
        """Decode int16 little-endian PCM into float32 samples.

        Interleaved multi-channel audio is down-mixed to mono, since the
        output graph plays a single channel. A trailing odd byte is dropped.
        """
        usable = len(payload) - (len(payload) % 2)
        if usable != len(payload):
            logger.debug(f"Dropping {len(payload) - usable} trailing byte(s) of PCM payload")
        samples = np.frombuffer(payload[:usable], dtype='<i2').astype(np.float32) / INT16_SCALE
        if self.channels > 1:
            frames = len(samples) // self.channels
            samples = samples[:frames * self.channels].reshape(frames, self.channels).mean(axis=1)
        return samples

    def duration_of(self, samples: np.ndarray) -> float:
        """Playback duration in seconds of decoded samples at the output rate."""
        return len(samples) / float(self.output_sample_rate)
