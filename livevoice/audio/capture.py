"""Microphone capture line: frame tap, PCM encoding and outbound sends."""

import time
import asyncio
import logging
from typing import Optional, Callable, Set

import numpy as np

from ..models.audio import AudioStats, CaptureFrame
from .graph import MicrophoneStream
from .pcm import PcmCodec


logger = logging.getLogger(__name__)


class AudioCaptureLine:
    """Turns the microphone stream into a sequence of outbound media sends.

    The frame tap fires on the PortAudio thread; each frame is handed to
    the asyncio loop, where ``on_frame`` decides whether to send it.
    """

    def __init__(
        self,
        microphone: MicrophoneStream,
        codec: PcmCodec,
        loop: asyncio.AbstractEventLoop,
        stats: Optional[AudioStats] = None,
    ):
        """Initialize the capture line.

        Args:
            microphone: Opened (paused) microphone stream
            codec: Encoder for the wire PCM format
            loop: Event loop that owns the session state
            stats: Shared session statistics
        """
        self.microphone = microphone
        self.codec = codec
        self.loop = loop
        self.stats = stats or AudioStats()

        self.on_frame: Optional[Callable[[CaptureFrame], None]] = None
        self.is_capturing = False
        self.sequence_number = 0
        self.send_tasks: Set[asyncio.Task] = set()

    def start(self, on_frame: Callable[[CaptureFrame], None]) -> None:
        """Install the frame tap and start the microphone."""
        if self.is_capturing:
            logger.warning("Capture already in progress")
            return

        self.on_frame = on_frame
        self.sequence_number = 0
        self.microphone.tap = self._tap
        self.microphone.start()
        self.is_capturing = True
        logger.info("Audio capture started")

    def _tap(self, in_data: bytes, frame_count: int) -> bool:
        # PortAudio thread: copy out of the driver buffer, then hop to the loop.
        samples = np.frombuffer(in_data, dtype=np.float32).copy()
        self.sequence_number += 1
        frame = CaptureFrame(
            samples=samples,
            sample_rate=self.codec.input_sample_rate,
            sequence_number=self.sequence_number,
            timestamp=time.time(),
        )
        on_frame = self.on_frame
        if on_frame is None:
            return False
        try:
            self.loop.call_soon_threadsafe(on_frame, frame)
        except RuntimeError:
            # Loop already closed.
            return False
        return True

    def send_frame(self, frame: CaptureFrame, connection: "asyncio.Future") -> "asyncio.Task":
        """Encode one frame and submit it to the transport.

        At most once per frame: a failed send is logged and the frame dropped.
        """
        self.stats.frames_captured += 1
        media = self.codec.create_media_frame(frame.samples)
        task = self.loop.create_task(self._send(frame.sequence_number, media, connection))
        self.send_tasks.add(task)
        task.add_done_callback(self.send_tasks.discard)
        return task

    async def _send(self, sequence_number, media, connection) -> None:
        try:
            session = await connection
            await session.send(media)
            self.stats.frames_sent += 1
        except Exception as e:
            self.stats.frames_dropped += 1
            logger.error(f"Failed to send audio frame {sequence_number}: {e}")

    def stop(self) -> None:
        """Stop capturing and release the microphone. Idempotent."""
        self.on_frame = None
        self.microphone.stop()
        if self.is_capturing:
            self.is_capturing = False
            logger.info(f"Audio capture stopped. Frames captured: {self.stats.frames_captured}")
