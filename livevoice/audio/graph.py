"""PyAudio-backed input and output audio graphs."""

import asyncio
import logging
import threading
from typing import Callable, List, Optional

import numpy as np
import pyaudio

from ..errors import AcquisitionError
from .analyser import SpectrumAnalyser

logger = logging.getLogger(__name__)

# Called on the PortAudio thread with (raw float32 bytes, frame count).
# Returning False ends the stream.
FrameTap = Callable[[bytes, int], bool]


class MicrophoneStream:
    """An opened, initially paused microphone stream."""

    def __init__(self, stream: pyaudio.Stream):
        self.stream = stream
        self.tap: Optional[FrameTap] = None
        self.is_live = True

    def _stream_callback(self, in_data, frame_count, time_info, status):
        if status:
            logger.debug(f"Microphone stream status flags: {status}")
        tap = self.tap
        if tap is None or in_data is None:
            return (None, pyaudio.paContinue)
        keep_going = tap(in_data, frame_count)
        return (None, pyaudio.paContinue if keep_going else pyaudio.paComplete)

    def start(self) -> None:
        if self.is_live:
            self.stream.start_stream()

    def stop(self) -> None:
        """Stop and release the stream. Safe to call more than once."""
        if not self.is_live:
            return
        self.is_live = False
        self.tap = None
        try:
            if self.stream.is_active():
                self.stream.stop_stream()
        finally:
            self.stream.close()
        logger.info("Microphone stream stopped")


class InputAudioGraph:
    """Owns the PyAudio instance used for microphone capture."""

    def __init__(self, sample_rate: int = 16000, frame_size: int = 4096, channels: int = 1):
        self.sample_rate = sample_rate
        self.frame_size = frame_size
        self.channels = channels
        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None

    def open_microphone(self) -> MicrophoneStream:
        """Acquire the default input device.

        Blocking; the session controller runs it in an executor.

        Raises:
            AcquisitionError: when no input device can be opened
        """
        try:
            if self.pyaudio_instance is None:
                self.pyaudio_instance = pyaudio.PyAudio()
            microphone = MicrophoneStream(stream=None)
            microphone.stream = self.pyaudio_instance.open(
                format=pyaudio.paFloat32,
                channels=self.channels,
                rate=self.sample_rate,
                input=True,
                frames_per_buffer=self.frame_size,
                stream_callback=microphone._stream_callback,
                start=False,
            )
        except (OSError, ValueError) as e:
            raise AcquisitionError(f"Could not open microphone: {e}") from e

        logger.info(f"Microphone opened: {self.sample_rate}Hz, "
                    f"{self.frame_size} samples/frame")
        return microphone

    def close(self) -> None:
        if self.pyaudio_instance:
            self.pyaudio_instance.terminate()
            self.pyaudio_instance = None
            logger.debug("Input audio graph closed")


class PlaybackSource:
    """One decoded buffer placed on the output timeline.

    Sources are single-use: ``start`` once, then either they end naturally
    or ``stop`` removes them. ``on_ended`` fires exactly once either way.
    """

    def __init__(self, graph: "OutputAudioGraph", samples: np.ndarray):
        self.graph = graph
        self.samples = np.asarray(samples, dtype=np.float32)
        self.on_ended: Optional[Callable[["PlaybackSource"], None]] = None
        self.start_time: Optional[float] = None
        self.start_frame = 0
        self.started = False
        self.ended = False

    @property
    def duration(self) -> float:
        return len(self.samples) / float(self.graph.sample_rate)

    @property
    def end_frame(self) -> int:
        return self.start_frame + len(self.samples)

    def start(self, when: float = 0.0) -> None:
        """Place the source at ``when`` on the output clock.

        A ``when`` the clock has already passed starts the source at the
        next rendered frame, from its first sample. ``start_time`` holds
        the time actually used.
        """
        if self.started:
            raise RuntimeError("PlaybackSource can only be started once")
        self.started = True
        self.start_time = when
        self.start_frame = int(round(when * self.graph.sample_rate))
        self.graph._add_source(self)

    def stop(self) -> None:
        """Stop playback now. A no-op for sources that already ended."""
        if not self.started or self.ended:
            return
        if self.graph._remove_source(self):
            self.graph._dispatch_ended(self)


class OutputAudioGraph:
    """Output stream with a sample-accurate clock and a mixer of sources.

    The PortAudio callback thread renders blocks; everything else runs on
    the asyncio loop. Both sides meet only in ``_sources`` under ``lock``.
    """

    def __init__(self,
                 sample_rate: int = 24000,
                 buffer_size: int = 1024,
                 volume: float = 1.0,
                 analyser: Optional[SpectrumAnalyser] = None,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        self.sample_rate = sample_rate
        self.buffer_size = buffer_size
        self.volume = volume
        self.analyser = analyser or SpectrumAnalyser()
        self.loop = loop

        self.lock = threading.Lock()
        self._sources: List[PlaybackSource] = []
        self.frames_rendered = 0

        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream: Optional[pyaudio.Stream] = None
        self.is_closed = False

    @property
    def current_time(self) -> float:
        """Output clock in seconds; advances as blocks are rendered."""
        return self.frames_rendered / float(self.sample_rate)

    @property
    def active_source_count(self) -> int:
        with self.lock:
            return len(self._sources)

    def open(self) -> None:
        """Open and start the output stream."""
        self.pyaudio_instance = pyaudio.PyAudio()
        self.stream = self.pyaudio_instance.open(
            format=pyaudio.paFloat32,
            channels=1,
            rate=self.sample_rate,
            output=True,
            frames_per_buffer=self.buffer_size,
            stream_callback=self._stream_callback,
        )
        logger.info(f"Output stream opened: {self.sample_rate}Hz, "
                    f"{self.buffer_size} samples/buffer")

    def create_source(self, samples: np.ndarray) -> PlaybackSource:
        return PlaybackSource(self, samples)

    def _add_source(self, source: PlaybackSource) -> int:
        """Register a started source. Returns how many frames it was pushed back."""
        with self.lock:
            shift = max(0, self.frames_rendered - source.start_frame)
            if shift:
                # The render thread moved past the requested start.
                source.start_frame += shift
                source.start_time = source.start_frame / float(self.sample_rate)
            self._sources.append(source)
        return shift

    def _remove_source(self, source: PlaybackSource) -> bool:
        with self.lock:
            if source.ended:
                return False
            source.ended = True
            self._sources.remove(source)
            return True

    def _dispatch_ended(self, source: PlaybackSource) -> None:
        callback = source.on_ended
        if callback is None:
            return
        if self.loop is not None and not self.loop.is_closed():
            self.loop.call_soon_threadsafe(callback, source)
        elif self.loop is None:
            callback(source)

    def _stream_callback(self, in_data, frame_count, time_info, status):
        if status:
            logger.debug(f"Output stream status flags: {status}")
        block = self.render(frame_count)
        return (block.tobytes(), pyaudio.paContinue)

    def render(self, frame_count: int) -> np.ndarray:
        """Mix the next ``frame_count`` frames and advance the clock."""
        out = np.zeros(frame_count, dtype=np.float32)
        finished = []
        with self.lock:
            block_start = self.frames_rendered
            block_end = block_start + frame_count
            for source in self._sources:
                lo = max(source.start_frame, block_start)
                hi = min(source.end_frame, block_end)
                if hi > lo:
                    offset = lo - source.start_frame
                    out[lo - block_start:hi - block_start] += source.samples[offset:offset + hi - lo]
                if source.end_frame <= block_end:
                    finished.append(source)
            for source in finished:
                source.ended = True
                self._sources.remove(source)
            self.frames_rendered = block_end

        if self.volume != 1.0:
            out *= self.volume
        self.analyser.write(out)

        for source in finished:
            self._dispatch_ended(source)
        return out

    def close(self) -> None:
        """Stop output and release the device. Safe to call more than once."""
        if self.is_closed:
            return
        self.is_closed = True
        with self.lock:
            for source in self._sources:
                source.ended = True
            self._sources.clear()
        try:
            if self.stream:
                if self.stream.is_active():
                    self.stream.stop_stream()
                self.stream.close()
        finally:
            self.stream = None
            if self.pyaudio_instance:
                self.pyaudio_instance.terminate()
                self.pyaudio_instance = None
        self.analyser.reset()
        logger.debug("Output audio graph closed")
