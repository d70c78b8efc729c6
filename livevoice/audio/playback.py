"""Gapless, interruptible playback of inbound audio chunks."""

import logging
from typing import Optional, Set

from ..models.audio import AudioStats, PlaybackChunk
from .graph import OutputAudioGraph, PlaybackSource
from .pcm import PcmCodec

logger = logging.getLogger(__name__)


class PlaybackScheduler:
    """Schedules decoded chunks back-to-back on the output clock.

    Chunks are placed at a running ``next_start_time`` rather than played
    on arrival, so bursty message delivery still yields continuous audio.
    """

    def __init__(self, output_graph: OutputAudioGraph, codec: PcmCodec,
                 stats: Optional[AudioStats] = None):
        self.output_graph = output_graph
        self.codec = codec
        self.stats = stats or AudioStats()
        self.next_start_time = 0.0
        self.pending: Set[PlaybackSource] = set()

    def enqueue(self, payload: bytes) -> Optional[PlaybackChunk]:
        """Decode one inbound payload and schedule it after the previous chunk.

        Returns:
            The scheduled chunk, or None for an empty payload
        """
        if not payload:
            return None
        samples = self.codec.decode(payload)
        if len(samples) == 0:
            return None

        self.next_start_time = max(self.next_start_time, self.output_graph.current_time)

        source = self.output_graph.create_source(samples)
        source.on_ended = self._on_source_ended
        source.start(self.next_start_time)
        if source.start_time > self.next_start_time:
            logger.debug(f"Chunk start pushed back to {source.start_time:.3f}s by the output clock")
            self.next_start_time = source.start_time
        chunk = PlaybackChunk(
            samples=samples,
            duration=source.duration,
            start_time=self.next_start_time,
            source=source,
        )

        self.next_start_time += source.duration
        self.pending.add(source)
        self.stats.chunks_scheduled += 1
        logger.debug(f"Scheduled {chunk.duration:.3f}s chunk at {chunk.start_time:.3f}s, "
                     f"{len(self.pending)} pending")
        return chunk

    def _on_source_ended(self, source: PlaybackSource) -> None:
        self.pending.discard(source)

    def _stop_sources(self) -> int:
        count = len(self.pending)
        for source in list(self.pending):
            source.stop()
        self.pending.clear()
        return count

    def interrupt(self) -> None:
        """Barge-in: cut all queued audio and restart the timeline at now."""
        stopped = self._stop_sources()
        self.stats.chunks_interrupted += stopped
        self.next_start_time = self.output_graph.current_time
        logger.info(f"Playback interrupted, {stopped} chunk(s) dropped")

    def stop_all(self) -> None:
        """Stop everything for teardown and reset the schedule."""
        self._stop_sources()
        self.next_start_time = 0.0
