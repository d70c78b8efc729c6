"""Periodic volume sampling of the output path."""

import asyncio
import logging
from typing import Callable, Optional

import numpy as np

from .analyser import SpectrumAnalyser

logger = logging.getLogger(__name__)


class VisualizerSampler:
    """Cancellable periodic task that reports the output volume.

    Each tick reads the analyser's byte spectrum, averages it and reports
    the mean scaled to [0, 1]. Samples are raw; smoothing is up to the
    consumer.
    """

    def __init__(self, analyser: SpectrumAnalyser, report: Callable[[float], None],
                 refresh_hz: float = 60.0):
        if refresh_hz <= 0:
            raise ValueError(f"refresh_hz must be positive, got {refresh_hz}")
        self.analyser = analyser
        self.report = report
        self.interval = 1.0 / refresh_hz
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sample(self) -> float:
        data = self.analyser.get_byte_frequency_data()
        if len(data) == 0:
            return 0.0
        return float(np.mean(data)) / 255.0

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.ensure_future(self._run())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while True:
            level = self.sample()
            try:
                self.report(level)
            except Exception as e:
                logger.error(f"Volume reporter failed: {e}", exc_info=True)
            await asyncio.sleep(self.interval)
