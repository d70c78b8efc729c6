"""Unit tests for the spectrum analyser and the volume sampler."""

import asyncio
import pytest
import numpy as np
from unittest.mock import Mock

from livevoice.audio.analyser import SpectrumAnalyser
from livevoice.audio.visualizer import VisualizerSampler


@pytest.mark.unit
class TestSpectrumAnalyser:

    def test_rejects_bad_fft_size(self):
        with pytest.raises(ValueError):
            SpectrumAnalyser(fft_size=100)

    def test_silence_is_zero(self):
        analyser = SpectrumAnalyser(fft_size=256)
        analyser.write(np.zeros(1024, dtype=np.float32))
        data = analyser.get_byte_frequency_data()
        assert len(data) == 128
        assert data.dtype == np.uint8
        assert not data.any()

    def test_loud_tone_raises_spectrum(self):
        analyser = SpectrumAnalyser(fft_size=256, smoothing_time_constant=0.0)
        t = np.arange(1024) / 24000
        analyser.write((0.8 * np.sin(2 * np.pi * 1000 * t)).astype(np.float32))
        data = analyser.get_byte_frequency_data()
        assert data.max() > 200

    def test_short_writes_keep_latest_samples(self):
        analyser = SpectrumAnalyser(fft_size=32, smoothing_time_constant=0.0)
        analyser.write(np.ones(32, dtype=np.float32))
        analyser.write(np.zeros(16, dtype=np.float32))
        assert analyser._time_data[:16].tolist() == [1.0] * 16
        assert analyser._time_data[16:].tolist() == [0.0] * 16

    def test_reset_clears_history(self):
        analyser = SpectrumAnalyser(fft_size=256, smoothing_time_constant=0.0)
        analyser.write(np.ones(256, dtype=np.float32))
        analyser.get_byte_frequency_data()
        analyser.reset()
        assert not analyser.get_byte_frequency_data().any()


@pytest.mark.unit
class TestVisualizerSampler:

    def make_analyser(self, value):
        analyser = Mock()
        analyser.get_byte_frequency_data.return_value = np.full(128, value, dtype=np.uint8)
        return analyser

    def test_sample_is_normalized_mean(self):
        analyser = Mock()
        analyser.get_byte_frequency_data.return_value = np.array([0, 255, 255, 0], dtype=np.uint8)
        sampler = VisualizerSampler(analyser, report=Mock())
        assert sampler.sample() == pytest.approx(0.5)

    def test_rejects_non_positive_rate(self):
        with pytest.raises(ValueError):
            VisualizerSampler(self.make_analyser(0), report=Mock(), refresh_hz=0)

    def test_reports_until_stopped(self):
        reports = []
        sampler = VisualizerSampler(self.make_analyser(255), reports.append, refresh_hz=200)

        async def scenario():
            sampler.start()
            assert sampler.is_running
            await asyncio.sleep(0.05)
            sampler.stop()
            count = len(reports)
            await asyncio.sleep(0.05)
            return count

        count = asyncio.run(scenario())
        assert count > 0
        assert len(reports) == count
        assert all(level == pytest.approx(1.0) for level in reports)
        assert not sampler.is_running

    def test_failing_reporter_does_not_stop_loop(self):
        report = Mock(side_effect=RuntimeError("ui gone"))
        sampler = VisualizerSampler(self.make_analyser(10), report, refresh_hz=200)

        async def scenario():
            sampler.start()
            await asyncio.sleep(0.05)
            sampler.stop()

        asyncio.run(scenario())
        assert report.call_count > 1

    def test_start_twice_keeps_one_task(self):
        sampler = VisualizerSampler(self.make_analyser(0), Mock(), refresh_hz=60)

        async def scenario():
            sampler.start()
            first = sampler._task
            sampler.start()
            assert sampler._task is first
            sampler.stop()
            sampler.stop()

        asyncio.run(scenario())
