"""Unit tests for AudioCaptureLine."""

import asyncio
import pytest
import numpy as np
from unittest.mock import Mock

from livevoice.audio.capture import AudioCaptureLine
from livevoice.audio.graph import InputAudioGraph
from livevoice.audio.pcm import PcmCodec
from livevoice.models.audio import AudioStats, CaptureFrame


class RecordingConnection:
    def __init__(self, error=None):
        self.error = error
        self.sent = []

    async def send(self, media):
        if self.error:
            raise self.error
        self.sent.append(media)


def resolved(loop, value):
    future = loop.create_future()
    future.set_result(value)
    return future


@pytest.mark.unit
class TestAudioCaptureLine:
    """Test cases for AudioCaptureLine class."""

    def make_line(self, loop):
        microphone = InputAudioGraph().open_microphone()
        return AudioCaptureLine(microphone, PcmCodec(), loop, AudioStats())

    def test_start_installs_tap(self, mock_pyaudio):
        async def scenario():
            line = self.make_line(asyncio.get_running_loop())
            line.start(Mock())
            assert line.is_capturing is True
            assert line.microphone.tap == line._tap
            mock_pyaudio['input_stream'].start_stream.assert_called_once()

            line.start(Mock())
            mock_pyaudio['input_stream'].start_stream.assert_called_once()
            line.stop()

        asyncio.run(scenario())

    def test_tap_delivers_frames_on_loop(self, mock_pyaudio, capture_frame_bytes):
        frames = []

        async def scenario():
            line = self.make_line(asyncio.get_running_loop())
            line.start(frames.append)
            assert line._tap(capture_frame_bytes, 4096) is True
            assert line._tap(capture_frame_bytes, 4096) is True
            await asyncio.sleep(0)
            line.stop()

        asyncio.run(scenario())
        assert [frame.sequence_number for frame in frames] == [1, 2]
        assert len(frames[0].samples) == 4096
        assert frames[0].sample_rate == 16000

    def test_tap_after_stop_drops_frame(self, mock_pyaudio, capture_frame_bytes):
        frames = []

        async def scenario():
            line = self.make_line(asyncio.get_running_loop())
            line.start(frames.append)
            line.stop()
            assert line._tap(capture_frame_bytes, 4096) is False
            await asyncio.sleep(0)

        asyncio.run(scenario())
        assert frames == []

    def test_send_frame_encodes_pcm(self, mock_pyaudio):
        connection = RecordingConnection()

        async def scenario():
            loop = asyncio.get_running_loop()
            line = self.make_line(loop)
            frame = CaptureFrame(np.full(4096, 0.5, dtype=np.float32), 16000, 1, 0.0)
            await line.send_frame(frame, resolved(loop, connection))
            return line.stats

        stats = asyncio.run(scenario())
        assert len(connection.sent) == 1
        media = connection.sent[0]
        assert media.mime_type == "audio/pcm;rate=16000"
        assert np.frombuffer(media.data, dtype='<i2')[0] == 16383
        assert stats.frames_captured == 1
        assert stats.frames_sent == 1

    def test_send_failure_is_dropped(self, mock_pyaudio):
        connection = RecordingConnection(error=ConnectionError("socket closed"))

        async def scenario():
            loop = asyncio.get_running_loop()
            line = self.make_line(loop)
            frame = CaptureFrame(np.zeros(4096, dtype=np.float32), 16000, 1, 0.0)
            await line.send_frame(frame, resolved(loop, connection))
            await line.send_frame(frame, resolved(loop, connection))
            return line.stats

        stats = asyncio.run(scenario())
        assert stats.frames_dropped == 2
        assert stats.frames_sent == 0

    def test_in_flight_sends_are_tracked(self, mock_pyaudio):
        connection = RecordingConnection()

        async def scenario():
            loop = asyncio.get_running_loop()
            line = self.make_line(loop)
            pending_connection = loop.create_future()
            frame = CaptureFrame(np.zeros(4096, dtype=np.float32), 16000, 1, 0.0)

            task = line.send_frame(frame, pending_connection)
            assert line.send_tasks == {task}

            pending_connection.set_result(connection)
            await task
            await asyncio.sleep(0)
            return line

        line = asyncio.run(scenario())
        assert not line.send_tasks
        assert len(connection.sent) == 1

    def test_stop_is_idempotent(self, mock_pyaudio):
        async def scenario():
            line = self.make_line(asyncio.get_running_loop())
            line.start(Mock())
            line.stop()
            line.stop()
            assert line.is_capturing is False

        asyncio.run(scenario())
        mock_pyaudio['input_stream'].close.assert_called_once()
