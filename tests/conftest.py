"""Pytest configuration and fixtures for livevoice tests."""

import asyncio
import pytest
import tempfile
import logging
from unittest.mock import Mock, patch
import numpy as np

from livevoice.errors import TransportOpenError
from livevoice.transport.base import AbstractSessionTransport, TransportConnection


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without audio hardware")
    config.addinivalue_line("markers", "integration: multi-component session scenarios")


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_input_stream = Mock()
        mock_output_stream = Mock()

        for stream in (mock_input_stream, mock_output_stream):
            stream.is_active.return_value = True
            stream.start_stream.return_value = None
            stream.stop_stream.return_value = None
            stream.close.return_value = None

        def open_stream(**kwargs):
            return mock_input_stream if kwargs.get('input') else mock_output_stream

        mock_pyaudio_instance.open.side_effect = open_stream
        mock_pyaudio_instance.terminate.return_value = None

        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_input_stream,
            'input_stream': mock_input_stream,
            'output_stream': mock_output_stream,
        }


@pytest.fixture
def audio_test_data():
    """Generate 16-bit PCM payloads of a given duration."""
    def generate_audio(pattern="sine", duration_seconds=1.0, sample_rate=24000):
        """Generate audio data for testing.

        Args:
            pattern: Type of audio pattern ('sine', 'noise', 'silence')
            duration_seconds: Duration of audio
            sample_rate: Sample rate in Hz

        Returns:
            bytes: Audio data as little-endian int16 bytes
        """
        samples = int(round(duration_seconds * sample_rate))

        if pattern == "sine":
            t = np.arange(samples) / sample_rate
            wave_data = 0.5 * np.sin(2 * np.pi * 440 * t)
        elif pattern == "noise":
            wave_data = np.random.uniform(-1, 1, samples)
        elif pattern == "silence":
            wave_data = np.zeros(samples)
        else:
            raise ValueError(f"Unknown pattern: {pattern}")

        return (wave_data * 32767).astype('<i2').tobytes()

    return generate_audio


@pytest.fixture
def capture_frame_bytes():
    """One 4096-sample float32 microphone buffer as PortAudio delivers it."""
    t = np.arange(4096) / 16000
    return (0.25 * np.sin(2 * np.pi * 220 * t)).astype(np.float32).tobytes()


class FakeConnection(TransportConnection):
    """Records sends and closes."""

    def __init__(self):
        self.sent = []
        self.close_calls = 0
        self.fail_sends = False
        self.fail_close = False

    async def send(self, media):
        if self.fail_sends:
            raise ConnectionError("socket is closed")
        self.sent.append(media)

    async def close(self):
        self.close_calls += 1
        if self.fail_close:
            raise ConnectionError("close handshake failed")


class FakeTransport(AbstractSessionTransport):
    """Transport whose lifecycle callbacks are fired by the test."""

    def __init__(self):
        self.open_count = 0
        self.configs = []
        self.callbacks = None
        self.future = None
        self.connection = None

    def open(self, config, callbacks):
        self.open_count += 1
        self.configs.append(config)
        self.callbacks = callbacks
        self.future = asyncio.get_running_loop().create_future()
        self.connection = FakeConnection()
        return self.future

    def fire_open(self):
        self.future.set_result(self.connection)
        self.callbacks.on_open()

    def fire_message(self, message):
        self.callbacks.on_message(message)

    def fire_close(self):
        self.callbacks.on_close()

    def fire_error(self, error):
        self.callbacks.on_error(error)

    def fail_open(self, reason="handshake rejected"):
        error = TransportOpenError(reason)
        self.future.set_exception(error)
        self.future.exception()
        self.callbacks.on_error(error)


@pytest.fixture
def fake_transport():
    return FakeTransport()
