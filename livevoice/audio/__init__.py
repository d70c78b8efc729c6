"""Audio capture, playback and analysis module."""

from .analyser import SpectrumAnalyser
from .capture import AudioCaptureLine
from .graph import InputAudioGraph, MicrophoneStream, OutputAudioGraph, PlaybackSource
from .level_pub import VolumePublisher
from .pcm import PcmCodec
from .playback import PlaybackScheduler
from .visualizer import VisualizerSampler

__all__ = [
    'SpectrumAnalyser',
    'AudioCaptureLine',
    'InputAudioGraph',
    'MicrophoneStream',
    'OutputAudioGraph',
    'PlaybackSource',
    'VolumePublisher',
    'PcmCodec',
    'PlaybackScheduler',
    'VisualizerSampler',
]
