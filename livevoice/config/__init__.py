"""Simple YAML configuration loader for livevoice."""

import os
import yaml
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash-native-audio-preview-09-2025"
DEFAULT_VOICE = "Kore"
DEFAULT_SYSTEM_INSTRUCTION = "You are a helpful voice assistant. Answer concisely and kindly."


@dataclass
class SessionConfig:
    """Service configuration passed through to the transport untouched."""
    model: str = DEFAULT_MODEL
    voice: str = DEFAULT_VOICE
    response_modality: str = "AUDIO"
    system_instruction: str = DEFAULT_SYSTEM_INSTRUCTION


@dataclass
class AudioSettings:
    """Fixed audio formats and visualizer cadence for a session."""
    input_sample_rate: int = 16000
    output_sample_rate: int = 24000
    capture_frame_size: int = 4096
    output_buffer_size: int = 1024
    channels: int = 1
    volume: float = 1.0
    refresh_hz: float = 60.0
    fft_size: int = 256
    smoothing_time_constant: float = 0.8


class LiveVoiceConfig:
    """livevoice configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, uses livevoice.yaml
                        in the current directory.
        """
        self.config_file = Path(config_path or "livevoice.yaml")

        if not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        if not config:
            raise ValueError("Configuration file is empty")

        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        if 'logging' in config and 'file_path' in config['logging']:
            log_path = config['logging']['file_path']
            if not os.path.isabs(log_path):
                config['logging']['file_path'] = str(config_dir / log_path)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'gemini.model').

        Args:
            key_path: Dot-separated key path (e.g., 'audio.input_sample_rate')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'gemini.voice')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def get_api_key(self) -> str:
        """Get the Gemini API key from the configured environment variable."""
        env_name = self.get('gemini.api_key_env', 'GEMINI_API_KEY')
        api_key = os.environ.get(env_name)
        if not api_key:
            raise ValueError(f"Gemini API key not set: export {env_name}")
        return api_key

    def get_session_config(self) -> SessionConfig:
        return SessionConfig(
            model=self.get('gemini.model', DEFAULT_MODEL),
            voice=self.get('gemini.voice', DEFAULT_VOICE),
            response_modality=self.get('gemini.response_modality', 'AUDIO'),
            system_instruction=self.get('gemini.system_instruction', DEFAULT_SYSTEM_INSTRUCTION),
        )

    def get_audio_settings(self) -> AudioSettings:
        return AudioSettings(
            input_sample_rate=self.get('audio.input_sample_rate', 16000),
            output_sample_rate=self.get('audio.output_sample_rate', 24000),
            capture_frame_size=self.get('audio.capture_frame_size', 4096),
            output_buffer_size=self.get('audio.output_buffer_size', 1024),
            channels=self.get('audio.channels', 1),
            volume=self.get('audio.volume', 1.0),
            refresh_hz=self.get('visualizer.refresh_hz', 60.0),
            fft_size=self.get('visualizer.fft_size', 256),
            smoothing_time_constant=self.get('visualizer.smoothing_time_constant', 0.8),
        )

    def get_connect_timeout(self) -> Optional[float]:
        """Seconds to wait in CONNECTING before failing, or None to wait forever."""
        timeout = self.get('session.connect_timeout_seconds')
        return float(timeout) if timeout else None
