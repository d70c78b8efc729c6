"""Main application entry point for livevoice."""

import sys
import asyncio
import argparse
import logging
from pathlib import Path

from livevoice.audio.level_pub import VolumePublisher
from livevoice.services.session_controller import SessionController
from livevoice.services.state_pub import StatePublisher
from livevoice.transport.gemini import GeminiLiveTransport

from .config import LiveVoiceConfig

logger = logging.getLogger(__name__)

CLOSE_TIMEOUT_SECONDS = 5.0


class Server:

    def __init__(self, config_path: str, log_level: str = None):
        # Load configuration
        self.config = LiveVoiceConfig(config_path)
        # Command line overrides the configured level
        level = log_level or self.config.get('logging.level', 'INFO')
        setup_logging(self.config, level)

    def init(self) -> None:
        logger.info("Initializing services...")

        audio_settings = self.config.get_audio_settings()
        logger.info(f"Audio settings: in {audio_settings.input_sample_rate}Hz, "
                    f"out {audio_settings.output_sample_rate}Hz, "
                    f"{audio_settings.capture_frame_size} samples/frame")

        self.volume_publisher = VolumePublisher("session.volume")
        self.state_publisher = StatePublisher("session.state")
        self.transport = GeminiLiveTransport(api_key=self.config.get_api_key())
        self.controller = SessionController(
            transport=self.transport,
            session_config=self.config.get_session_config(),
            audio_settings=audio_settings,
            on_audio_level=self.volume_publisher.publish_volume,
            state_publisher=self.state_publisher,
            connect_timeout=self.config.get_connect_timeout(),
        )

    async def run_auto(self, duration: int) -> None:
        """Connect, converse for ``duration`` seconds, then disconnect."""
        try:
            await self.controller.connect()
            await asyncio.sleep(duration)
        finally:
            await self.cleanup()
        stats = self.controller.get_session_stats()
        logger.info(f"Session finished: {stats}")

    async def run_interactive(self) -> None:
        from livevoice.ui.session_screen import SessionScreen
        screen = SessionScreen(self.controller, "session.state", "session.volume")
        await screen.run()

    async def cleanup(self) -> None:
        self.controller.disconnect()
        await self.controller.wait_closed(timeout=CLOSE_TIMEOUT_SECONDS)


def setup_logging(config, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/livevoice.log')
    console_output = config.get('logging.console_output', True)

    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    # Console handler - only if enabled in config
    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.WARNING)
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger = logging.getLogger(__name__)
    logger.info("=" * 50)
    logger.info("livevoice starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def main() -> None:
    """Main entry point for the livevoice application."""
    parser = argparse.ArgumentParser(
        description="livevoice - real-time voice conversation with Gemini",
        epilog="Keys: SPACE=connect/disconnect, q=quit"
    )

    parser.add_argument(
        "--config",
        type=str,
        default="livevoice.yaml",
        help="Path to configuration YAML file (default: livevoice.yaml)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: from config, else INFO)"
    )

    parser.add_argument(
        "--auto",
        action="store_true",
        help="Run in automatic mode: connect, talk for the specified duration, then disconnect and exit"
    )

    parser.add_argument(
        "--duration",
        type=int,
        default=30,
        help="Duration in seconds for auto mode (default: 30)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="livevoice v0.1.0"
    )

    args = parser.parse_args()

    try:
        server = Server(args.config, args.log_level)
        server.init()
        if args.auto:
            asyncio.run(server.run_auto(args.duration))
        else:
            asyncio.run(server.run_interactive())
    except KeyboardInterrupt:
        print("\nGoodbye!")
    except Exception as e:
        print(f"Error: {e}")
        logging.error(f"Application error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
