"""Gemini Live API transport."""

import asyncio
import logging
from typing import Optional, Set

from google import genai
from google.genai import types

from .base import AbstractSessionTransport, TransportCallbacks, TransportConnection
from ..config import SessionConfig
from ..errors import TransportOpenError, TransportRuntimeError
from ..models.audio import MediaFrame
from ..models.events import TransportMessage

logger = logging.getLogger(__name__)


class GeminiLiveConnection(TransportConnection):
    """Wraps an open ``client.aio.live`` session."""

    def __init__(self, session):
        self.session = session
        self.closing = False

    async def send(self, media: MediaFrame) -> None:
        if self.closing:
            raise TransportRuntimeError("Connection is closing")
        await self.session.send_realtime_input(
            audio=types.Blob(data=media.data, mime_type=media.mime_type)
        )

    async def close(self) -> None:
        if self.closing:
            return
        self.closing = True
        await self.session.close()
        logger.info("Gemini Live session close requested")


class GeminiLiveTransport(AbstractSessionTransport):
    """Gemini Live API backend for voice sessions."""

    def __init__(self, api_key: Optional[str] = None, client: Optional[genai.Client] = None):
        """Initialize Gemini transport.

        Args:
            api_key: Gemini API key; ignored when ``client`` is given
            client: Preconfigured genai client
        """
        if client is None and not api_key:
            raise ValueError("Gemini API key is required - cannot initialize without credentials")
        self.client = client or genai.Client(api_key=api_key)
        self.service_name = "Gemini Live"
        self._tasks: Set[asyncio.Task] = set()

    @staticmethod
    def build_live_config(config: SessionConfig) -> types.LiveConnectConfig:
        return types.LiveConnectConfig(
            response_modalities=[config.response_modality],
            speech_config=types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=config.voice)
                )
            ),
            system_instruction=types.Content(parts=[types.Part(text=config.system_instruction)]),
        )

    @staticmethod
    def to_message(response) -> TransportMessage:
        """Map a server response onto a TransportMessage."""
        content = response.server_content
        if content is None:
            return TransportMessage()

        audio_payload = None
        model_turn = content.model_turn
        if model_turn and model_turn.parts:
            chunks = [part.inline_data.data for part in model_turn.parts
                      if part.inline_data and part.inline_data.data]
            audio_payload = b''.join(chunks) or None

        return TransportMessage(
            audio_payload=audio_payload,
            interrupted=bool(content.interrupted),
            turn_complete=bool(content.turn_complete),
        )

    def open(self, config: SessionConfig, callbacks: TransportCallbacks) -> "asyncio.Future":
        loop = asyncio.get_running_loop()
        connection_future = loop.create_future()
        task = loop.create_task(self._run(config, callbacks, connection_future))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return connection_future

    async def _run(self, config: SessionConfig, callbacks: TransportCallbacks,
                   connection_future: "asyncio.Future") -> None:
        connection: Optional[GeminiLiveConnection] = None
        try:
            logger.info(f"Connecting to {self.service_name} with model {config.model}")
            async with self.client.aio.live.connect(
                model=config.model, config=self.build_live_config(config)
            ) as session:
                connection = GeminiLiveConnection(session)
                connection_future.set_result(connection)
                logger.info(f"Connected to {self.service_name}")
                callbacks.on_open()
                await self._receive(connection, callbacks)
        except Exception as e:
            if connection is None:
                error = TransportOpenError(f"Could not connect to {self.service_name}: {e}")
                if not connection_future.done():
                    connection_future.set_exception(error)
                    # Consumers learn about the failure through on_error.
                    connection_future.exception()
                logger.error(str(error))
                callbacks.on_error(error)
                return
            if not connection.closing:
                logger.error(f"{self.service_name} session error: {e}")
                callbacks.on_error(TransportRuntimeError(str(e)))
                return
            logger.debug(f"Error while closing {self.service_name} session: {e}")

        logger.info(f"{self.service_name} session closed")
        callbacks.on_close()

    async def _receive(self, connection: GeminiLiveConnection, callbacks: TransportCallbacks) -> None:
        # receive() yields one model turn at a time; an empty turn means the socket is gone.
        while not connection.closing:
            received = 0
            async for response in connection.session.receive():
                received += 1
                callbacks.on_message(self.to_message(response))
            if received == 0:
                break
