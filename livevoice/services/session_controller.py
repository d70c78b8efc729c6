"""Session controller: the connect/disconnect state machine for a voice session."""

import asyncio
import logging
import uuid
from enum import Enum
from functools import partial
from typing import Any, Callable, Optional, Set

from ..audio.analyser import SpectrumAnalyser
from ..audio.capture import AudioCaptureLine
from ..audio.graph import InputAudioGraph, OutputAudioGraph
from ..audio.pcm import PcmCodec
from ..audio.playback import PlaybackScheduler
from ..audio.visualizer import VisualizerSampler
from ..config import AudioSettings, SessionConfig
from ..errors import (
    AcquisitionError,
    CONNECT_TIMEOUT_MESSAGE,
    DEFAULT_ACQUISITION_MESSAGE,
    DEFAULT_CONNECTION_MESSAGE,
    TransportOpenError,
)
from ..models.audio import AudioStats, CaptureFrame
from ..models.events import TransportMessage
from ..models.session import SessionHandle, SessionState, SessionStatus
from ..transport.base import AbstractSessionTransport, TransportCallbacks
from .state_pub import StatePublisher

logger = logging.getLogger(__name__)


class SessionEvent(Enum):
    """Events that drive session transitions."""
    OPENED = "opened"
    MESSAGE = "message"
    FRAME = "frame"
    CLOSED = "closed"
    FAILED = "failed"


# Events that only make sense once the transport has opened.
ACTIVE_ONLY_EVENTS = {SessionEvent.MESSAGE, SessionEvent.FRAME, SessionEvent.CLOSED}


class SessionController:
    """Owns one voice session at a time and is the only surface the UI uses.

    All mutation of the session handle happens either in ``connect``,
    ``disconnect`` or in a handler reached through ``_dispatch``, which
    drops events from stale sessions and events that arrive before the
    session is open or after it has been torn down.
    """

    def __init__(self,
                 transport: AbstractSessionTransport,
                 session_config: Optional[SessionConfig] = None,
                 audio_settings: Optional[AudioSettings] = None,
                 on_audio_level: Optional[Callable[[float], None]] = None,
                 state_publisher: Optional[StatePublisher] = None,
                 connect_timeout: Optional[float] = None,
                 input_graph_factory: Callable[..., Any] = InputAudioGraph,
                 output_graph_factory: Callable[..., Any] = OutputAudioGraph):
        """Initialize session controller.

        Args:
            transport: Connection to the voice service
            session_config: Service configuration passed through on open
            audio_settings: Sample rates, frame sizes and visualizer cadence
            on_audio_level: Receives raw volume samples at visualizer cadence
            state_publisher: Publishes status changes; a default one is created
            connect_timeout: Seconds before a stuck CONNECTING fails, None to wait forever
            input_graph_factory: Builds the microphone graph
            output_graph_factory: Builds the playback graph
        """
        self.transport = transport
        self.session_config = session_config or SessionConfig()
        self.audio_settings = audio_settings or AudioSettings()
        self.on_audio_level = on_audio_level
        self.state_publisher = state_publisher or StatePublisher()
        self.connect_timeout = connect_timeout
        self.input_graph_factory = input_graph_factory
        self.output_graph_factory = output_graph_factory

        self.codec = PcmCodec(
            input_sample_rate=self.audio_settings.input_sample_rate,
            output_sample_rate=self.audio_settings.output_sample_rate,
            channels=self.audio_settings.channels,
        )
        self.stats = AudioStats()

        self._state = SessionState.DISCONNECTED
        self._error: Optional[str] = None
        self._handle: Optional[SessionHandle] = None
        self._timeout_handle: Optional[asyncio.TimerHandle] = None
        self._close_tasks: Set[asyncio.Task] = set()

        self._handlers = {
            SessionEvent.OPENED: self._on_opened,
            SessionEvent.MESSAGE: self._on_message,
            SessionEvent.FRAME: self._on_frame,
            SessionEvent.CLOSED: self._on_closed,
            SessionEvent.FAILED: self._on_failed,
        }

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def status(self) -> SessionStatus:
        return SessionStatus(state=self._state, error=self._error)

    @property
    def is_active(self) -> bool:
        return self._handle is not None and self._handle.active

    @property
    def handle(self) -> Optional[SessionHandle]:
        return self._handle

    def get_session_stats(self) -> AudioStats:
        return self.stats

    def _set_state(self, state: SessionState) -> None:
        if state is self._state:
            return
        logger.info(f"Session state: {self._state.value} -> {state.value}")
        self._state = state
        self.state_publisher.publish_status(self.status)

    async def connect(self) -> None:
        """Acquire audio devices and open the transport.

        The session becomes CONNECTED when the transport reports open. Any
        failure before that leaves no resources live and the state in ERROR.
        """
        if self._handle is not None:
            logger.warning("Session already in progress, ignoring connect()")
            return

        loop = asyncio.get_running_loop()
        handle = SessionHandle(session_id=uuid.uuid4().hex[:8])
        self._handle = handle
        self.stats = AudioStats()
        self._error = None
        self._set_state(SessionState.CONNECTING)
        self._arm_connect_timeout(handle, loop)
        logger.info(f"Connecting session {handle.session_id}")

        try:
            settings = self.audio_settings
            handle.output_graph = self.output_graph_factory(
                sample_rate=settings.output_sample_rate,
                buffer_size=settings.output_buffer_size,
                volume=settings.volume,
                analyser=SpectrumAnalyser(
                    fft_size=settings.fft_size,
                    smoothing_time_constant=settings.smoothing_time_constant,
                ),
                loop=loop,
            )
            handle.output_graph.open()
            handle.scheduler = PlaybackScheduler(handle.output_graph, self.codec, self.stats)

            input_graph = self.input_graph_factory(
                sample_rate=settings.input_sample_rate,
                frame_size=settings.capture_frame_size,
                channels=settings.channels,
            )
            try:
                microphone = await loop.run_in_executor(None, input_graph.open_microphone)
            except BaseException:
                input_graph.close()
                raise

            if handle is not self._handle:
                logger.info(f"Session {handle.session_id} ended while acquiring microphone")
                microphone.stop()
                input_graph.close()
                return
            handle.input_graph = input_graph
            handle.microphone = microphone

            handle.connection = self.transport.open(self.session_config, self._callbacks_for(handle))
        except AcquisitionError as e:
            logger.error(f"Failed to connect: {e}")
            if handle is self._handle:
                self._fail(str(e) or DEFAULT_ACQUISITION_MESSAGE)
        except Exception as e:
            logger.error(f"Failed to connect: {e}", exc_info=True)
            if handle is self._handle:
                self._fail(DEFAULT_CONNECTION_MESSAGE)

    def disconnect(self) -> None:
        """Tear down the current session. Safe to call at any time, any number of times."""
        handle = self._handle
        self._handle = None
        self._cancel_connect_timeout()

        if handle is not None:
            logger.info(f"Disconnecting session {handle.session_id}...")
            handle.active = False
            if handle.visualizer:
                self._release("visualizer", handle.visualizer.stop)
            if handle.capture:
                self._release("capture line", handle.capture.stop)
            elif handle.microphone:
                self._release("microphone", handle.microphone.stop)
            if handle.input_graph:
                self._release("input graph", handle.input_graph.close)
            if handle.scheduler:
                self._release("playback", handle.scheduler.stop_all)
            if handle.output_graph:
                self._release("output graph", handle.output_graph.close)
            if handle.connection is not None:
                self._request_close(handle.connection)

        self._set_state(SessionState.DISCONNECTED)

    async def wait_closed(self, timeout: Optional[float] = None) -> None:
        """Wait for outstanding transport close requests to finish."""
        if self._close_tasks:
            await asyncio.wait(list(self._close_tasks), timeout=timeout)

    def _release(self, name: str, release: Callable[[], None]) -> None:
        try:
            release()
        except Exception as e:
            logger.error(f"Error releasing {name}: {e}")

    def _request_close(self, connection: "asyncio.Future") -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, transport close skipped")
            return
        task = loop.create_task(self._close_connection(connection))
        self._close_tasks.add(task)
        task.add_done_callback(self._close_tasks.discard)

    async def _close_connection(self, connection: "asyncio.Future") -> None:
        try:
            session = await connection
            await session.close()
        except TransportOpenError:
            logger.debug("Transport never opened, nothing to close")
        except Exception as e:
            logger.error(f"Error closing session: {e}")

    def _fail(self, message: str) -> None:
        # Teardown resets to DISCONNECTED; the error state goes on top of it.
        self.disconnect()
        self._error = message
        self._set_state(SessionState.ERROR)

    def _arm_connect_timeout(self, handle: SessionHandle, loop: asyncio.AbstractEventLoop) -> None:
        if self.connect_timeout:
            self._timeout_handle = loop.call_later(
                self.connect_timeout, self._on_connect_timeout, handle)

    def _cancel_connect_timeout(self) -> None:
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None

    def _on_connect_timeout(self, handle: SessionHandle) -> None:
        self._timeout_handle = None
        if handle is self._handle and self._state is SessionState.CONNECTING:
            logger.error(f"Session {handle.session_id} still connecting after {self.connect_timeout}s")
            self._fail(CONNECT_TIMEOUT_MESSAGE)

    def _callbacks_for(self, handle: SessionHandle) -> TransportCallbacks:
        return TransportCallbacks(
            on_open=partial(self._dispatch, handle, SessionEvent.OPENED),
            on_message=partial(self._dispatch, handle, SessionEvent.MESSAGE),
            on_close=partial(self._dispatch, handle, SessionEvent.CLOSED),
            on_error=partial(self._dispatch, handle, SessionEvent.FAILED),
        )

    def _dispatch(self, handle: SessionHandle, event: SessionEvent, payload: Any = None) -> None:
        """Route one external event to its transition, or drop it."""
        if handle is not self._handle:
            logger.debug(f"Dropping {event.value} for stale session {handle.session_id}")
            return
        if event in ACTIVE_ONLY_EVENTS and not handle.active:
            logger.debug(f"Dropping {event.value}: session {handle.session_id} not active")
            return
        if event is SessionEvent.OPENED and handle.active:
            logger.warning(f"Session {handle.session_id} opened twice")
            return
        self._handlers[event](handle, payload)

    def _on_opened(self, handle: SessionHandle, _payload: Any) -> None:
        logger.info(f"Session {handle.session_id} opened")
        self._cancel_connect_timeout()
        handle.active = True
        self._set_state(SessionState.CONNECTED)

        handle.capture = AudioCaptureLine(
            microphone=handle.microphone,
            codec=self.codec,
            loop=asyncio.get_running_loop(),
            stats=self.stats,
        )
        handle.capture.start(partial(self._dispatch, handle, SessionEvent.FRAME))

        handle.visualizer = VisualizerSampler(
            analyser=handle.output_graph.analyser,
            report=self._report_level,
            refresh_hz=self.audio_settings.refresh_hz,
        )
        handle.visualizer.start()

    def _on_message(self, handle: SessionHandle, message: TransportMessage) -> None:
        if message.has_audio:
            handle.scheduler.enqueue(message.audio_payload)
        if message.interrupted:
            logger.info("Interrupted by user")
            handle.scheduler.interrupt()

    def _on_frame(self, handle: SessionHandle, frame: CaptureFrame) -> None:
        handle.capture.send_frame(frame, handle.connection)

    def _on_closed(self, handle: SessionHandle, _payload: Any) -> None:
        logger.info(f"Session {handle.session_id} closed by transport")
        self.disconnect()

    def _on_failed(self, handle: SessionHandle, error: BaseException) -> None:
        logger.error(f"Session {handle.session_id} error: {error}")
        self._fail(DEFAULT_CONNECTION_MESSAGE)

    def _report_level(self, level: float) -> None:
        if self.on_audio_level:
            self.on_audio_level(level)
