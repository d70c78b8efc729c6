"""Terminal voice session screen with a live volume orb."""

import asyncio
import logging
from typing import Optional

from pubsub import pub
from rich.align import Align
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from ..models.session import SessionState, SessionStatus
from ..models.ui import ScreenStatus
from ..services.session_controller import SessionController
from .keyboard_input import KeyboardInputHandler

logger = logging.getLogger(__name__)

STATE_LABELS = {
    SessionState.DISCONNECTED: "Ready",
    SessionState.CONNECTING: "Connecting...",
    SessionState.CONNECTED: "Listening",
    SessionState.ERROR: "Error",
}

ORB_WIDTH = 12
CLOSE_TIMEOUT_SECONDS = 5.0


class SessionScreen:
    """Renders session status and routes keys to the session controller."""

    def __init__(self,
                 controller: SessionController,
                 state_topic: str = "session.state",
                 volume_topic: str = "session.volume",
                 console: Optional[Console] = None):
        self.controller = controller
        self.state_topic = state_topic
        self.volume_topic = volume_topic
        self.console = console or Console()
        self.status = ScreenStatus(state=controller.state, error=controller.error)

        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self.input_handler: Optional[KeyboardInputHandler] = None
        self.connect_task: Optional[asyncio.Future] = None
        self.running = False

        pub.subscribe(self.on_status, state_topic)
        pub.subscribe(self.on_volume, volume_topic)

    def on_status(self, status: SessionStatus) -> None:
        self.status.state = status.state
        self.status.error = status.error
        if status.state is not SessionState.CONNECTED:
            self.status.volume = 0.0

    def on_volume(self, level: float) -> None:
        self.status.update_volume(level)

    def render(self) -> Panel:
        state = self.status.state
        label = Text(STATE_LABELS[state].upper(), style="bold white" if state is not SessionState.ERROR else "bold red")

        orb_cells = int(round(ORB_WIDTH * self.status.orb_scale / 2.5))
        orb_style = "bold magenta" if self.status.is_connected else "grey50"
        orb = Text("●" * max(orb_cells, 1), style=orb_style)

        parts = [Align.center(orb), Align.center(label)]
        if self.status.error:
            parts.append(Align.center(Text(self.status.error, style="red")))
        hint = "SPACE: end conversation" if self.status.is_connected else "SPACE: talk to Gemini"
        parts.append(Align.center(Text(f"{hint}   Q: quit", style="dim")))

        return Panel(Group(*parts), title="livevoice", border_style="magenta")

    def toggle(self) -> None:
        """Connect when idle, disconnect when connected, ignore while connecting."""
        state = self.controller.state
        if state is SessionState.CONNECTING:
            return
        if state is SessionState.CONNECTED:
            self.controller.disconnect()
        elif self.connect_task is None or self.connect_task.done():
            self.connect_task = asyncio.ensure_future(self.controller.connect())

    def handle_key_input(self, key: str) -> bool:
        """Keyboard thread entry point. Returns False to stop reading keys."""
        if self.loop is None or self.loop.is_closed():
            return False
        self.loop.call_soon_threadsafe(self._handle_key, key)
        return key != 'q'

    def _handle_key(self, key: str) -> None:
        if key == 'q':
            logger.info("Quit key pressed")
            self.running = False
        elif key in (' ', '\n', '\r'):
            self.toggle()
        else:
            logger.debug(f"Unhandled key: {key!r}")

    async def run(self) -> None:
        """Run the screen until the user quits."""
        self.loop = asyncio.get_running_loop()
        self.running = True
        self.input_handler = KeyboardInputHandler(self.handle_key_input)
        self.input_handler.start()
        try:
            with Live(self.render(), console=self.console, refresh_per_second=20) as live:
                while self.running:
                    live.update(self.render())
                    await asyncio.sleep(0.05)
        finally:
            await self.cleanup()

    async def cleanup(self) -> None:
        self.running = False
        if self.input_handler:
            self.input_handler.stop()
        self.controller.disconnect()
        if self.connect_task is not None and not self.connect_task.done():
            await asyncio.wait([self.connect_task], timeout=CLOSE_TIMEOUT_SECONDS)
        await self.controller.wait_closed(timeout=CLOSE_TIMEOUT_SECONDS)
        pub.unsubscribe(self.on_status, self.state_topic)
        pub.unsubscribe(self.on_volume, self.volume_topic)
        logger.info("SessionScreen cleanup completed")
