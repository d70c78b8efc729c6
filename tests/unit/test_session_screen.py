"""Unit tests for the terminal session screen."""

import io
import asyncio
import pytest
from unittest.mock import Mock, AsyncMock

from pubsub import pub
from rich.console import Console

from livevoice.models.session import SessionState, SessionStatus
from livevoice.ui.session_screen import SessionScreen


def render_text(screen):
    console = Console(file=io.StringIO(), width=60, color_system=None)
    console.print(screen.render())
    return console.file.getvalue()


@pytest.fixture
def controller():
    controller = Mock()
    controller.state = SessionState.DISCONNECTED
    controller.error = None
    controller.connect = AsyncMock()
    controller.wait_closed = AsyncMock()
    return controller


@pytest.fixture
def screen(controller):
    screen = SessionScreen(controller, "test.screen.state", "test.screen.volume",
                           console=Console(file=io.StringIO()))
    yield screen
    pub.unsubscribe(screen.on_status, screen.state_topic)
    pub.unsubscribe(screen.on_volume, screen.volume_topic)


@pytest.mark.unit
class TestSessionScreen:

    def test_idle_render(self, screen):
        text = render_text(screen)
        assert "READY" in text
        assert "talk to Gemini" in text

    def test_status_topic_updates_label_and_error(self, screen):
        pub.sendMessage("test.screen.state",
                        status=SessionStatus(state=SessionState.ERROR, error="A connection error occurred."))
        text = render_text(screen)
        assert "ERROR" in text
        assert "A connection error occurred." in text

    def test_volume_smoothed_only_while_connected(self, screen):
        pub.sendMessage("test.screen.volume", level=1.0)
        assert screen.status.orb_scale == 1.0

        pub.sendMessage("test.screen.state", status=SessionStatus(state=SessionState.CONNECTED))
        pub.sendMessage("test.screen.volume", level=1.0)
        assert screen.status.orb_scale > 1.0
        assert "end conversation" in render_text(screen)

        pub.sendMessage("test.screen.state", status=SessionStatus(state=SessionState.DISCONNECTED))
        assert screen.status.volume == 0.0

    def test_toggle_connects_when_idle(self, screen, controller):
        async def scenario():
            screen.toggle()
            await asyncio.sleep(0)

        asyncio.run(scenario())
        controller.connect.assert_awaited_once()
        controller.disconnect.assert_not_called()
        assert screen.connect_task.done()

    def test_toggle_keeps_single_connect_task(self, screen, controller):
        started = []

        async def slow_connect():
            started.append(True)
            await asyncio.sleep(0.01)

        controller.connect = slow_connect

        async def scenario():
            screen.toggle()
            first = screen.connect_task
            # State has not left DISCONNECTED yet; the pending task is reused.
            screen.toggle()
            assert screen.connect_task is first
            await first

        asyncio.run(scenario())
        assert started == [True]

    def test_toggle_ignored_while_connecting(self, screen, controller):
        controller.state = SessionState.CONNECTING
        screen.toggle()
        controller.connect.assert_not_called()
        controller.disconnect.assert_not_called()

    def test_toggle_disconnects_when_connected(self, screen, controller):
        controller.state = SessionState.CONNECTED
        screen.toggle()
        controller.disconnect.assert_called_once()

    def test_quit_key(self, screen):
        screen.running = True
        screen._handle_key('q')
        assert screen.running is False

    def test_key_input_without_loop_stops_reader(self, screen):
        assert screen.handle_key_input(' ') is False

    def test_key_input_marshals_to_loop(self, screen, controller):
        controller.state = SessionState.CONNECTED

        async def scenario():
            screen.loop = asyncio.get_running_loop()
            assert screen.handle_key_input(' ') is True
            assert screen.handle_key_input('q') is False
            await asyncio.sleep(0)

        screen.running = True
        asyncio.run(scenario())
        controller.disconnect.assert_called_once()
        assert screen.running is False

    def test_cleanup_disconnects_and_waits(self, controller):
        screen = SessionScreen(controller, "test.cleanup.state", "test.cleanup.volume",
                               console=Console(file=io.StringIO()))
        asyncio.run(screen.cleanup())
        controller.disconnect.assert_called_once()
        controller.wait_closed.assert_awaited_once()
