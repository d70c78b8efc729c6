"""Session-related data models."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class SessionState(Enum):
    """Lifecycle state of the voice session."""
    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    ERROR = "ERROR"


@dataclass
class SessionStatus:
    """UI-facing snapshot of the session state."""
    state: SessionState
    error: Optional[str] = None


@dataclass
class SessionHandle:
    """Live resources bound together for one session instance.

    Every field may be None while the session is being built up or torn
    down, so all teardown code has to tolerate partial handles.
    """
    session_id: str
    microphone: Any = None
    input_graph: Any = None
    output_graph: Any = None
    capture: Any = None
    scheduler: Any = None
    visualizer: Any = None
    connection: Any = None  # asyncio.Future[TransportConnection]
    active: bool = False
