"""Services layer for livevoice session logic."""

from .session_controller import SessionController, SessionEvent
from .state_pub import StatePublisher

__all__ = [
    "SessionController",
    "SessionEvent",
    "StatePublisher",
]
