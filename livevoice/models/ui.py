"""UI-related data models."""

from dataclasses import dataclass
from typing import Optional

from .session import SessionState

VOLUME_SMOOTHING = 0.8
ORB_GAIN = 1.5


def smooth_volume(previous: float, level: float, smoothing: float = VOLUME_SMOOTHING) -> float:
    """Exponential smoothing applied to raw volume samples before display."""
    return previous * smoothing + level * (1.0 - smoothing)


@dataclass
class ScreenStatus:
    """What the terminal screen currently shows."""
    state: SessionState = SessionState.DISCONNECTED
    error: Optional[str] = None
    volume: float = 0.0

    @property
    def is_connected(self) -> bool:
        return self.state is SessionState.CONNECTED

    @property
    def orb_scale(self) -> float:
        if not self.is_connected:
            return 1.0
        return 1.0 + self.volume * ORB_GAIN

    def update_volume(self, level: float) -> None:
        self.volume = smooth_volume(self.volume, level)
