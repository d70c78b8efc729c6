"""Event models exchanged with the session transport."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class TransportMessage:
    """Inbound message from the voice service.

    A message may carry audio, an interruption flag, or both; each is
    handled independently.
    """
    audio_payload: Optional[bytes] = None
    interrupted: bool = False
    turn_complete: bool = False

    @property
    def has_audio(self) -> bool:
        return bool(self.audio_payload)
