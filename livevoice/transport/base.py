"""Abstract base classes for session transports."""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable
import logging

from ..config import SessionConfig
from ..models.audio import MediaFrame
from ..models.events import TransportMessage

logger = logging.getLogger(__name__)


@dataclass
class TransportCallbacks:
    """Lifecycle callbacks a transport invokes on the event loop."""
    on_open: Callable[[], None]
    on_message: Callable[[TransportMessage], None]
    on_close: Callable[[], None]
    on_error: Callable[[BaseException], None]


class TransportConnection(ABC):
    """An established bidirectional connection to the voice service."""

    @abstractmethod
    async def send(self, media: MediaFrame) -> None:
        """Send one outbound media frame."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the connection; ``on_close`` follows once it is down."""
        pass


class AbstractSessionTransport(ABC):
    """Abstract base class for voice service transports."""

    @abstractmethod
    def open(self, config: SessionConfig, callbacks: TransportCallbacks) -> "asyncio.Future[TransportConnection]":
        """Start connecting and return a future for the connection.

        The future resolves right before ``callbacks.on_open`` fires. If
        connecting fails, the future carries a TransportOpenError and
        ``callbacks.on_error`` receives the same error.

        Args:
            config: Service configuration, passed through opaquely
            callbacks: Lifecycle callbacks

        Returns:
            Future resolving to the TransportConnection
        """
        pass
