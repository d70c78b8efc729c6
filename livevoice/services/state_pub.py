"""Session state publisher for pub/sub event publishing."""

import logging
from pubsub import pub

from ..models.session import SessionStatus

logger = logging.getLogger(__name__)


class StatePublisher:
    """Publishes session status changes using pubsub.pub."""

    def __init__(self, topic: str = "session.state"):
        """Initialize state publisher.

        Args:
            topic: Pub/sub topic name for session status changes
        """
        self.topic = topic
        logger.info(f"StatePublisher initialized with topic: {topic}")

    def publish_status(self, status: SessionStatus) -> None:
        pub.sendMessage(self.topic, status=status)
        logger.debug(f"Published session status: {status.state.value}")
