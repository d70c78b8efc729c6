"""Volume level publisher for pub/sub event publishing."""

import logging
from pubsub import pub

logger = logging.getLogger(__name__)


class VolumePublisher:
    """Publishes raw volume samples using pubsub.pub."""

    def __init__(self, topic: str = "session.volume"):
        """Initialize volume publisher.

        Args:
            topic: Pub/sub topic name for volume samples
        """
        self.topic = topic
        logger.info(f"VolumePublisher initialized with topic: {topic}")

    def publish_volume(self, level: float) -> None:
        """Publish one volume sample in [0, 1] to the pub/sub topic."""
        pub.sendMessage(self.topic, level=level)
