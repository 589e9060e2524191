import json
from typing import Any, Dict

from redis.asyncio import Redis

from livesync.domain.models import Snapshot

from . import constants


class ChangeNotifier:
    """Publishes stream change events on a Redis pub/sub channel.

    Only called for commits the change detector flagged; subscribers can
    use it to push refreshes instead of waiting for their next poll.
    """

    def __init__(self, redis: Redis, channel: str = constants.PUBSUB_CHANNEL_UPDATES):
        self.r = redis
        self.channel = channel

    async def publish_change(self, stream: str, snapshot: Snapshot) -> int:
        payload: Dict[str, Any] = {
            "stream": stream,
            "timestamp": snapshot.timestamp.isoformat(),
            "snapshot": snapshot.model_dump(mode="json"),
        }
        return await self.r.publish(self.channel, json.dumps(payload))
