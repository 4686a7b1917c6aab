import json
from typing import Optional

from core.logger import store_logger

MIRROR_FIELDS = (
    "minVWC", "maxVWC", "optimalVWC", "wateringThreshold",
    "currentVWC", "lastWatered", "species", "commonName",
)
DEVICE_FIELDS = ("deviceConnected", "deviceIP", "devicePort", "connectedAt")


def mirror_key(user_id: str, plant_id: str) -> str:
    return f"plants:{user_id}:{plant_id}"


class MirrorStore:
    """
    Reduced copy of each plant kept in Redis for the watering device.

    Every value is stored JSON-encoded in one hash per plant. The primary
    store stays authoritative: callers use ``sync`` so a Redis outage never
    fails a request.
    """

    def __init__(self, redis):
        self.redis = redis

    async def write(self, user_id: str, plant_id: str, data: dict):
        key = mirror_key(user_id, plant_id)
        await self.redis.delete(key)
        await self.update(user_id, plant_id, data)

    async def update(self, user_id: str, plant_id: str, changes: dict):
        mapping = {field: json.dumps(value) for field, value in changes.items() if value is not None}
        cleared = [field for field, value in changes.items() if value is None]

        key = mirror_key(user_id, plant_id)
        if mapping:
            await self.redis.hset(key, mapping=mapping)
        if cleared:
            await self.redis.hdel(key, *cleared)

    async def clear_device(self, user_id: str, plant_id: str):
        await self.update(user_id, plant_id, {
            "deviceConnected": False,
            "deviceIP": None,
            "devicePort": None,
            "connectedAt": None,
        })

    async def read(self, user_id: str, plant_id: str) -> Optional[dict]:
        raw = await self.redis.hgetall(mirror_key(user_id, plant_id))
        if not raw:
            return None
        return {field: json.loads(value) for field, value in raw.items()}

    async def delete(self, user_id: str, plant_id: str):
        await self.redis.delete(mirror_key(user_id, plant_id))

    async def sync(self, operation: str, *args) -> bool:
        """Run one of the mirror operations above; log and report failure instead of raising."""
        try:
            await getattr(self, operation)(*args)
        except Exception as e:
            store_logger.log_error(f"mirror.{operation}", e)
            return False
        return True
