import uuid
from typing import List, Optional

from starlette.concurrency import run_in_threadpool
from tortoise import timezone

from core.exceptions import PersistenceError
from core.logger import store_logger
from models.plant import Plant
from schemas.care import CareInstructions, WateringGuidelines
from services.image_storage import ImageStorage
from services.mirror_store import MirrorStore, MIRROR_FIELDS

DEFAULT_THRESHOLDS = {"minVWC": 15, "maxVWC": 45, "optimalVWC": 30, "wateringThreshold": 20}


def parse_plant_id(plant_id) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(plant_id))
    except ValueError:
        return None


def mirror_fields(plant: Plant) -> dict:
    return {
        **plant.thresholds(),
        "currentVWC": plant.current_vwc,
        "lastWatered": plant.last_watered.isoformat() if plant.last_watered else None,
        "species": plant.species,
        "commonName": plant.common_name,
    }


class PlantStore:
    """
    Plant records in the primary store, plus their mirror entry and photo.

    Only the primary write decides whether an operation succeeded; mirror and
    image failures are logged and left behind.
    """

    def __init__(self, mirror: MirrorStore, images: ImageStorage):
        self.mirror = mirror
        self.images = images

    async def get(self, user_id: str, plant_id) -> Optional[Plant]:
        pk = parse_plant_id(plant_id)
        if pk is None:
            return None
        return await Plant.get_or_none(id=pk, user_id=user_id)

    async def list(self, user_id: str) -> List[Plant]:
        return await Plant.filter(user_id=user_id).order_by("-created_at").all()

    async def _upload_image(self, user_id: str, plant_id: str, image: Optional[bytes]) -> Optional[str]:
        if not image:
            return None
        try:
            return await run_in_threadpool(self.images.upload, user_id, plant_id, image)
        except Exception as e:
            store_logger.log_error("image.upload", e)
            return None

    async def create(self, user_id: str, match, care: Optional[CareInstructions], image: bytes = None) -> dict:
        thresholds = care.soilMoisture.model_dump() if care else DEFAULT_THRESHOLDS
        now = timezone.now()

        plant = await Plant.create(
            user_id=user_id,
            species=match.scientific_name,
            common_name=match.common_name or "Unknown",
            family=match.family or "Unknown",
            confidence=match.confidence,
            care_instructions=care.model_dump() if care else None,
            min_vwc=thresholds["minVWC"],
            max_vwc=thresholds["maxVWC"],
            optimal_vwc=thresholds["optimalVWC"],
            watering_threshold=thresholds["wateringThreshold"],
            current_vwc=0,
            created_at=now,
            last_watered=now,
        )

        # the photo lives under the record id, so it goes up once the record exists
        plant.image_url = await self._upload_image(user_id, str(plant.id), image)
        if plant.image_url:
            await plant.save(update_fields=["image_url"])

        data = plant.to_dict()
        store_logger.log_create("plants", data)

        await self.mirror.sync("write", user_id, str(plant.id), mirror_fields(plant))
        return data

    async def create_from_guidelines(self, user_id: str, species: str, image_url: str,
                                     guidelines: WateringGuidelines) -> Plant:
        low, high = sorted((guidelines.minVWC, guidelines.maxVWC))
        optimal = round((low + high) / 2, 1)
        now = timezone.now()

        plant = await Plant.create(
            user_id=user_id,
            species=species,
            image_url=image_url,
            min_vwc=low,
            max_vwc=high,
            optimal_vwc=optimal,
            watering_threshold=round((low + optimal) / 2, 1),
            water_interval_days=guidelines.waterIntervalDays,
            created_at=now,
            last_watered=now,
        )
        store_logger.log_create("plants", plant.to_dict())

        await self.mirror.sync("write", user_id, str(plant.id), mirror_fields(plant))
        return plant

    async def delete(self, user_id: str, plant_id) -> bool:
        """Remove the record, its mirror entry and its photo. False when the record does not exist."""
        plant = await self.get(user_id, plant_id)
        if plant is None:
            return False
        plant_id = str(plant.id)

        primary_error = None
        try:
            await plant.delete()
            store_logger.log_delete("plants", plant_id)
        except Exception as e:
            store_logger.log_error("plants.delete", e)
            primary_error = e

        if await self.mirror.sync("delete", user_id, plant_id):
            store_logger.log_delete("mirror", plant_id)

        if plant.image_url:
            try:
                if await run_in_threadpool(self.images.delete, user_id, plant_id):
                    store_logger.log_delete("images", plant_id)
            except Exception as e:
                store_logger.log_error("image.delete", e)

        if primary_error is not None:
            raise PersistenceError(f"Failed to delete plant {plant_id}: {primary_error}") from primary_error
        return True

    async def update_moisture(self, user_id: str, plant_id, current_vwc: float,
                              watered: bool = False) -> Optional[Plant]:
        plant = await self.get(user_id, plant_id)
        if plant is None:
            return None

        plant.current_vwc = current_vwc
        update_fields = ["current_vwc"]
        changes = {"currentVWC": current_vwc}
        if watered:
            plant.last_watered = timezone.now()
            update_fields.append("last_watered")
            changes["lastWatered"] = plant.last_watered.isoformat()

        await plant.save(update_fields=update_fields)
        store_logger.log_update("plants", str(plant.id), changes)

        await self.mirror.sync("update", user_id, str(plant.id), changes)
        return plant

    async def mark_connected(self, user_id: str, plant: Plant, device_ip: str, device_port: int) -> Plant:
        plant.device_connected = True
        plant.device_ip = device_ip
        plant.device_port = device_port
        plant.connected_at = timezone.now()
        await plant.save(update_fields=["device_connected", "device_ip", "device_port", "connected_at"])

        changes = {
            "deviceConnected": True,
            "deviceIP": device_ip,
            "devicePort": device_port,
            "connectedAt": plant.connected_at.isoformat(),
        }
        store_logger.log_update("plants", str(plant.id), changes)
        await self.mirror.sync("update", user_id, str(plant.id), changes)
        return plant

    async def mark_disconnected(self, user_id: str, plant_id) -> Optional[Plant]:
        plant = await self.get(user_id, plant_id)
        if plant is None:
            return None

        plant.device_connected = False
        plant.device_ip = None
        plant.device_port = None
        plant.connected_at = None
        await plant.save(update_fields=["device_connected", "device_ip", "device_port", "connected_at"])
        store_logger.log_update("plants", str(plant.id), {"deviceConnected": False})

        await self.mirror.sync("clear_device", user_id, str(plant.id))
        return plant

    async def read_moisture(self, user_id: str, plant_id) -> Optional[dict]:
        """
        Device view of a plant. Mirror values win; fields the mirror is missing
        come from the primary record and are written back. A plant that is gone
        from the primary store is gone, whatever the mirror still holds.
        """
        plant = await self.get(user_id, plant_id)
        if plant is None:
            return None

        data = None
        try:
            data = await self.mirror.read(user_id, str(plant.id))
        except Exception as e:
            store_logger.log_error("mirror.read", e)

        primary = mirror_fields(plant)
        missing = {field: primary[field] for field in MIRROR_FIELDS if field not in (data or {})}
        if any(value is not None for value in missing.values()):
            await self.mirror.sync("update", user_id, str(plant.id), missing)
        data = {**primary, **(data or {})}

        reading = {field: data.get(field) for field in MIRROR_FIELDS}
        reading["currentVWC"] = reading["currentVWC"] or 0
        return reading
