import threading
import uuid

import pytest

from models.plant import Plant
from schemas.care import WateringGuidelines
from services.care_generator import fallback_care_instructions
from services.mirror_store import MirrorStore, mirror_key
from services.plant_identifier import BestMatch
from services.plant_store import PlantStore
from tests.conftest import BrokenRedis

MATCH = BestMatch(
    scientific_name="Monstera deliciosa",
    common_name="Swiss cheese plant",
    family="Araceae",
    confidence=0.87,
)


class FailingImages:

    def upload(self, *args):
        raise OSError("bucket unavailable")

    def delete(self, *args):
        raise OSError("bucket unavailable")


async def test_create_writes_record_mirror_and_image(store, redis_client, bucket):
    care = fallback_care_instructions("Monstera deliciosa")

    saved = await store.create("user-1", MATCH, care, image=b"jpeg-bytes")

    plant = await Plant.get(id=saved["id"])
    assert plant.user_id == "user-1"
    assert plant.species == "Monstera deliciosa"
    assert plant.common_name == "Swiss cheese plant"
    assert plant.family == "Araceae"
    assert plant.min_vwc == 15 and plant.max_vwc == 45
    assert plant.optimal_vwc == 30 and plant.watering_threshold == 20
    assert plant.current_vwc == 0
    assert plant.care_instructions["soilMoisture"]["optimalVWC"] == 30

    assert saved["imageUrl"] == f"http://test/storage/plants/user-1/{saved['id']}/plant_image.jpg"
    assert bucket.path_for("user-1", saved["id"]).read_bytes() == b"jpeg-bytes"

    mirrored = await store.mirror.read("user-1", saved["id"])
    assert mirrored["species"] == "Monstera deliciosa"
    assert mirrored["commonName"] == "Swiss cheese plant"
    assert mirrored["wateringThreshold"] == 20
    assert mirrored["currentVWC"] == 0
    assert "careInstructions" not in mirrored


async def test_create_without_care_uses_default_thresholds(store):
    saved = await store.create("user-1", MATCH, None)

    assert saved["careInstructions"] is None
    assert (saved["minVWC"], saved["maxVWC"], saved["optimalVWC"], saved["wateringThreshold"]) == (15, 45, 30, 20)
    assert saved["imageUrl"] is None


async def test_image_upload_failure_keeps_the_record(db, redis_client):
    store = PlantStore(mirror=MirrorStore(redis_client), images=FailingImages())

    saved = await store.create("user-1", MATCH, None, image=b"jpeg-bytes")

    assert saved["imageUrl"] is None
    assert await Plant.exists(id=saved["id"])


async def test_mirror_failure_does_not_fail_create(db, bucket):
    store = PlantStore(mirror=MirrorStore(BrokenRedis()), images=bucket)

    saved = await store.create("user-1", MATCH, None)

    assert await Plant.exists(id=saved["id"])


async def test_records_are_scoped_to_their_owner(store):
    saved = await store.create("user-1", MATCH, None)
    await store.create("user-2", MATCH, None)

    assert [str(p.id) for p in await store.list("user-1")] == [saved["id"]]
    assert await store.get("user-2", saved["id"]) is None
    assert await store.get("user-1", "not-a-uuid") is None


async def test_delete_cascades(store, redis_client, bucket):
    saved = await store.create("user-1", MATCH, None, image=b"jpeg-bytes")
    image_path = bucket.path_for("user-1", saved["id"])

    assert await store.delete("user-1", saved["id"]) is True

    assert not await Plant.exists(id=saved["id"])
    assert await redis_client.exists(mirror_key("user-1", saved["id"])) == 0
    assert not image_path.exists()


async def test_delete_missing_record(store):
    assert await store.delete("user-1", str(uuid.uuid4())) is False


async def test_delete_with_mirror_down_still_removes_record(db, redis_client, bucket):
    store = PlantStore(mirror=MirrorStore(redis_client), images=bucket)
    saved = await store.create("user-1", MATCH, None, image=b"jpeg-bytes")

    store.mirror = MirrorStore(BrokenRedis())
    assert await store.delete("user-1", saved["id"]) is True

    assert not await Plant.exists(id=saved["id"])
    assert not bucket.path_for("user-1", saved["id"]).exists()
    # deleting again is a plain "not found"
    assert await store.delete("user-1", saved["id"]) is False


async def test_delete_with_image_failure_still_removes_record(db, redis_client):
    store = PlantStore(mirror=MirrorStore(redis_client), images=FailingImages())
    plant = await Plant.create(user_id="user-1", species="Ficus", image_url="http://test/x.jpg")

    assert await store.delete("user-1", str(plant.id)) is True
    assert not await Plant.exists(id=plant.id)


async def test_update_moisture(store):
    saved = await store.create("user-1", MATCH, None)
    before = (await Plant.get(id=saved["id"])).last_watered

    plant = await store.update_moisture("user-1", saved["id"], 27.5)
    assert plant.current_vwc == 27.5
    assert plant.last_watered == before

    plant = await store.update_moisture("user-1", saved["id"], 41, watered=True)
    assert plant.last_watered != before

    mirrored = await store.mirror.read("user-1", saved["id"])
    assert mirrored["currentVWC"] == 41
    assert mirrored["lastWatered"] == plant.last_watered.isoformat()


async def test_update_moisture_unknown_plant(store):
    assert await store.update_moisture("user-1", str(uuid.uuid4()), 10) is None


async def test_read_moisture_falls_back_to_primary(store, redis_client):
    saved = await store.create("user-1", MATCH, None)
    await redis_client.delete(mirror_key("user-1", saved["id"]))

    reading = await store.read_moisture("user-1", saved["id"])

    assert reading["species"] == "Monstera deliciosa"
    assert reading["optimalVWC"] == 30
    assert reading["currentVWC"] == 0


async def test_connect_and_disconnect(store):
    saved = await store.create("user-1", MATCH, None)
    plant = await store.get("user-1", saved["id"])

    await store.mark_connected("user-1", plant, "192.168.86.62", 8080)

    data = (await store.get("user-1", saved["id"])).to_dict()
    assert data["deviceConnected"] is True
    assert data["deviceIP"] == "192.168.86.62"
    assert data["devicePort"] == 8080
    assert data["connectedAt"] is not None
    mirrored = await store.mirror.read("user-1", saved["id"])
    assert mirrored["deviceIP"] == "192.168.86.62"

    await store.mark_disconnected("user-1", saved["id"])

    data = (await store.get("user-1", saved["id"])).to_dict()
    assert data["deviceConnected"] is False
    assert "deviceIP" not in data
    mirrored = await store.mirror.read("user-1", saved["id"])
    assert mirrored["deviceConnected"] is False
    assert "deviceIP" not in mirrored


async def test_disconnect_survives_mirror_outage(db, bucket):
    store = PlantStore(mirror=MirrorStore(BrokenRedis()), images=bucket)
    plant = await Plant.create(user_id="user-1", species="Ficus", device_connected=True,
                               device_ip="10.0.0.2", device_port=8080)

    await store.mark_disconnected("user-1", str(plant.id))

    await plant.refresh_from_db()
    assert plant.device_connected is False
    assert plant.device_ip is None


async def test_create_from_guidelines(store):
    guidelines = WateringGuidelines(minVWC=10, maxVWC=40, waterIntervalDays=5)

    plant = await store.create_from_guidelines("user-1", "Ficus lyrata", "https://img.example/f.jpg", guidelines)

    assert plant.min_vwc == 10 and plant.max_vwc == 40
    assert plant.min_vwc <= plant.watering_threshold <= plant.optimal_vwc <= plant.max_vwc
    assert plant.to_dict()["waterIntervalDays"] == 5


class RecordingImages:

    def __init__(self, bucket):
        self.bucket = bucket
        self.threads = []

    def upload(self, *args):
        self.threads.append(threading.current_thread())
        return self.bucket.upload(*args)

    def delete(self, *args):
        self.threads.append(threading.current_thread())
        return self.bucket.delete(*args)


async def test_image_io_runs_off_the_event_loop(db, redis_client, bucket):
    images = RecordingImages(bucket)
    store = PlantStore(mirror=MirrorStore(redis_client), images=images)

    saved = await store.create("user-1", MATCH, None, image=b"jpeg-bytes")
    await store.delete("user-1", saved["id"])

    assert len(images.threads) == 2
    assert threading.current_thread() not in images.threads


async def test_failed_insert_leaves_no_image_behind(store, bucket, monkeypatch):
    async def failing_create(**kwargs):
        raise OSError("database unavailable")

    monkeypatch.setattr(Plant, "create", failing_create)

    with pytest.raises(OSError):
        await store.create("user-1", MATCH, None, image=b"jpeg-bytes")

    assert not any(path.is_file() for path in bucket.root.rglob("*"))


async def test_partial_mirror_is_filled_from_primary(db, redis_client, bucket):
    store = PlantStore(mirror=MirrorStore(BrokenRedis()), images=bucket)
    saved = await store.create("user-1", MATCH, None)

    # mirror comes back; the next push only carries the reading
    store.mirror = MirrorStore(redis_client)
    await store.update_moisture("user-1", saved["id"], 22.0)

    reading = await store.read_moisture("user-1", saved["id"])

    assert reading["currentVWC"] == 22.0
    assert (reading["minVWC"], reading["maxVWC"], reading["optimalVWC"]) == (15, 45, 30)
    assert reading["wateringThreshold"] == 20
    assert reading["species"] == "Monstera deliciosa"
    assert reading["commonName"] == "Swiss cheese plant"

    mirrored = await store.mirror.read("user-1", saved["id"])
    assert mirrored["minVWC"] == 15
    assert mirrored["currentVWC"] == 22.0


async def test_stale_mirror_entry_of_deleted_plant_is_not_served(db, redis_client, bucket):
    store = PlantStore(mirror=MirrorStore(redis_client), images=bucket)
    saved = await store.create("user-1", MATCH, None)

    store.mirror = MirrorStore(BrokenRedis())
    assert await store.delete("user-1", saved["id"]) is True

    store.mirror = MirrorStore(redis_client)
    assert await store.mirror.read("user-1", saved["id"]) is not None
    assert await store.read_moisture("user-1", saved["id"]) is None
