import os
import json
import tempfile
from io import BytesIO
from types import SimpleNamespace

# settings are read at import time
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("PLANTNET_API_KEY", "test-plantnet-key")
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ.setdefault("STORAGE_BUCKET", tempfile.mkdtemp(prefix="plantit-bucket-"))
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="plantit-logs-"))

import fakeredis
import httpx
import pytest
import requests
from PIL import Image
from tortoise import Tortoise

from core.security import create_access_token
from init_db import MODELS
from services.care_generator import fallback_care_instructions
from services.image_processor import ImageProcessor
from services.image_storage import ImageStorage
from services.mirror_store import MirrorStore
from services.plant_identifier import PlantNetClient, PlantIdentifierService
from services.plant_store import PlantStore
from services.device_bridge import DeviceBridge


def make_image(width=1200, height=800, fmt="PNG") -> bytes:
    """Noise image, large enough to pass the 50KB minimum."""
    image = Image.effect_noise((width, height), 64).convert("RGB")
    out = BytesIO()
    image.save(out, format=fmt)
    return out.getvalue()


PLANTNET_BODY = {
    "results": [
        {
            "score": 0.87,
            "species": {
                "scientificNameWithoutAuthor": "Monstera deliciosa",
                "commonNames": ["Swiss cheese plant"],
                "family": {"scientificNameWithoutAuthor": "Araceae"},
            },
        },
        {
            "score": 0.05,
            "species": {
                "scientificNameWithoutAuthor": "Philodendron bipinnatifidum",
                "commonNames": [],
                "family": {"scientificNameWithoutAuthor": "Araceae"},
            },
        },
    ]
}


class FakeResponse:

    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self._body = body
        self.text = text if text is not None else json.dumps(body)

    def json(self):
        if self._body is None:
            raise ValueError("no JSON body")
        return self._body

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


class FakeSession:
    """
    Stand-in for requests.Session. ``responses`` is consumed one item per call;
    exceptions are raised, anything else is returned. The last item repeats.
    """

    def __init__(self, responses=None, handler=None):
        self.responses = list(responses or [])
        self.handler = handler
        self.calls = []

    def _next(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        if self.handler is not None:
            result = self.handler(method, url, kwargs)
        else:
            result = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(result, Exception):
            raise result
        return result

    def post(self, url, **kwargs):
        return self._next("POST", url, kwargs)

    def get(self, url, **kwargs):
        return self._next("GET", url, kwargs)


class RecordingSleep:

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


class FakeCare:

    def __init__(self, guidelines=None):
        self.species = []
        self.guidelines = guidelines

    async def generate(self, species_name):
        self.species.append(species_name)
        return fallback_care_instructions(species_name)

    async def watering_guidelines(self, species_name):
        from core.exceptions import CareGenerationError
        if self.guidelines is None:
            raise CareGenerationError("model unavailable")
        return self.guidelines


class BrokenRedis:
    """Every command fails, like an unreachable server."""

    def __getattr__(self, name):
        async def fail(*args, **kwargs):
            raise ConnectionError(f"redis down ({name})")
        return fail


def fake_openai(*replies):
    """AsyncOpenAI look-alike; each reply is a dict (JSON body), a string, or an exception."""
    calls = []
    queue = list(replies)

    async def create(**kwargs):
        calls.append(kwargs)
        reply = queue.pop(0)
        if isinstance(reply, Exception):
            raise reply
        content = reply if isinstance(reply, str) else json.dumps(reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])

    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    return client, calls


def openai_request():
    return httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


@pytest.fixture
async def db():
    await Tortoise.init(db_url="sqlite://:memory:", modules={"models": MODELS})
    await Tortoise.generate_schemas()
    yield
    await Tortoise.close_connections()


@pytest.fixture
def redis_client():
    return fakeredis.FakeAsyncRedis(decode_responses=True)


@pytest.fixture
def bucket(tmp_path):
    return ImageStorage(root=str(tmp_path / "bucket"), public_base_url="http://test")


@pytest.fixture
def store(db, redis_client, bucket):
    return PlantStore(mirror=MirrorStore(redis_client), images=bucket)


@pytest.fixture
def plantnet_session():
    return FakeSession([FakeResponse(200, PLANTNET_BODY)])


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def care():
    return FakeCare()


@pytest.fixture
def device_session():
    return FakeSession([FakeResponse(200, {"status": "ok"})])


@pytest.fixture
async def client(store, care, plantnet_session, sleep, device_session):
    from main import app

    app.state.care = care
    app.state.store = store
    app.state.identifier = PlantIdentifierService(
        processor=ImageProcessor(),
        plantnet=PlantNetClient(session=plantnet_session, sleep=sleep),
        care=care,
        store=store,
    )
    app.state.devices = DeviceBridge(session=device_session, max_workers=8)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {create_access_token('user-1')}"}
