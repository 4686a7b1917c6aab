import asyncio
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware import Middleware
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.v1.identify import router as identify_router
from api.v1.plants import router as plants_router
from api.v1.devices import router as devices_router
from api.v1.moisture import router as moisture_router
from core.cache import create_redis_client
from core.config import settings
from core.logger import app_logger
from init_db import init_db, close_db
from services.care_generator import CareInstructionGenerator
from services.device_bridge import DeviceBridge
from services.image_processor import ImageProcessor
from services.image_storage import ImageStorage
from services.mirror_store import MirrorStore
from services.plant_identifier import PlantNetClient, PlantIdentifierService
from services.plant_store import PlantStore

middleware = [
    Middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
]

app = FastAPI(
    title="PlantIt Backend",
    middleware=middleware
)

# plant photos are public, like a public bucket
app.mount(
    "/storage",
    StaticFiles(directory=settings.STORAGE_BUCKET or "storage", check_dir=False),
    name="storage",
)


def build_services(app: FastAPI, redis=None):
    """Construct the external clients once and hand them to the request handlers via app.state."""
    care = CareInstructionGenerator()
    store = PlantStore(
        mirror=MirrorStore(redis or create_redis_client()),
        images=ImageStorage(),
    )

    app.state.care = care
    app.state.store = store
    app.state.identifier = PlantIdentifierService(
        processor=ImageProcessor(),
        plantnet=PlantNetClient(),
        care=care,
        store=store,
    )
    app.state.devices = DeviceBridge()


@app.on_event("startup")
async def startup():
    settings.validate()
    Path(settings.STORAGE_BUCKET).mkdir(parents=True, exist_ok=True)

    await init_db()
    build_services(app)
    app_logger.info("PlantIt backend started")

    app.state.openai_check = asyncio.create_task(app.state.care.check_connection())


@app.on_event("shutdown")
async def shutdown():
    await close_db()
    store = getattr(app.state, "store", None)
    if store is not None:
        await store.mirror.redis.aclose()


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "Validation failed", "details": details})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    app_logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Internal server error", "details": str(exc)})


@app.get("/api/health", tags=["Health"])
async def health():
    return {"status": "ok"}


app.include_router(identify_router)
app.include_router(plants_router)
app.include_router(devices_router)
app.include_router(moisture_router)
