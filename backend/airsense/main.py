import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from airsense.config import MQTT_ENABLED
from airsense.database import init_db
from airsense.errors import (
    AirSenseError,
    MalformedPayloadError,
    NotFoundError,
    PartialDispatchError,
    PersistenceError,
    TransportUnavailableError,
    ValidationError,
)
from airsense.logging_config import setup_logging
from airsense.mqtt import MQTTTransport
from airsense.routes.commands import router as commands_router
from airsense.routes.devices import router as devices_router
from airsense.routes.live import router as live_router
from airsense.routes.notifications import router as notifications_router
from airsense.routes.readings import router as readings_router
from airsense.schemas import DeviceOut
from airsense.services.ingest_service import handle_message

# Initialize logging before anything else
setup_logging()
logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 5


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("AirSense starting up")
    await init_db()

    transport = None
    if MQTT_ENABLED:
        transport = MQTTTransport()
        transport.set_message_handler(handle_message)
        transport.connect()
    else:
        logger.info("MQTT disabled, running API only")
    app.state.transport = transport
    logger.info("API docs available at http://localhost:8000/docs")

    yield

    if transport is not None:
        transport.disconnect()
    logger.info("AirSense shut down")


app = FastAPI(title="AirSense", version="0.1.0", lifespan=lifespan)
logger.info("FastAPI app created")

# Include routers
app.include_router(devices_router)
app.include_router(readings_router)
app.include_router(notifications_router)
app.include_router(commands_router)
app.include_router(live_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)


# --- Error mapping ---


@app.exception_handler(ValidationError)
@app.exception_handler(MalformedPayloadError)
async def bad_request_handler(request: Request, exc: AirSenseError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(TransportUnavailableError)
async def transport_unavailable_handler(request: Request, exc: TransportUnavailableError):
    content = {"detail": str(exc)}
    if isinstance(exc, PartialDispatchError) and exc.device is not None:
        content["device"] = DeviceOut.model_validate(exc.device).model_dump(
            mode="json", by_alias=True
        )
    return JSONResponse(
        status_code=503,
        content=content,
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )


@app.exception_handler(PersistenceError)
async def persistence_handler(request: Request, exc: PersistenceError):
    logger.error("Storage error on %s %s: %s", request.method, request.url.path, exc.__cause__ or exc)
    return JSONResponse(status_code=500, content={"detail": "Internal storage error"})


@app.exception_handler(AirSenseError)
async def airsense_error_handler(request: Request, exc: AirSenseError):
    logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/api/health")
async def health_check():
    return {"status": "ok"}
