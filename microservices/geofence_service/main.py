"""
Geofence Microservice

Receives GPS position reports from a tracking device, appends them to the
GPS log and sends a webhook alert when the device is inside a configured
region.

Port: 8230
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from core.config import get_settings
from core.logger import setup_service_logger

from .factory import create_geofence_service
from .geofence_service import GeofenceService
from .models import GeofenceServiceStatus, IngestResponse, IngestStatus

# Initialize configuration
settings = get_settings()

# Setup logger
logger = setup_service_logger("geofence_service")

DIAGNOSTIC_MESSAGE = (
    "GPS Tracker Webhook is running. "
    "Use /api/v1/gps/check-latest for debugging."
)

# Client errors are the caller's fault; everything else is ours
CLIENT_ERROR_TYPES = {"MalformedRequestError", "InvalidPayloadError"}


class GeofenceMicroservice:
    def __init__(self):
        self.service: Optional[GeofenceService] = None
        self.database = None
        self.notifier = None

    async def initialize(self):
        from .clients.webhook_client import WebhookNotificationClient
        from .geofence_repository import GeofenceDatabase

        self.database = GeofenceDatabase(settings.infrastructure, settings.geofence)
        try:
            await self.database.initialize()
            logger.info("✅ Geofence database initialized")
        except Exception as e:
            logger.error(f"❌ Failed to initialize geofence database: {e}")

        self.notifier = WebhookNotificationClient.from_config(settings.geofence)
        if not self.notifier.is_configured:
            logger.warning("⚠️  Webhook URL is not configured; alerts will be skipped")

        # Create service with real dependencies using factory
        self.service = create_geofence_service(
            settings=settings,
            database=self.database,
            notifier=self.notifier,
        )
        logger.info("Geofence service initialized")

    async def shutdown(self):
        if self.notifier:
            try:
                await self.notifier.close()
            except Exception as e:
                logger.error(f"Error closing webhook client: {e}")
        if self.database:
            try:
                await self.database.close()
            except Exception as e:
                logger.error(f"Error closing database pool: {e}")
        logger.info("Geofence service shutting down")


# Global instance
microservice = GeofenceMicroservice()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management"""
    logger.info("Starting Geofence Service...")
    await microservice.initialize()

    yield

    await microservice.shutdown()


# Create FastAPI app
app = FastAPI(
    title="Geofence Service",
    description="GPS logging with rectangular geofences and webhook alerts",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==================== Helper Functions ====================


def get_geofence_service() -> GeofenceService:
    """Dependency returning the running service instance"""
    if microservice.service is None:
        raise HTTPException(status_code=503, detail="Geofence service not initialized")
    return microservice.service


def _to_json_response(result: IngestResponse) -> JSONResponse:
    if result.status == IngestStatus.SUCCESS:
        status_code = 200
    elif result.error_type in CLIENT_ERROR_TYPES:
        status_code = 400
    elif result.error_type == "NoData":
        status_code = 404
    else:
        status_code = 500
    return JSONResponse(
        status_code=status_code,
        content=result.model_dump(mode="json", exclude_none=True),
    )


# ==================== Health Check ====================


@app.get("/health")
async def health_check(service: GeofenceService = Depends(get_geofence_service)):
    """Health check endpoint"""
    try:
        db_connected = await service.check_connection()

        status = GeofenceServiceStatus(
            status="operational" if db_connected else "degraded",
            database_connected=db_connected,
            webhook_configured=service.config.webhook_configured,
            timestamp=datetime.now(timezone.utc),
        )
        return status.model_dump(mode="json")

    except Exception as e:
        logger.error(f"Health check error: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "service": "geofence_service",
                "error": str(e),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )


# ==================== GPS Ingest ====================


@app.get("/", response_class=PlainTextResponse)
@app.get("/api/v1/gps/ingest", response_class=PlainTextResponse)
async def diagnostic():
    """Availability check for the device endpoint"""
    return DIAGNOSTIC_MESSAGE


@app.post("/")
@app.post("/api/v1/gps/ingest")
async def ingest_position(
    request: Request,
    service: GeofenceService = Depends(get_geofence_service),
):
    """Record a GPS position report and check it against all regions"""
    logger.info("GPS ingest received a request")
    raw_body = await request.body()
    result = await service.handle(raw_body)
    return _to_json_response(result)


@app.post("/api/v1/gps/check-latest")
async def check_latest_position(service: GeofenceService = Depends(get_geofence_service)):
    """Re-run the region check against the newest logged position"""
    result = await service.check_latest_position()
    return _to_json_response(result)


# ==================== Server Entry Point ====================

if __name__ == "__main__":
    import uvicorn

    port = settings.geofence.service_port
    host = settings.geofence.service_host

    logger.info(f"Starting Geofence Service on {host}:{port}")

    uvicorn.run(
        "microservices.geofence_service.main:app",
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )
