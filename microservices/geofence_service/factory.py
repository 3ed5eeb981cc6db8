"""
Geofence Service Factory

Factory functions for creating service instances with real dependencies.
This is the ONLY place that imports I/O-dependent modules.

Usage:
    from .factory import create_geofence_service
    service = create_geofence_service(settings)
"""
from typing import Optional, TYPE_CHECKING

from core.config import AppConfig, get_settings

from .geofence_service import GeofenceService

if TYPE_CHECKING:
    from .clients.webhook_client import WebhookNotificationClient
    from .geofence_repository import GeofenceDatabase


def create_geofence_service(
    settings: Optional[AppConfig] = None,
    database: Optional["GeofenceDatabase"] = None,
    notifier: Optional["WebhookNotificationClient"] = None,
) -> GeofenceService:
    """
    Create GeofenceService with real dependencies.

    This function imports the real repositories and webhook client (which
    have I/O dependencies). Use this in production, NOT in tests.

    Args:
        settings: Application settings (defaults to global settings)
        database: Shared PostgreSQL pool owner
        notifier: Webhook client

    Returns:
        GeofenceService instance with real dependencies
    """
    # Import real dependencies here (not at module level)
    from .clients.webhook_client import WebhookNotificationClient
    from .geofence_repository import GeofenceDatabase, GpsLogRepository, RegionRepository

    settings = settings or get_settings()
    database = database or GeofenceDatabase(settings.infrastructure, settings.geofence)
    notifier = notifier or WebhookNotificationClient.from_config(settings.geofence)

    return GeofenceService(
        log_repository=GpsLogRepository(database),
        region_repository=RegionRepository(database),
        notifier=notifier,
        config=settings.geofence,
    )
