"""
Geofence Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from typing import List, Optional, Protocol, runtime_checkable

# Import only models (no I/O dependencies)
from .models import DeliveryResult, LogEntry, Region, RegionStateUpdate


# Custom exceptions - defined here to avoid importing repository
class GeofenceServiceError(Exception):
    """Base exception for geofence service errors"""
    pass


class MalformedRequestError(GeofenceServiceError):
    """Request carries no body at all"""
    pass


class InvalidPayloadError(GeofenceServiceError):
    """Body is not a JSON object or latitude/longitude are not finite numbers"""
    pass


class StoreUnavailableError(GeofenceServiceError):
    """Log or region store read/write failed"""
    pass


class DeliveryFailureError(GeofenceServiceError):
    """Outbound notification could not be delivered"""
    pass


@runtime_checkable
class GpsLogRepositoryProtocol(Protocol):
    """
    Interface for the GPS log store.

    Implementations must provide these methods.
    Used for dependency injection to enable testing.
    """

    async def append_row(self, entry: LogEntry) -> None:
        """Insert the entry as the newest row of the log"""
        ...

    async def latest_entry(self) -> Optional[LogEntry]:
        """Newest log row, or None when the log is empty"""
        ...

    async def check_connection(self) -> bool:
        """Whether the store is reachable"""
        ...


@runtime_checkable
class RegionRepositoryProtocol(Protocol):
    """Interface for the region store"""

    async def list_regions(self) -> List[Region]:
        """All regions in the store's natural row order"""
        ...

    async def update_region(self, region_id: str, update: RegionStateUpdate) -> bool:
        """
        Write notification state for a region.

        Returns False when the region is gone or its stored quota no longer
        matches update.expected_remaining_sends.
        """
        ...


@runtime_checkable
class NotifierProtocol(Protocol):
    """Interface for the outbound notification channel"""

    async def send(self, message: str) -> DeliveryResult:
        """Single delivery attempt; raises DeliveryFailureError on failure"""
        ...
