"""
Geofence Service - Data Models

GPS position reports, the persisted log entry, region definitions with their
notification state, and the per-region decisions made by the evaluator.
"""

from pydantic import BaseModel, Field
from typing import Optional, Any, List
from datetime import datetime
from enum import Enum


class DecisionReason(str, Enum):
    """Why a region did or did not fire"""
    INERT = "inert"          # invalid static definition, permanently skipped
    OUTSIDE = "outside"      # point outside the tolerance box
    COOLDOWN = "cooldown"    # grace period not yet elapsed
    QUOTA = "quota"          # no sends remaining
    FIRED = "fired"


class IngestStatus(str, Enum):
    """Outcome reported to the inbound caller"""
    SUCCESS = "success"
    ERROR = "error"


# ==================== Position / Log Models ====================

class PositionReport(BaseModel):
    """Position report sent by the tracking device"""
    latitude: float = Field(..., allow_inf_nan=False)
    longitude: float = Field(..., allow_inf_nan=False)

    # Device supplied, passed through uninterpreted
    timestamp: Optional[Any] = None
    distance: Optional[Any] = None
    altitude: Optional[Any] = None


class LogEntry(BaseModel):
    """Append-only GPS log row, newest first"""
    log_id: Optional[int] = None
    recorded_at: datetime
    timestamp: Optional[Any] = None
    distance: Optional[Any] = None
    latitude: float
    longitude: float
    altitude: Optional[Any] = None

    @classmethod
    def from_report(cls, report: PositionReport, recorded_at: datetime) -> "LogEntry":
        return cls(
            recorded_at=recorded_at,
            timestamp=report.timestamp,
            distance=report.distance,
            latitude=report.latitude,
            longitude=report.longitude,
            altitude=report.altitude,
        )

    def to_row(self) -> List[Any]:
        """Ordered column values: recorded_at, timestamp, distance, latitude, longitude, altitude"""
        return [
            self.recorded_at,
            self.timestamp,
            self.distance,
            self.latitude,
            self.longitude,
            self.altitude,
        ]


# ==================== Region Models ====================

class Region(BaseModel):
    """
    Region definition as stored.

    Cells are edited by an operator directly in the store, so values are kept
    raw; the evaluator decides whether a region is usable.
    """
    region_id: str
    position: int = 0

    name: Optional[Any] = None
    center_lat: Optional[Any] = None
    center_lon: Optional[Any] = None
    lat_tolerance: Optional[Any] = None
    lon_tolerance: Optional[Any] = None

    # Mutable notification state
    last_notified_at: Optional[Any] = None
    grace_period: Optional[Any] = None  # "hours:minutes"
    remaining_sends: Optional[Any] = None


class RegionStateUpdate(BaseModel):
    """State written back after a region fires"""
    last_notified_at: datetime
    remaining_sends: int
    # Stored value the firing decision was based on; None skips the check
    expected_remaining_sends: Optional[Any] = None


class FireDecision(BaseModel):
    """Evaluator verdict for one region"""
    region: Region
    fire: bool
    reason: DecisionReason
    cooldown_fail_open: bool = False
    remaining_sends: Optional[int] = None
    next_eligible_at: Optional[datetime] = None


# ==================== Delivery / Response Models ====================

class DeliveryResult(BaseModel):
    """Result of a single webhook delivery attempt"""
    delivered: bool = False
    skipped: bool = False
    status_code: Optional[int] = None
    error: Optional[str] = None


class IngestResponse(BaseModel):
    """Structured status returned to the device"""
    status: IngestStatus
    message: str
    fired_regions: Optional[List[str]] = None

    # Error class name, used to pick the HTTP status; not serialized
    error_type: Optional[str] = Field(None, exclude=True)


class GeofenceServiceStatus(BaseModel):
    """Service health status"""
    service: str = "geofence_service"
    status: str = "operational"
    version: str = "1.0.0"
    database_connected: bool
    webhook_configured: bool
    timestamp: datetime
