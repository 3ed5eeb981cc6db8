"""
Geofence Service Microservice

GPS position logging with rectangular geofences and rate-limited webhook alerts
"""

from .geofence_evaluator import COOLDOWN_FAIL_OPEN, GeofenceEvaluator, evaluate
from .geofence_service import GeofenceService
from .models import (
    DecisionReason,
    DeliveryResult,
    FireDecision,
    IngestResponse,
    IngestStatus,
    LogEntry,
    PositionReport,
    Region,
    RegionStateUpdate,
)

__version__ = "1.0.0"
__all__ = [
    "COOLDOWN_FAIL_OPEN",
    "GeofenceEvaluator",
    "evaluate",
    "GeofenceService",
    "DecisionReason",
    "DeliveryResult",
    "FireDecision",
    "IngestResponse",
    "IngestStatus",
    "LogEntry",
    "PositionReport",
    "Region",
    "RegionStateUpdate",
]
