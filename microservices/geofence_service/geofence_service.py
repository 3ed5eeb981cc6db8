"""
Geofence Service - Business Logic Layer

Ingests GPS position reports, records them in the log and notifies the
configured channel for every region the position fires.

Uses dependency injection for testability.
- Repositories and notifier are injected, not created at import time
- Configuration is passed in explicitly
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Union

from core.config.geofence_config import GeofenceConfig

from .geofence_evaluator import GeofenceEvaluator, parse_finite_float
from .models import (
    DecisionReason,
    FireDecision,
    IngestResponse,
    IngestStatus,
    LogEntry,
    PositionReport,
    RegionStateUpdate,
)
from .protocols import (
    GpsLogRepositoryProtocol,
    InvalidPayloadError,
    MalformedRequestError,
    NotifierProtocol,
    RegionRepositoryProtocol,
)

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Data recorded and checked successfully"
MISSING_BODY_MESSAGE = "Request body is missing or empty."
INVALID_COORDINATES_MESSAGE = "Invalid latitude or longitude."


def _reject_constant(name: str):
    # NaN/Infinity are not JSON and jsonb refuses them
    raise ValueError(f"non-standard JSON constant {name}")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GeofenceService:
    """
    Geofence alert business logic

    Orchestrates the log store, the evaluator, the notifier and the region
    store for each inbound report.
    """

    def __init__(
        self,
        log_repository: GpsLogRepositoryProtocol,
        region_repository: RegionRepositoryProtocol,
        notifier: NotifierProtocol,
        config: Optional[GeofenceConfig] = None,
        evaluator: Optional[GeofenceEvaluator] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize service with injected dependencies.

        Args:
            log_repository: GPS log store (inject mock for testing)
            region_repository: Region store (inject mock for testing)
            notifier: Outbound notification channel
            config: Service configuration
            evaluator: Geofence evaluator (built from config if omitted)
            clock: Source of the current time
        """
        self.config = config or GeofenceConfig()
        self.log_repository = log_repository
        self.region_repository = region_repository
        self.notifier = notifier
        self.evaluator = evaluator or GeofenceEvaluator(
            cooldown_fail_open=self.config.cooldown_fail_open
        )
        self.clock = clock
        # Serializes read-evaluate-write on region state within this process
        self._region_lock = asyncio.Lock()

        logger.info("Geofence service initialized")

    async def check_connection(self) -> bool:
        """Check store connection"""
        try:
            return await self.log_repository.check_connection()
        except Exception as e:
            logger.error(f"Store connection check failed: {e}")
            return False

    # ==================== Ingest ====================

    async def handle(self, raw_body: Union[bytes, str, None]) -> IngestResponse:
        """
        Process one inbound position report.

        Never raises: every failure is returned as an error response.

        Args:
            raw_body: Raw request body

        Returns:
            IngestResponse
        """
        try:
            report = self.parse_report(raw_body)
            now = self.clock()

            entry = LogEntry.from_report(report, recorded_at=now)
            await self.log_repository.append_row(entry)
            logger.info(
                f"GPS data recorded: lat={report.latitude}, lon={report.longitude}"
            )

            await self.check_location_and_notify(report.latitude, report.longitude, now)

            return IngestResponse(status=IngestStatus.SUCCESS, message=SUCCESS_MESSAGE)

        except (MalformedRequestError, InvalidPayloadError) as e:
            logger.warning(f"Rejected GPS report: {e}")
            return self._error_response(e)
        except Exception as e:
            logger.error(f"Error handling GPS report: {e}", exc_info=True)
            return self._error_response(e)

    def parse_report(self, raw_body: Union[bytes, str, None]) -> PositionReport:
        """
        Parse and validate a raw request body.

        Raises:
            MalformedRequestError: no body at all
            InvalidPayloadError: not a JSON object, or latitude/longitude unusable
        """
        if raw_body is None or len(raw_body) == 0:
            raise MalformedRequestError(MISSING_BODY_MESSAGE)

        logger.debug(f"Raw POST data: {raw_body!r}")
        try:
            payload = json.loads(raw_body, parse_constant=_reject_constant)
        except (ValueError, UnicodeDecodeError) as e:
            raise InvalidPayloadError(f"Request body is not valid JSON: {e}") from e

        return self.report_from_payload(payload)

    @staticmethod
    def report_from_payload(payload: Any) -> PositionReport:
        """Build a PositionReport from decoded JSON"""
        if not isinstance(payload, dict):
            raise InvalidPayloadError("Request body must be a JSON object.")

        latitude = parse_finite_float(payload.get("latitude"))
        longitude = parse_finite_float(payload.get("longitude"))
        if latitude is None or longitude is None:
            raise InvalidPayloadError(INVALID_COORDINATES_MESSAGE)

        return PositionReport(
            latitude=latitude,
            longitude=longitude,
            timestamp=payload.get("timestamp"),
            distance=payload.get("distance"),
            altitude=payload.get("altitude"),
        )

    # ==================== Evaluation / Notification ====================

    async def check_location_and_notify(
        self,
        latitude: float,
        longitude: float,
        now: Optional[datetime] = None,
    ) -> List[FireDecision]:
        """
        Evaluate all stored regions and apply the side effects of each firing.

        Args:
            latitude: Current latitude
            longitude: Current longitude
            now: Evaluation and notification time

        Returns:
            All decisions, in region store order
        """
        now = now or self.clock()
        point = PositionReport(latitude=latitude, longitude=longitude)
        logger.info(f"Checking location: lat={latitude}, lon={longitude}")

        async with self._region_lock:
            regions = await self.region_repository.list_regions()
            if not regions:
                logger.info("No region data found")
                return []

            decisions = self.evaluator.evaluate(point, regions, now)
            for decision in decisions:
                if decision.cooldown_fail_open:
                    logger.warning(
                        f"Cooldown for region '{decision.region.name}' failed open"
                    )
                if decision.fire:
                    await self._fire(decision, now)
                elif decision.reason in (DecisionReason.COOLDOWN, DecisionReason.QUOTA):
                    logger.info(
                        f"Skipping notification for '{decision.region.name}' "
                        f"due to {decision.reason.value} restriction"
                    )

        return decisions

    async def _fire(self, decision: FireDecision, now: datetime) -> None:
        """Notify, then record the firing; each step is best-effort"""
        region = decision.region
        message = f"Here is {region.name}."
        logger.info(f"All conditions met for '{region.name}'. Sending notification.")

        try:
            result = await self.notifier.send(message)
            if result.skipped:
                logger.warning(f"Notification for '{region.name}' was not sent: {result.error}")
        except Exception as e:
            logger.error(f"Failed to send notification for '{region.name}': {e}")

        update = RegionStateUpdate(
            last_notified_at=now,
            remaining_sends=decision.remaining_sends - 1,
            expected_remaining_sends=region.remaining_sends,
        )
        try:
            updated = await self.region_repository.update_region(region.region_id, update)
            if updated:
                logger.info(
                    f"Updated region {region.region_id}: last sent time and count "
                    f"({update.remaining_sends} remaining)"
                )
            else:
                logger.warning(
                    f"Region {region.region_id} changed before its state could be updated"
                )
        except Exception as e:
            logger.error(f"Failed to update region {region.region_id}: {e}", exc_info=True)

    # ==================== Operator Check ====================

    async def check_latest_position(self) -> IngestResponse:
        """
        Re-run the region check against the newest log entry.

        Nothing is appended to the log. Regions that fire are notified and
        updated exactly as during ingest.
        """
        try:
            entry = await self.log_repository.latest_entry()
            if entry is None:
                return IngestResponse(
                    status=IngestStatus.ERROR,
                    message="No GPS data recorded yet.",
                    error_type="NoData",
                )

            latitude = parse_finite_float(entry.latitude)
            longitude = parse_finite_float(entry.longitude)
            if latitude is None or longitude is None:
                return IngestResponse(
                    status=IngestStatus.ERROR,
                    message="Latest GPS entry has no valid latitude/longitude.",
                    error_type="InvalidPayloadError",
                )

            logger.info("--- Running check against latest GPS entry ---")
            decisions = await self.check_location_and_notify(latitude, longitude)
            fired = [str(d.region.name) for d in decisions if d.fire]
            return IngestResponse(
                status=IngestStatus.SUCCESS,
                message=f"Checked latest position; {len(fired)} region(s) fired",
                fired_regions=fired,
            )

        except Exception as e:
            logger.error(f"Error checking latest position: {e}", exc_info=True)
            return self._error_response(e)

    @staticmethod
    def _error_response(error: Exception) -> IngestResponse:
        return IngestResponse(
            status=IngestStatus.ERROR,
            message=str(error) or error.__class__.__name__,
            error_type=error.__class__.__name__,
        )
