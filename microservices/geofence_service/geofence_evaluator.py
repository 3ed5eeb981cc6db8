"""
Geofence Evaluator

Pure decision logic: given a point and the stored regions, decide which
regions fire. Each region passes three gates independently:

1. spatial  - point inside the inclusive tolerance box
2. cooldown - grace period since the last notification has elapsed
3. quota    - remaining sends strictly greater than zero

Nothing here touches the stores or the notifier; the caller applies the
side effects prescribed by the returned decisions.
"""

import logging
import math
import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, List, Optional, Protocol, Tuple

from .models import DecisionReason, FireDecision, Region

logger = logging.getLogger(__name__)

# Unparseable grace period / last notified timestamp counts as "cooldown elapsed"
COOLDOWN_FAIL_OPEN = True

_INT_PREFIX = re.compile(r"^\s*([+-]?\d+)")


class PointLike(Protocol):
    latitude: float
    longitude: float


# ==================== Value Parsing ====================

def parse_finite_float(value: Any) -> Optional[float]:
    """
    Coerce a stored or reported value to a finite float.

    Numbers are taken as-is, strings are stripped and parsed. Booleans, NaN,
    infinities, integers beyond float range and anything unparseable give None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def parse_int(value: Any) -> Optional[int]:
    """
    Coerce a value to an integer with integer-prefix semantics.

    3, "3", 3.0 and "3.7" all give 3; "abc", None and booleans give None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        return int(value) if math.isfinite(float(value)) else None
    if isinstance(value, str):
        match = _INT_PREFIX.match(value)
        return int(match.group(1)) if match else None
    return None


def parse_grace_period(value: Any) -> timedelta:
    """
    Parse an "hours:minutes" grace period.

    Missing or non-numeric parts count as 0, so "2" is two hours and
    ":30" is thirty minutes. A timedelta is returned unchanged.
    """
    if isinstance(value, timedelta):
        return value
    parts = str(value).split(":")
    hours = parse_int(parts[0]) or 0
    minutes = (parse_int(parts[1]) or 0) if len(parts) > 1 else 0
    return timedelta(hours=hours, minutes=minutes)


def parse_timestamp(value: Any) -> datetime:
    """
    Parse a stored timestamp; naive values are taken as UTC.

    Raises:
        ValueError: value is neither a datetime nor an ISO-8601 string
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    else:
        raise ValueError(f"Unsupported timestamp value: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


# ==================== Evaluator ====================

class GeofenceEvaluator:
    """
    Decides which regions fire for a point.

    Stateless apart from the cooldown policy, so the same inputs always give
    the same decisions.
    """

    def __init__(self, cooldown_fail_open: bool = COOLDOWN_FAIL_OPEN):
        """
        Args:
            cooldown_fail_open: Treat an unparseable grace period or last
                notified timestamp as an elapsed cooldown
        """
        self.cooldown_fail_open = cooldown_fail_open

    def evaluate(
        self,
        point: PointLike,
        regions: List[Region],
        now: Optional[datetime] = None,
    ) -> List[FireDecision]:
        """
        Evaluate every region against the point, in store order.

        Args:
            point: Object with numeric latitude/longitude
            regions: Regions as returned by the region store
            now: Evaluation time (defaults to current UTC time)

        Returns:
            One FireDecision per region, in the same order
        """
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        return [
            self.evaluate_region(point.latitude, point.longitude, region, now)
            for region in regions
        ]

    def evaluate_region(
        self,
        latitude: float,
        longitude: float,
        region: Region,
        now: datetime,
    ) -> FireDecision:
        """Run the validity, spatial, cooldown and quota gates for one region"""
        geometry = self._parse_geometry(region)
        if geometry is None:
            logger.debug(
                f"Skipping region {region.region_id} (position {region.position}): "
                f"incomplete or invalid geo data"
            )
            return FireDecision(region=region, fire=False, reason=DecisionReason.INERT)

        center_lat, center_lon, lat_tolerance, lon_tolerance = geometry
        lat_min = center_lat - lat_tolerance
        lat_max = center_lat + lat_tolerance
        lon_min = center_lon - lon_tolerance
        lon_max = center_lon + lon_tolerance

        inside = lat_min <= latitude <= lat_max and lon_min <= longitude <= lon_max
        logger.debug(f"Region '{region.name}' ({region.region_id}): area match={inside}")
        if not inside:
            return FireDecision(region=region, fire=False, reason=DecisionReason.OUTSIDE)

        cooldown_ok, fail_open, next_eligible = self._check_cooldown(region, now)
        remaining = parse_int(region.remaining_sends)
        quota_ok = remaining is not None and remaining > 0
        logger.debug(
            f"Region '{region.name}': cooldown ok={cooldown_ok} "
            f"(next eligible {next_eligible}), sends={remaining}, quota ok={quota_ok}"
        )

        if not cooldown_ok:
            reason = DecisionReason.COOLDOWN
        elif not quota_ok:
            reason = DecisionReason.QUOTA
        else:
            reason = DecisionReason.FIRED

        return FireDecision(
            region=region,
            fire=reason == DecisionReason.FIRED,
            reason=reason,
            cooldown_fail_open=fail_open,
            remaining_sends=remaining,
            next_eligible_at=next_eligible,
        )

    @staticmethod
    def _parse_geometry(region: Region) -> Optional[Tuple[float, float, float, float]]:
        if _is_blank(region.name):
            return None
        values = (
            parse_finite_float(region.center_lat),
            parse_finite_float(region.center_lon),
            parse_finite_float(region.lat_tolerance),
            parse_finite_float(region.lon_tolerance),
        )
        if any(v is None for v in values):
            return None
        return values

    def _check_cooldown(
        self, region: Region, now: datetime
    ) -> Tuple[bool, bool, Optional[datetime]]:
        """
        Returns:
            (cooldown satisfied, failed open, next eligible time)
        """
        if _is_blank(region.last_notified_at) or _is_blank(region.grace_period):
            return True, False, None

        try:
            last_notified = parse_timestamp(region.last_notified_at)
            next_eligible = last_notified + parse_grace_period(region.grace_period)
        except (ValueError, TypeError, OverflowError) as e:
            logger.warning(
                f"Could not parse cooldown for region {region.region_id} "
                f"(last_notified_at={region.last_notified_at!r}, "
                f"grace_period={region.grace_period!r}): {e}"
            )
            return self.cooldown_fail_open, self.cooldown_fail_open, None

        return now > next_eligible, False, next_eligible


def evaluate(
    point: PointLike,
    regions: List[Region],
    now: Optional[datetime] = None,
    cooldown_fail_open: bool = COOLDOWN_FAIL_OPEN,
) -> List[FireDecision]:
    """Evaluate regions with a throwaway GeofenceEvaluator"""
    return GeofenceEvaluator(cooldown_fail_open=cooldown_fail_open).evaluate(point, regions, now)
