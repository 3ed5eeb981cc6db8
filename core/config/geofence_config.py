#!/usr/bin/env python3
"""Geofence service configuration

Identifies the store collections, the outbound notification channel and the
evaluation policy. An instance is passed explicitly to the service, the
repositories and the webhook client.
"""
import os
from dataclasses import dataclass, field
from typing import List

def _bool(val: str) -> bool:
    return val.lower() == "true"

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default

def _float(val: str, default: float) -> float:
    try:
        return float(val) if val else default
    except ValueError:
        return default


DEFAULT_WEBHOOK_URL = "https://discord.com/api/webhooks/xxxxxxxx/yyyyyyyy"
DEFAULT_PLACEHOLDER_MARKERS = ["xxxxxxxx", "yyyyyyyy"]


def webhook_url_configured(url: str, placeholder_markers: List[str]) -> bool:
    """False while the webhook URL is empty or still contains a placeholder marker"""
    url = (url or "").strip()
    if not url:
        return False
    return not any(marker and marker in url for marker in placeholder_markers)


@dataclass
class GeofenceConfig:
    """Geofence alert service settings"""

    # ===========================================
    # Service
    # ===========================================
    service_host: str = "0.0.0.0"
    service_port: int = 8230

    # ===========================================
    # Store collections
    # ===========================================
    schema: str = "geofence"
    log_table: str = "gps_log"
    region_table: str = "area_list"

    # ===========================================
    # Notification channel (Discord-style webhook)
    # ===========================================
    webhook_url: str = DEFAULT_WEBHOOK_URL
    webhook_timeout: float = 10.0
    placeholder_markers: List[str] = field(
        default_factory=lambda: list(DEFAULT_PLACEHOLDER_MARKERS)
    )

    # ===========================================
    # Evaluation policy
    # ===========================================
    cooldown_fail_open: bool = True

    @property
    def webhook_configured(self) -> bool:
        """False while the webhook URL is empty or still a placeholder"""
        return webhook_url_configured(self.webhook_url, self.placeholder_markers)

    @classmethod
    def from_env(cls) -> 'GeofenceConfig':
        """Load geofence config from environment variables"""
        markers = os.getenv("WEBHOOK_PLACEHOLDER_MARKERS")
        return cls(
            service_host=os.getenv("HOST", "0.0.0.0"),
            service_port=_int(os.getenv("GEOFENCE_SERVICE_PORT") or os.getenv("PORT", "8230"), 8230),
            schema=os.getenv("GEOFENCE_SCHEMA", "geofence"),
            log_table=os.getenv("GPS_LOG_TABLE", "gps_log"),
            region_table=os.getenv("REGION_TABLE", "area_list"),
            webhook_url=os.getenv("DISCORD_WEBHOOK_URL") or os.getenv("WEBHOOK_URL", DEFAULT_WEBHOOK_URL),
            webhook_timeout=_float(os.getenv("WEBHOOK_TIMEOUT", "10"), 10.0),
            placeholder_markers=(
                [m.strip() for m in markers.split(",") if m.strip()]
                if markers is not None
                else list(DEFAULT_PLACEHOLDER_MARKERS)
            ),
            cooldown_fail_open=_bool(os.getenv("COOLDOWN_FAIL_OPEN", "true")),
        )
