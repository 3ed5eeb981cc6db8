"""
Geofence Service Clients

HTTP clients for outbound communication.
"""

from .webhook_client import WebhookNotificationClient

__all__ = [
    "WebhookNotificationClient",
]
