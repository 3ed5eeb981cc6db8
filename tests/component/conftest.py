"""
Component Test Layer Configuration (Layer 3)

Structure:
    tests/component/
    ├── golden/      🔒 Characterization (never modify)
    └── mocks/       Mock implementations

Usage:
    pytest tests/component -v
    pytest tests/component/golden -v
"""
import os
import sys
from datetime import datetime, timezone

import pytest

# Set testing environment BEFORE any imports
os.environ["ENV"] = "testing"
os.environ["ENVIRONMENT"] = "testing"

# Add project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from core.config.geofence_config import GeofenceConfig
from microservices.geofence_service.geofence_service import GeofenceService

from tests.component.mocks import (
    MockGpsLogRepository,
    MockNotifier,
    MockRegionRepository,
)


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom markers"""
    config.addinivalue_line(
        "markers", "component: marks tests as component tests"
    )
    config.addinivalue_line(
        "markers", "golden: safety net tests - DO NOT MODIFY"
    )


# =============================================================================
# Store / Notifier Mocks
# =============================================================================

@pytest.fixture
def mock_log_repository() -> MockGpsLogRepository:
    """In-memory GPS log"""
    return MockGpsLogRepository()


@pytest.fixture
def mock_region_repository() -> MockRegionRepository:
    """In-memory region list, empty"""
    return MockRegionRepository()


@pytest.fixture
def mock_notifier() -> MockNotifier:
    """Recording webhook notifier"""
    return MockNotifier()


# =============================================================================
# Service Fixtures
# =============================================================================

@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def geofence_config() -> GeofenceConfig:
    return GeofenceConfig(webhook_url="https://discord.com/api/webhooks/123/abc")


@pytest.fixture
def geofence_service(
    mock_log_repository,
    mock_region_repository,
    mock_notifier,
    geofence_config,
    fixed_now,
) -> GeofenceService:
    """GeofenceService wired to mocks with a frozen clock"""
    return GeofenceService(
        log_repository=mock_log_repository,
        region_repository=mock_region_repository,
        notifier=mock_notifier,
        config=geofence_config,
        clock=lambda: fixed_now,
    )
