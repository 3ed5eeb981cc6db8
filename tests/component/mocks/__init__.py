"""
Component Test Mocks

Shared mock implementations for component testing.
These mocks replace real I/O dependencies (PostgreSQL, webhook).
"""

from .store_mock import MockGpsLogRepository, MockRegionRepository, UnavailableStore
from .notifier_mock import MockNotifier

__all__ = [
    'MockGpsLogRepository',
    'MockRegionRepository',
    'UnavailableStore',
    'MockNotifier',
]
