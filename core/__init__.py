#!/usr/bin/env python3
"""
Core Module for Microservices Architecture

Shared components for the microservices in this repository.

COMPONENTS:
    - config/: Dataclass configuration loaded from the environment
    - logger.py: Service logger setup

USAGE:
    from core.config import get_settings
    from core.logger import setup_service_logger

    settings = get_settings()
    logger = setup_service_logger("geofence_service")
"""

__version__ = "2.0.0"
