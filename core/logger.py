"""
Service Logger

Configures stdlib logging for a microservice from LoggingConfig.

Usage:
    from core.logger import setup_service_logger
    logger = setup_service_logger("geofence_service")
"""

import logging
import os
import sys
from typing import Optional

from .config import get_settings
from .config.logging_config import LoggingConfig

_configured_services = set()


def setup_service_logger(
    service_name: str,
    config: Optional[LoggingConfig] = None,
) -> logging.Logger:
    """
    Configure the root logger for a service and return the service logger.

    Calling it again for the same service is a no-op apart from returning
    the logger, so uvicorn reloads do not stack handlers.

    Args:
        service_name: Logger name, usually the microservice package name
        config: Logging configuration (defaults to global settings)

    Returns:
        Logger named after the service
    """
    config = config or get_settings().logging
    logger = logging.getLogger(service_name)

    if service_name in _configured_services:
        return logger

    level = getattr(logging, config.log_level.upper(), logging.INFO)
    formatter = logging.Formatter(config.log_format)
    root = logging.getLogger()
    root.setLevel(level)

    if config.enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    if config.log_file:
        log_dir = os.path.dirname(config.log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    _configured_services.add(service_name)
    logger.debug(f"Logger configured for {service_name} ({config.environment})")
    return logger
