#!/usr/bin/env python3
"""Modular configuration system for the geofence alert service

Configuration hierarchy:
- logging_config: Logging configuration
- infra_config: PostgreSQL connection settings
- geofence_config: Store collections, webhook channel, evaluation policy
- app_config: Root settings combining the above
"""
import os
from dotenv import load_dotenv
from .app_config import AppConfig
from .geofence_config import GeofenceConfig
from .infra_config import InfraConfig
from .logging_config import LoggingConfig

# Load environment file based on ENV
env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
env_files = {
    "development": "deployment/environments/dev.env",
    "dev": "deployment/environments/dev.env",
    "testing": "deployment/environments/test.env",
    "test": "deployment/environments/test.env",
    "staging": "deployment/environments/staging.env",
    "production": "deployment/environments/production.env",
}
env_file = env_files.get(env, "deployment/environments/dev.env")
load_dotenv(env_file, override=False)

# Create global settings instance
settings = AppConfig.from_env()

def get_settings() -> AppConfig:
    """Get global settings instance"""
    return settings

def reload_settings() -> AppConfig:
    """Reload settings from environment"""
    global settings
    settings = AppConfig.from_env()
    return settings

__all__ = [
    'AppConfig',
    'get_settings',
    'reload_settings',
    'settings',
    'LoggingConfig',
    'InfraConfig',
    'GeofenceConfig',
]
