"""
Unit Golden Tests: Geofence Configuration

Environment loading and webhook placeholder detection.
"""
import pytest

from core.config.app_config import AppConfig
from core.config.geofence_config import (
    DEFAULT_WEBHOOK_URL,
    GeofenceConfig,
    webhook_url_configured,
)
from core.config.infra_config import InfraConfig

pytestmark = [pytest.mark.unit, pytest.mark.golden]


class TestGeofenceConfigDefaults:

    def test_defaults(self):
        config = GeofenceConfig()

        assert config.service_port == 8230
        assert config.schema == "geofence"
        assert config.log_table == "gps_log"
        assert config.region_table == "area_list"
        assert config.cooldown_fail_open is True

    def test_default_webhook_is_placeholder(self):
        assert GeofenceConfig().webhook_url == DEFAULT_WEBHOOK_URL
        assert GeofenceConfig().webhook_configured is False

    @pytest.mark.parametrize("url", ["", "   ", "https://discord.com/api/webhooks/xxxxxxxx/real"])
    def test_unusable_webhook_not_configured(self, url):
        assert GeofenceConfig(webhook_url=url).webhook_configured is False

    def test_real_webhook_configured(self):
        config = GeofenceConfig(webhook_url="https://discord.com/api/webhooks/123/abc")
        assert config.webhook_configured is True

    @pytest.mark.parametrize("url,markers,expected", [
        ("https://hooks.example.com/1", ["xxxxxxxx"], True),
        (" https://hooks.example.com/1 ", [], True),
        ("https://hooks.example.com/xxxxxxxx", ["xxxxxxxx"], False),
        ("https://hooks.example.com/1", [""], True),
        (None, [], False),
    ])
    def test_webhook_url_configured(self, url, markers, expected):
        assert webhook_url_configured(url, markers) is expected


class TestGeofenceConfigFromEnv:

    def test_from_env_reads_overrides(self, monkeypatch):
        monkeypatch.setenv("DISCORD_WEBHOOK_URL", "https://hooks.example.com/1")
        monkeypatch.setenv("GEOFENCE_SCHEMA", "tracking")
        monkeypatch.setenv("GPS_LOG_TABLE", "positions")
        monkeypatch.setenv("REGION_TABLE", "regions")
        monkeypatch.setenv("COOLDOWN_FAIL_OPEN", "false")
        monkeypatch.setenv("GEOFENCE_SERVICE_PORT", "9000")
        monkeypatch.setenv("WEBHOOK_TIMEOUT", "2.5")

        config = GeofenceConfig.from_env()

        assert config.webhook_url == "https://hooks.example.com/1"
        assert config.schema == "tracking"
        assert config.log_table == "positions"
        assert config.region_table == "regions"
        assert config.cooldown_fail_open is False
        assert config.service_port == 9000
        assert config.webhook_timeout == 2.5

    def test_invalid_numbers_fall_back(self, monkeypatch):
        monkeypatch.setenv("GEOFENCE_SERVICE_PORT", "not-a-port")
        monkeypatch.setenv("WEBHOOK_TIMEOUT", "soon")

        config = GeofenceConfig.from_env()

        assert config.service_port == 8230
        assert config.webhook_timeout == 10.0

    def test_placeholder_markers_from_env(self, monkeypatch):
        monkeypatch.setenv("WEBHOOK_URL", "https://hooks.example.com/CHANGE_ME")
        monkeypatch.delenv("DISCORD_WEBHOOK_URL", raising=False)
        monkeypatch.setenv("WEBHOOK_PLACEHOLDER_MARKERS", "CHANGE_ME, ")

        config = GeofenceConfig.from_env()

        assert config.placeholder_markers == ["CHANGE_ME"]
        assert config.webhook_configured is False


class TestInfraConfig:

    def test_postgres_dsn(self):
        config = InfraConfig(
            postgres_host="db", postgres_port=5433, postgres_db="gps",
            postgres_user="svc", postgres_password="pw",
        )
        assert config.postgres_dsn == "postgresql://svc:pw@db:5433/gps"


class TestAppConfig:

    def test_from_env_builds_sub_configs(self, monkeypatch):
        monkeypatch.setenv("ENV", "testing")
        monkeypatch.setenv("POSTGRES_HOST", "pg.internal")

        config = AppConfig.from_env()

        assert config.environment == "testing"
        assert config.debug is False
        assert config.infrastructure.postgres_host == "pg.internal"
        assert isinstance(config.geofence, GeofenceConfig)
