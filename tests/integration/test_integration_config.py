"""
Tests for the integration manager configuration.
"""

import pytest
from aiohttp import web
from aiohttp import test_utils

from core.exceptions import ConfigurationError
from integration.config import (
    HealthCheckSettings,
    IntegrationConfig,
    MaintenanceSettings,
    SyncSettings,
    get_config,
    set_config,
)
from integration.integration_checks import (
    HttpIntegrationHealthCheck,
    RandomIntegrationHealthCheck,
    build_integration_check,
)
from integration.models import IntegrationStatus, IntegrationType, SystemIntegration


class TestDefaults:

    def test_defaults(self):
        config = IntegrationConfig()

        assert config.health.probe_concurrency is None
        assert config.health.probe_timeout_seconds is None
        assert config.sync.worker_count == 2
        assert config.maintenance.sync_job_retention_days == 30
        assert config.maintenance.integration_check == "random"
        assert config.rate_limit.requests == 1000
        assert config.rate_limit.window_seconds == 3600

    def test_to_dict(self):
        data = IntegrationConfig().to_dict()
        assert data["sync"]["progress_step"] == 10
        assert data["export_base_url"].startswith("https://")


class TestValidation:

    def test_rejects_bad_concurrency(self):
        with pytest.raises(ConfigurationError):
            HealthCheckSettings(probe_concurrency=0)

    def test_rejects_bad_timeout(self):
        with pytest.raises(ConfigurationError):
            HealthCheckSettings(probe_timeout_seconds=0)

    def test_rejects_bad_step(self):
        with pytest.raises(ConfigurationError):
            SyncSettings(progress_step=0)

    def test_rejects_unknown_check(self):
        with pytest.raises(ConfigurationError) as exc_info:
            MaintenanceSettings(integration_check="ping")
        assert exc_info.value.context["config_key"] == "integration_check"


class TestFromEnv:

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("INTEGRATION_PROBE_CONCURRENCY", "4")
        monkeypatch.setenv("INTEGRATION_PROBE_TIMEOUT", "2.5")
        monkeypatch.setenv("INTEGRATION_SYNC_WORKERS", "3")
        monkeypatch.setenv("INTEGRATION_HEALTH_CHECK", "HTTP")
        monkeypatch.setenv("INTEGRATION_EXPORT_BASE_URL", "https://files.example.org/")
        monkeypatch.setenv("INTEGRATION_RATE_LIMIT_REQUESTS", "50")

        config = IntegrationConfig.from_env()

        assert config.health.probe_concurrency == 4
        assert config.health.probe_timeout_seconds == 2.5
        assert config.sync.worker_count == 3
        assert config.maintenance.integration_check == "http"
        assert config.export_base_url == "https://files.example.org"
        assert config.rate_limit.requests == 50

    def test_invalid_env_value(self, monkeypatch):
        monkeypatch.setenv("INTEGRATION_SYNC_WORKERS", "0")

        with pytest.raises(ConfigurationError):
            IntegrationConfig.from_env()


class TestFromYaml:

    def test_sections(self, tmp_path):
        path = tmp_path / "integration.yaml"
        path.write_text(
            "health:\n"
            "  probe_concurrency: 8\n"
            "  degraded_threshold_ms: 250\n"
            "sync:\n"
            "  worker_count: 4\n"
            "maintenance:\n"
            "  sync_job_retention_days: 7\n"
            "export_base_url: https://files.example.org/exports/\n"
        )

        config = IntegrationConfig.from_yaml(path)

        assert config.health.probe_concurrency == 8
        assert config.health.degraded_threshold_ms == 250
        assert config.sync.worker_count == 4
        assert config.maintenance.sync_job_retention_days == 7
        assert config.rate_limit.requests == 1000
        assert config.export_base_url == "https://files.example.org/exports"

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert IntegrationConfig.from_yaml(path).sync.worker_count == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            IntegrationConfig.from_yaml(tmp_path / "missing.yaml")

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("sync:\n  workers: 4\n")

        with pytest.raises(ConfigurationError):
            IntegrationConfig.from_yaml(path)


class TestGlobalConfig:

    def test_set_and_get(self):
        config = IntegrationConfig()
        set_config(config)
        try:
            assert get_config() is config
        finally:
            set_config(None)


class TestIntegrationCheckSelection:

    def test_random_by_default(self):
        assert isinstance(build_integration_check(MaintenanceSettings()), RandomIntegrationHealthCheck)

    @pytest.mark.asyncio
    async def test_http(self):
        check = build_integration_check(MaintenanceSettings(integration_check="http"))
        assert isinstance(check, HttpIntegrationHealthCheck)
        await check.close()

    @pytest.mark.asyncio
    async def test_random_check_respects_probability(self, clock):
        integration = SystemIntegration(
            id="1", name="x", type=IntegrationType.EXTERNAL, status=IntegrationStatus.ACTIVE,
            created_at=clock.now(), updated_at=clock.now(),
        )

        assert await RandomIntegrationHealthCheck(1.0).check(integration) is True
        assert await RandomIntegrationHealthCheck(0.0).check(integration) is False

    @pytest.mark.asyncio
    async def test_http_without_endpoint_is_healthy(self, clock):
        integration = SystemIntegration(
            id="1", name="x", type=IntegrationType.INTERNAL, status=IntegrationStatus.ACTIVE,
            created_at=clock.now(), updated_at=clock.now(),
        )
        check = HttpIntegrationHealthCheck(timeout_seconds=1)
        try:
            assert await check.check(integration) is True
        finally:
            await check.close()


class TestHttpIntegrationHealthCheck:

    @staticmethod
    def integration(clock, endpoint, api_key=None):
        return SystemIntegration(
            id="1", name="crm", type=IntegrationType.THIRD_PARTY, status=IntegrationStatus.ACTIVE,
            created_at=clock.now(), updated_at=clock.now(), endpoint=endpoint, api_key=api_key,
        )

    @pytest.mark.asyncio
    async def test_status_codes(self, clock):
        seen_auth = []

        async def ok(request):
            seen_auth.append(request.headers.get("Authorization"))
            return web.json_response({"status": "ok"})

        async def missing(request):
            return web.Response(status=404)

        async def broken(request):
            return web.Response(status=503)

        app = web.Application()
        app.router.add_get("/ok", ok)
        app.router.add_get("/missing", missing)
        app.router.add_get("/broken", broken)

        check = HttpIntegrationHealthCheck(timeout_seconds=5)
        async with test_utils.TestServer(app) as server:
            try:
                assert await check.check(self.integration(clock, str(server.make_url("/ok")), "key-1")) is True
                assert await check.check(self.integration(clock, str(server.make_url("/missing")))) is True
                assert await check.check(self.integration(clock, str(server.make_url("/broken")))) is False
            finally:
                await check.close()

        assert seen_auth == ["Bearer key-1"]

    @pytest.mark.asyncio
    async def test_unreachable_endpoint(self, clock):
        check = HttpIntegrationHealthCheck(timeout_seconds=2)
        try:
            assert await check.check(self.integration(clock, "http://127.0.0.1:9/health")) is False
        finally:
            await check.close()
