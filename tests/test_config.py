"""Tests for configuration management."""

from natsh_gateway.core.config import Settings
from natsh_gateway.main import build_adapter
from natsh_gateway.adapters import MemoryAdapter, NatsAdapter


class TestSettings:
    """Test suite for Settings configuration."""

    def test_default_settings(self, monkeypatch):
        monkeypatch.delenv("BUS_ADAPTER", raising=False)
        monkeypatch.delenv("DEBUG", raising=False)
        settings = Settings(_env_file=None)

        assert settings.bus_adapter == "nats"
        assert settings.nats_url == "nats://localhost:4222"
        assert settings.gateway_prefix == "/bus"
        assert settings.header_prefix == "Natsh-"
        assert settings.default_timeout_ms == 5000
        assert settings.stream_queue_size == 10
        assert settings.cors_origins == []
        assert settings.debug is False

    def test_settings_from_environment(self, monkeypatch):
        monkeypatch.setenv("NATS_URL", "nats://bus.internal:4222")
        monkeypatch.setenv("DEFAULT_TIMEOUT_MS", "1500")
        monkeypatch.setenv("HEADER_PREFIX", "X-Bus-")

        settings = Settings(_env_file=None)

        assert settings.nats_url == "nats://bus.internal:4222"
        assert settings.default_timeout_ms == 1500
        assert settings.header_prefix == "X-Bus-"

    def test_build_adapter(self):
        assert isinstance(build_adapter(Settings(bus_adapter="memory")), MemoryAdapter)
        assert isinstance(build_adapter(Settings(bus_adapter="nats")), NatsAdapter)
