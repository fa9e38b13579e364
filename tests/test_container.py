"""Test the dependency injection container."""

import os
import sys
from unittest.mock import AsyncMock, MagicMock

import pytest
from slowapi import Limiter

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.container import Container, configure_services, get_container, reset_container
from src.gateway.pipeline import AdmissionPipeline
from src.ratelimit.limiter import SlidingWindowRateLimiter


@pytest.fixture(autouse=True)
def _fresh_container():
    reset_container()
    yield
    reset_container()


class TestContainer:
    """Test registration, resolution and disposal."""

    def test_singleton_resolved_once(self):
        container = Container()
        factory = MagicMock(side_effect=lambda: object())
        container.register_singleton("svc", factory)

        assert container.get("svc") is container.get("svc")
        factory.assert_called_once()

    def test_transient_resolved_each_time(self):
        container = Container()
        container.register_transient("svc", object)

        assert container.get("svc") is not container.get("svc")

    def test_dependencies_passed_positionally(self):
        container = Container()
        container.register_instance("a", 2)
        container.register_instance("b", 3)
        container.register_singleton("product", lambda a, b: a * b, ["a", "b"])

        assert container.get("product") == 6

    def test_unknown_service(self):
        container = Container()
        with pytest.raises(ValueError, match="not registered"):
            container.get("missing")
        assert container.try_get("missing") is None

    def test_circular_dependency(self):
        container = Container()
        container.register_singleton("a", lambda b: b, ["b"])
        container.register_singleton("b", lambda a: a, ["a"])

        with pytest.raises(ValueError, match="Circular dependency"):
            container.get("a")

    def test_is_registered(self):
        container = Container()
        container.register_instance("config", object())
        container.register_singleton("svc", object)

        assert container.is_registered("config")
        assert container.is_registered("svc")
        assert not container.is_registered("other")

    @pytest.mark.asyncio
    async def test_dispose_async(self):
        container = Container()
        resource = MagicMock()
        resource.close = AsyncMock()
        container.register_instance("resource", resource)

        await container.dispose_async()

        resource.close.assert_awaited_once()
        assert container.get_service_info()["active_instances"] == 0

    def test_dispose_continues_after_error(self):
        container = Container()
        failing = MagicMock()
        failing.close.side_effect = RuntimeError("close failed")
        healthy = MagicMock()
        container.register_instance("failing", failing)
        container.register_instance("healthy", healthy)

        container.dispose()

        healthy.close.assert_called_once()


class TestConfigureServices:
    """Test the gateway service wiring."""

    def test_registers_gateway_services(self, config):
        container = configure_services(config)

        assert container is get_container()
        assert container.get("config") is config
        assert isinstance(container.get("rate_limiter"), SlidingWindowRateLimiter)
        assert isinstance(container.get("admission_pipeline"), AdmissionPipeline)
        assert isinstance(container.get("global_limiter"), Limiter)
        assert container.get("upstream_handlers") == {}

    def test_pipeline_shares_limiter(self, config):
        container = configure_services(config)

        pipeline = container.get("admission_pipeline")
        limiter = container.get("rate_limiter")
        assert pipeline.rate_limiter is limiter
        assert limiter.store is container.get("rate_limit_store")

    def test_limiter_uses_config(self, config):
        limiter = configure_services(config).get("rate_limiter")

        assert limiter.window_ms == 60000
        assert limiter.max_requests == 100

    def test_service_info(self, config):
        container = configure_services(config)
        container.get("admission_pipeline")

        info = container.get_service_info()
        assert info["services"]["admission_pipeline"] == {
            "lifetime": "singleton",
            "dependencies": ["config", "rate_limiter"],
            "instantiated": True,
        }
        assert info["services"]["global_limiter"]["instantiated"] is False
