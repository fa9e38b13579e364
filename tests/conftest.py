"""Global test configuration and fixtures."""

import os
import sys

import pytest
from fastapi.testclient import TestClient

# Ensure test modules can import src
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.config import GatewayConfig, reset_config
from src.gateway.pipeline import AdmissionPipeline
from src.ratelimit.limiter import SlidingWindowRateLimiter


@pytest.fixture(autouse=True)
def _reset_cached_config():
    """Keep the process-wide configuration from leaking between tests."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def config():
    """Production-mode configuration with a configured key."""
    return GatewayConfig(
        valid_api_key="secret123",
        environment="production",
        rate_limit_window_ms=60000,
        rate_limit_max_requests=100,
        global_rate_limit_enabled=False,
    )


@pytest.fixture
def dev_config():
    """Development mode without a configured key."""
    return GatewayConfig(
        valid_api_key=None,
        environment="development",
        global_rate_limit_enabled=False,
    )


@pytest.fixture
def limiter():
    """Limiter matching the documented scenario: 3 requests per second."""
    return SlidingWindowRateLimiter(window_ms=1000, max_requests=3)


@pytest.fixture
def pipeline(config):
    return AdmissionPipeline(
        config,
        SlidingWindowRateLimiter(
            window_ms=config.rate_limit_window_ms,
            max_requests=config.rate_limit_max_requests,
        ),
    )


@pytest.fixture
def app_factory():
    """Build a fresh application for a given configuration."""
    from src.service.main import create_app

    def _create(config: GatewayConfig):
        return create_app(config)

    return _create


@pytest.fixture
def api_client(app_factory, config):
    """Test client around an application using the `config` fixture."""
    app = app_factory(config)
    yield TestClient(app)


@pytest.fixture
def auth_headers():
    return {"X-API-Key": "secret123"}


@pytest.fixture
def ask_ai_payload():
    return {
        "question": "What is this page about?",
        "context": {"title": "Example", "headings": ["Intro"]},
        "url": "https://example.com/article",
    }
