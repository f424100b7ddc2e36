"""
Shared fixtures — a fake store wired into the FastAPI app.
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from influx_starter.api.main import app
from influx_starter.api.routes import get_store
from influx_starter.storage import InfluxDBConfig, InfluxStore


@pytest.fixture
def influx_config() -> InfluxDBConfig:
    return InfluxDBConfig(
        url="http://influx.test:8086",
        token="test-token",
        org="test-org",
        org_id="0123456789abcdef",
        bucket="test-bucket",
    )


@pytest.fixture
def fake_store(influx_config):
    """InfluxStore stand-in recording every call made by the handlers."""
    store = MagicMock(spec=InfluxStore)
    store.config = influx_config
    return store


@pytest.fixture
def api_client(fake_store):
    """TestClient whose handlers receive the fake store."""
    def override_store():
        yield fake_store

    app.dependency_overrides[get_store] = override_store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
