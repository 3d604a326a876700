# tests/conftest.py

from datetime import datetime, timezone

import pytest

from costcompass.core.db import DatabaseManager
from costcompass.core.pricing import PricingConfig
from costcompass.storage.sqlite_repository import SQLiteSnapshotRepository


@pytest.fixture(autouse=True)
def mock_settings_env_vars(monkeypatch):
    """
    Pytest fixture to mock environment variables for the config module.

    This fixture runs automatically for every test (`autouse=True`) so that a
    Config() built inside a test never picks up the developer's environment.
    """
    monkeypatch.setenv("DB_TYPE", "sqlite")
    monkeypatch.setenv("DB_PATH", ":memory:")
    for key in (
        "DB_CONNECTION_STRING",
        "METRICS_SOURCE",
        "PROMETHEUS_URL",
        "NODE_TYPE_PRICES",
        "DEPLOYMENT_LABEL",
        "CPU_HOURLY_RATE",
        "MEMORY_GB_HOURLY_RATE",
        "COLLECTOR_INTERVAL",
        "CALCULATOR_INTERVAL",
        "KUBECONFIG_PATH",
        "OTEL_ENABLED",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
async def db_manager():
    """A connected DatabaseManager backed by a fresh in-memory SQLite database."""
    manager = DatabaseManager(db_type="sqlite", db_path=":memory:")
    await manager.connect()
    yield manager
    await manager.close()


@pytest.fixture
async def repository(db_manager):
    return SQLiteSnapshotRepository(db_manager)


@pytest.fixture
def pricing():
    return PricingConfig(cpu_hourly_rate=0.031, memory_gb_hourly_rate=0.004)


@pytest.fixture
def fixed_now():
    return datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
