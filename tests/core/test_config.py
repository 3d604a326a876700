# tests/core/test_config.py

import pytest

from costcompass.core.config import Config
from costcompass.core.exceptions import ConfigurationError


def test_defaults_are_valid():
    config = Config()

    config.validate_instance()

    assert config.DB_TYPE == "sqlite"
    assert config.CPU_HOURLY_RATE == 0.031
    assert config.MEMORY_GB_HOURLY_RATE == 0.004
    assert config.METRICS_SOURCE == "metrics-server"
    assert config.DEPLOYMENT_LABEL is None
    assert config.COLLECTOR_INTERVAL_SECONDS == 300
    assert config.CALCULATOR_INTERVAL_SECONDS == 300


def test_reads_values_from_environment(monkeypatch):
    monkeypatch.setenv("CPU_HOURLY_RATE", "0.05")
    monkeypatch.setenv("COLLECTOR_INTERVAL", "30s")
    monkeypatch.setenv("NODE_TYPE_PRICES", '{"m5.large": 0.096}')
    monkeypatch.setenv("DEPLOYMENT_LABEL", "app.kubernetes.io/name")

    config = Config()
    config.validate_instance()

    assert config.CPU_HOURLY_RATE == 0.05
    assert config.COLLECTOR_INTERVAL_SECONDS == 30
    assert config.NODE_TYPE_PRICES == {"m5.large": 0.096}
    assert config.DEPLOYMENT_LABEL == "app.kubernetes.io/name"


@pytest.mark.parametrize(
    "key,value,message",
    [
        ("COLLECTOR_INTERVAL", "5 minutes", "COLLECTOR_INTERVAL"),
        ("CALCULATOR_INTERVAL", "0m", "CALCULATOR_INTERVAL"),
        ("CPU_HOURLY_RATE", "-1", "CPU_HOURLY_RATE"),
        ("MEMORY_GB_HOURLY_RATE", "cheap", "MEMORY_GB_HOURLY_RATE"),
        ("NODE_TYPE_PRICES", "{not json", "NODE_TYPE_PRICES"),
        ("NODE_TYPE_PRICES", '{"m5.large": -2}', "NODE_TYPE_PRICES"),
        ("DB_TYPE", "mysql", "DB_TYPE"),
        ("METRICS_SOURCE", "kubelet", "METRICS_SOURCE"),
        ("SOURCE_RETRY_ATTEMPTS", "0", "SOURCE_RETRY_ATTEMPTS"),
    ],
)
def test_invalid_values_raise_configuration_error(monkeypatch, key, value, message):
    monkeypatch.setenv(key, value)

    config = Config()

    with pytest.raises(ConfigurationError, match=message):
        config.validate_instance()


def test_postgres_requires_valid_connection_string(monkeypatch):
    monkeypatch.setenv("DB_TYPE", "postgres")
    monkeypatch.setenv("DB_CONNECTION_STRING", "not a url")

    with pytest.raises(ConfigurationError, match="DB_CONNECTION_STRING"):
        Config().validate_instance()

    monkeypatch.setenv("DB_CONNECTION_STRING", "postgresql://user:pass@db:5432/costcompass")
    Config().validate_instance()


def test_prometheus_requires_url(monkeypatch):
    monkeypatch.setenv("METRICS_SOURCE", "prometheus")

    with pytest.raises(ConfigurationError, match="PROMETHEUS_URL"):
        Config().validate_instance()


def test_all_problems_are_reported_together(monkeypatch):
    monkeypatch.setenv("CPU_HOURLY_RATE", "-1")
    monkeypatch.setenv("COLLECTOR_INTERVAL", "often")

    with pytest.raises(ConfigurationError) as exc_info:
        Config().validate_instance()

    assert "CPU_HOURLY_RATE" in str(exc_info.value)
    assert "COLLECTOR_INTERVAL" in str(exc_info.value)
