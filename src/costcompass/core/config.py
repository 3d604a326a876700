# src/costcompass/core/config.py

import json
import logging
import os
from typing import Dict, List, Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

from ..utils.date_utils import parse_duration_seconds
from .exceptions import ConfigurationError

# Load environment variables from a .env file located in the project root
dotenv_path = os.path.join(os.path.dirname(__file__), "..", "..", "..", ".env")
load_dotenv(dotenv_path=dotenv_path)

logger = logging.getLogger(__name__)

_TRUTHY = ("true", "1", "t", "y", "yes")

SUPPORTED_DB_TYPES = ("sqlite", "postgres")
SUPPORTED_METRICS_SOURCES = ("metrics-server", "prometheus")


class Config:
    """
    Handles the application's configuration by loading values from environment variables.

    Values are read when the instance is created and stay static for the
    lifetime of the process. Malformed values are collected rather than raised
    immediately so that validate_instance() can report all of them at once.
    """

    def __init__(self):
        self._errors: List[str] = []

        # --- Logging variables ---
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

        # --- Database variables ---
        self.DB_TYPE = os.getenv("DB_TYPE", "sqlite").lower()
        self.DB_PATH = os.getenv("DB_PATH", "costcompass.db")
        self.DB_CONNECTION_STRING = self._get_secret("DB_CONNECTION_STRING")
        self.DB_SCHEMA = os.getenv("DB_SCHEMA", "public")

        # --- Control plane ---
        self.KUBECONFIG_PATH = os.getenv("KUBECONFIG_PATH") or None

        # --- Scheduling ---
        self.COLLECTOR_INTERVAL = os.getenv("COLLECTOR_INTERVAL", "5m")
        self.CALCULATOR_INTERVAL = os.getenv("CALCULATOR_INTERVAL", "5m")

        # --- Pricing ---
        self.CPU_HOURLY_RATE = self._get_float("CPU_HOURLY_RATE", 0.031)
        self.MEMORY_GB_HOURLY_RATE = self._get_float("MEMORY_GB_HOURLY_RATE", 0.004)
        self.NODE_TYPE_PRICES = self._get_price_table("NODE_TYPE_PRICES")

        # Pod label key used to attribute a pod to a deployment. Unset means
        # no attribution: every pod is only counted at namespace level.
        self.DEPLOYMENT_LABEL = os.getenv("DEPLOYMENT_LABEL") or None

        # --- Metrics source ---
        self.METRICS_SOURCE = os.getenv("METRICS_SOURCE", "metrics-server").lower()
        self.PROMETHEUS_URL = os.getenv("PROMETHEUS_URL", "")
        self.PROMETHEUS_QUERY_RANGE_STEP = os.getenv("PROMETHEUS_QUERY_RANGE_STEP", "5m")
        self.PROMETHEUS_VERIFY_CERTS = os.getenv("PROMETHEUS_VERIFY_CERTS", "True").lower() in _TRUTHY
        self.PROMETHEUS_BEARER_TOKEN = self._get_secret("PROMETHEUS_BEARER_TOKEN")
        self.PROMETHEUS_USERNAME = self._get_secret("PROMETHEUS_USERNAME")
        self.PROMETHEUS_PASSWORD = self._get_secret("PROMETHEUS_PASSWORD")

        # --- Timeouts and retries ---
        self.SOURCE_TIMEOUT_SECONDS = self._get_float("SOURCE_TIMEOUT_SECONDS", 10.0)
        self.STORE_TIMEOUT_SECONDS = self._get_float("STORE_TIMEOUT_SECONDS", 10.0)
        self.SOURCE_RETRY_ATTEMPTS = self._get_int("SOURCE_RETRY_ATTEMPTS", 3)
        self.SOURCE_RETRY_BACKOFF = self._get_float("SOURCE_RETRY_BACKOFF", 1.0)

        # --- Telemetry ---
        self.OTEL_ENABLED = os.getenv("OTEL_ENABLED", "False").lower() in _TRUTHY
        self.OTEL_EXPORTER_OTLP_ENDPOINT = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4318")

        # --- HTTP client defaults ---
        self.DEFAULT_TIMEOUT_CONNECT = 5.0
        self.DEFAULT_TIMEOUT_READ = self.SOURCE_TIMEOUT_SECONDS
        from .. import __version__

        self.USER_AGENT = f"costcompass/{__version__}"

    @staticmethod
    def _get_secret(key: str, default: str = None) -> str:
        """
        Retrieves a secret from a file (Docker secret/volume) or falls back to environment variable.

        Raises:
            PermissionError: If the secret file exists but cannot be read due to permissions.
            IOError: If the secret file exists but cannot be read due to I/O errors.
        """
        secret_file = f"/etc/costcompass/secrets/{key}"
        if os.path.exists(secret_file):
            try:
                with open(secret_file, "r") as f:
                    value = f.read().strip()
                    logger.debug(f"Loaded secret '{key}' from {secret_file}")
                    return value
            except PermissionError as e:
                raise PermissionError(
                    f"Secret file '{secret_file}' exists but cannot be read due to permission denied. "
                    f"Please check file permissions or run with appropriate privileges."
                ) from e
            except (IOError, OSError) as e:
                raise IOError(
                    f"Secret file '{secret_file}' exists but cannot be read: {e}. "
                    f"Please check the file integrity and system resources."
                ) from e
        return os.getenv(key, default)

    def _get_float(self, key: str, default: float) -> Optional[float]:
        raw = os.getenv(key)
        if raw is None or raw == "":
            return default
        try:
            return float(raw)
        except ValueError:
            self._errors.append(f"{key} must be a number, got '{raw}'.")
            return None

    def _get_int(self, key: str, default: int) -> Optional[int]:
        raw = os.getenv(key)
        if raw is None or raw == "":
            return default
        try:
            return int(raw)
        except ValueError:
            self._errors.append(f"{key} must be an integer, got '{raw}'.")
            return None

    def _get_price_table(self, key: str) -> Dict[str, float]:
        raw = os.getenv(key)
        if not raw:
            return {}
        try:
            table = json.loads(raw)
        except json.JSONDecodeError as e:
            self._errors.append(f"{key} is not valid JSON: {e}")
            return {}
        if not isinstance(table, dict):
            self._errors.append(f"{key} must be a JSON object mapping node types to hourly prices.")
            return {}
        prices = {}
        for node_type, price in table.items():
            try:
                prices[str(node_type)] = float(price)
            except (TypeError, ValueError):
                self._errors.append(f"{key} has a non-numeric price for node type '{node_type}'.")
        return prices

    @property
    def COLLECTOR_INTERVAL_SECONDS(self) -> int:
        return parse_duration_seconds(self.COLLECTOR_INTERVAL)

    @property
    def CALCULATOR_INTERVAL_SECONDS(self) -> int:
        return parse_duration_seconds(self.CALCULATOR_INTERVAL)

    def validate_instance(self):
        """
        Validates the loaded configuration.

        Raises:
            ConfigurationError: If any value is missing or malformed. The
                process must not start in that case.
        """
        errors = list(self._errors)

        if self.DB_TYPE not in SUPPORTED_DB_TYPES:
            errors.append("DB_TYPE must be 'sqlite' or 'postgres'.")
        if self.DB_TYPE == "postgres":
            if not self.DB_CONNECTION_STRING:
                errors.append("DB_CONNECTION_STRING must be set for postgres database.")
            else:
                parsed = urlparse(self.DB_CONNECTION_STRING)
                if parsed.scheme not in ("postgres", "postgresql") or not parsed.hostname:
                    errors.append("DB_CONNECTION_STRING must be a postgresql:// URL with a host.")
        if self.DB_TYPE == "sqlite" and not self.DB_PATH:
            errors.append("DB_PATH must be set for sqlite database.")

        for key in ("COLLECTOR_INTERVAL", "CALCULATOR_INTERVAL", "PROMETHEUS_QUERY_RANGE_STEP"):
            value = getattr(self, key)
            try:
                if parse_duration_seconds(value) <= 0:
                    errors.append(f"{key} must be greater than zero.")
            except ValueError:
                errors.append(f"{key} format is invalid: '{value}'. Use 's', 'm', or 'h'.")

        for key in ("CPU_HOURLY_RATE", "MEMORY_GB_HOURLY_RATE"):
            value = getattr(self, key)
            if value is not None and value < 0:
                errors.append(f"{key} must not be negative.")
        for node_type, price in self.NODE_TYPE_PRICES.items():
            if price < 0:
                errors.append(f"NODE_TYPE_PRICES['{node_type}'] must not be negative.")

        for key in ("SOURCE_TIMEOUT_SECONDS", "STORE_TIMEOUT_SECONDS"):
            value = getattr(self, key)
            if value is not None and value <= 0:
                errors.append(f"{key} must be greater than zero.")
        if self.SOURCE_RETRY_ATTEMPTS is not None and self.SOURCE_RETRY_ATTEMPTS < 1:
            errors.append("SOURCE_RETRY_ATTEMPTS must be at least 1.")

        if self.METRICS_SOURCE not in SUPPORTED_METRICS_SOURCES:
            errors.append("METRICS_SOURCE must be 'metrics-server' or 'prometheus'.")
        if self.METRICS_SOURCE == "prometheus" and not self.PROMETHEUS_URL:
            errors.append("PROMETHEUS_URL must be set when METRICS_SOURCE is 'prometheus'.")

        if self.KUBECONFIG_PATH and not os.path.exists(self.KUBECONFIG_PATH):
            logger.warning("KUBECONFIG_PATH '%s' does not exist.", self.KUBECONFIG_PATH)

        if errors:
            raise ConfigurationError("Invalid configuration: " + " ".join(errors))


# Instantiate the config to be imported by other modules
config = Config()
