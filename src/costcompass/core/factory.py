# src/costcompass/core/factory.py
"""
Factory functions to instantiate the services and the correct
SnapshotRepository for the configured database.
"""

import logging
from functools import lru_cache

from ..collectors.base_collector import BaseCollector
from ..collectors.metrics_server_collector import MetricsServerCollector
from ..collectors.node_collector import NodeCollector
from ..collectors.pod_collector import PodCollector
from ..collectors.prometheus_collector import PrometheusCollector
from ..storage.base_repository import SnapshotRepository
from ..storage.postgres_repository import PostgresSnapshotRepository
from ..storage.sqlite_repository import SQLiteSnapshotRepository
from .calculator import CostCalculator
from .collector import Collector
from .config import config
from .db import DatabaseManager
from .pricing import PricingConfig

logger = logging.getLogger(__name__)


def get_db_manager() -> DatabaseManager:
    """Returns the shared DatabaseManager."""
    from .db import db_manager

    return db_manager


@lru_cache(maxsize=1)
def get_repository() -> SnapshotRepository:
    """
    Factory function to get the appropriate repository based on config.
    Uses lru_cache to act as a singleton.
    """
    if config.DB_TYPE == "sqlite":
        logger.info("Using SQLite repository.")
        return SQLiteSnapshotRepository(get_db_manager())
    elif config.DB_TYPE == "postgres":
        logger.info("Using PostgreSQL repository.")
        return PostgresSnapshotRepository(get_db_manager())
    else:
        raise NotImplementedError(f"Repository for DB_TYPE '{config.DB_TYPE}' not implemented.")


def get_pricing() -> PricingConfig:
    return PricingConfig.from_config(config)


def get_metrics_collector() -> BaseCollector:
    """Returns the usage source selected by METRICS_SOURCE."""
    if config.METRICS_SOURCE == "prometheus":
        logger.info("Using Prometheus at %s for pod usage.", config.PROMETHEUS_URL)
        return PrometheusCollector(config)
    logger.info("Using metrics-server for pod usage.")
    return MetricsServerCollector(request_timeout=config.SOURCE_TIMEOUT_SECONDS)


def get_collector() -> Collector:
    """
    Instantiates a Collector wired to the cluster, the metrics source and the
    repository.
    """
    return Collector(
        node_collector=NodeCollector(get_pricing(), request_timeout=config.SOURCE_TIMEOUT_SECONDS),
        pod_collector=PodCollector(
            deployment_label=config.DEPLOYMENT_LABEL,
            request_timeout=config.SOURCE_TIMEOUT_SECONDS,
        ),
        metrics_collector=get_metrics_collector(),
        repository=get_repository(),
        source_timeout=config.SOURCE_TIMEOUT_SECONDS,
        store_timeout=config.STORE_TIMEOUT_SECONDS,
        retry_attempts=config.SOURCE_RETRY_ATTEMPTS,
        retry_backoff=config.SOURCE_RETRY_BACKOFF,
    )


def get_calculator() -> CostCalculator:
    return CostCalculator(
        repository=get_repository(),
        pricing=get_pricing(),
        store_timeout=config.STORE_TIMEOUT_SECONDS,
    )
