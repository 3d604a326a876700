# src/costcompass/collectors/metrics_server_collector.py
"""
MetricsServerCollector reads current per-pod usage from the Kubernetes
resource metrics API (metrics.k8s.io/v1beta1), served by metrics-server.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from kubernetes_asyncio.client.rest import ApiException

from ..core.exceptions import MetricsUnavailable
from ..core.k8s_client import get_custom_objects_api
from ..models.metrics import PodUsage
from ..utils.date_utils import parse_iso_date
from ..utils.k8s_utils import parse_cpu_cores, parse_memory_gb
from .base_collector import BaseCollector

logger = logging.getLogger(__name__)

METRICS_GROUP = "metrics.k8s.io"
METRICS_VERSION = "v1beta1"


class MetricsServerCollector(BaseCollector):
    """Collects pod CPU and memory usage from metrics-server."""

    def __init__(self, request_timeout: Optional[float] = None):
        self.request_timeout = request_timeout
        self._api = None

    async def _ensure_client(self):
        if self._api:
            return self._api

        self._api = await get_custom_objects_api()
        return self._api

    async def collect(self) -> List[PodUsage]:
        """
        Returns one PodUsage per pod, summing the usage of its containers.

        Raises:
            MetricsUnavailable: If the metrics API errors or returns no pods.
        """
        api = await self._ensure_client()
        if not api:
            raise MetricsUnavailable("Kubernetes client is not configured; cannot read pod metrics.")

        try:
            response = await api.list_cluster_custom_object(
                group=METRICS_GROUP,
                version=METRICS_VERSION,
                plural="pods",
                _request_timeout=self.request_timeout,
            )
        except ApiException as e:
            logger.error("Metrics API error while listing pod metrics: %s", e)
            raise MetricsUnavailable(f"Metrics API error: {e.status} {e.reason}") from e
        except Exception as e:
            logger.error("Unexpected error while listing pod metrics: %s", e)
            raise MetricsUnavailable(f"Could not read pod metrics: {e}") from e

        items = (response or {}).get("items") or []
        usages = []
        malformed = 0
        for item in items:
            usage = self._parse_pod_metrics(item)
            if usage is None:
                malformed += 1
                continue
            usages.append(usage)

        if malformed:
            logger.warning("Skipped %d malformed pod metrics item(s).", malformed)
        if not usages:
            raise MetricsUnavailable("Metrics API returned no pod usage data.")

        logger.debug("Collected usage for %d pods from metrics-server.", len(usages))
        return usages

    @staticmethod
    def _parse_pod_metrics(item: Dict[str, Any]) -> Optional[PodUsage]:
        metadata = item.get("metadata") or {}
        namespace = metadata.get("namespace")
        name = metadata.get("name")
        if not namespace or not name:
            return None

        cpu = 0.0
        memory = 0.0
        for container in item.get("containers") or []:
            usage = container.get("usage") or {}
            cpu += parse_cpu_cores(usage.get("cpu"))
            memory += parse_memory_gb(usage.get("memory"))

        timestamp = parse_iso_date(item.get("timestamp") or "") or datetime.now(timezone.utc)
        return PodUsage(
            namespace=namespace,
            pod=name,
            cpu_usage_cores=cpu,
            memory_usage_gb=memory,
            timestamp=timestamp,
        )

    async def close(self):
        if self._api:
            await self._api.api_client.close()
            logger.debug("MetricsServerCollector Kubernetes client closed.")
            self._api = None
