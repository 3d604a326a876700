# src/costcompass/collectors/prometheus_collector.py

"""
PrometheusCollector fetches current per-pod CPU and memory usage from a
Prometheus server. It is the alternative to metrics-server when
METRICS_SOURCE is 'prometheus'.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ..core.config import Config
from ..core.exceptions import MetricsUnavailable
from ..models.metrics import PodUsage
from ..utils.k8s_utils import bytes_to_gb
from .base_collector import BaseCollector

logger = logging.getLogger(__name__)

PodKey = Tuple[str, str]


class PrometheusCollector(BaseCollector):
    """
    Collects pod usage from Prometheus instant queries.
    """

    def __init__(self, settings: Config, client: Optional[httpx.AsyncClient] = None):
        """
        Initializes the collector with settings and PromQL queries.
        """
        self.settings = settings
        self.base_url = settings.PROMETHEUS_URL
        self.query_range_step = settings.PROMETHEUS_QUERY_RANGE_STEP
        self.timeout = settings.SOURCE_TIMEOUT_SECONDS

        self.verify = getattr(settings, "PROMETHEUS_VERIFY_CERTS", True)
        self.bearer_token = getattr(settings, "PROMETHEUS_BEARER_TOKEN", None)
        self.username = getattr(settings, "PROMETHEUS_USERNAME", None)
        self.password = getattr(settings, "PROMETHEUS_PASSWORD", None)

        # Average CPU usage in cores over the last step, per pod.
        self.cpu_usage_query = (
            f"sum(rate(container_cpu_usage_seconds_total{{container!='', pod!=''}}[{self.query_range_step}])) "
            "by (namespace, pod)"
        )
        # Working set is what the kubelet uses for eviction, so it is the usage figure.
        self.memory_usage_query = "sum(container_memory_working_set_bytes{container!='', pod!=''}) by (namespace, pod)"

        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        """Lazily builds the shared client. Retries happen per fetch, not in the transport."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=self.settings.DEFAULT_TIMEOUT_CONNECT),
                headers={"User-Agent": self.settings.USER_AGENT},
                verify=self.verify,
                follow_redirects=True,
            )
        return self._client

    async def collect(self) -> List[PodUsage]:
        """
        Fetch CPU and memory usage and merge them per pod.

        Both queries must succeed. A pod missing from either result is left
        out of this cycle rather than recorded with a zero.

        Raises:
            MetricsUnavailable: If Prometheus cannot be queried or has no data.
        """
        if not self.base_url:
            raise MetricsUnavailable("PROMETHEUS_URL is not set.")

        cpu_results = await self._query_prometheus(self.cpu_usage_query)
        memory_results = await self._query_prometheus(self.memory_usage_query)

        observed_at = datetime.now(timezone.utc)
        cpu_by_pod = self._parse_vector(cpu_results)
        memory_by_pod = self._parse_vector(memory_results)

        incomplete = set(cpu_by_pod) ^ set(memory_by_pod)
        if incomplete:
            logger.debug("Skipping %d pod(s) with only CPU or only memory usage.", len(incomplete))

        usages = []
        for key in sorted(set(cpu_by_pod) & set(memory_by_pod)):
            namespace, pod = key
            cpu, cpu_ts = cpu_by_pod[key]
            memory_bytes, mem_ts = memory_by_pod[key]
            usages.append(
                PodUsage(
                    namespace=namespace,
                    pod=pod,
                    cpu_usage_cores=cpu,
                    memory_usage_gb=bytes_to_gb(memory_bytes),
                    timestamp=cpu_ts or mem_ts or observed_at,
                )
            )

        if not usages:
            raise MetricsUnavailable("Prometheus returned no pod usage data.")

        logger.debug("Collected usage for %d pods from Prometheus.", len(usages))
        return usages

    async def _query_prometheus(self, query: str) -> List[Dict[str, Any]]:
        """
        Internal helper to run a query against the Prometheus API.

        Tries the common endpoint forms in order and returns the 'result' list
        of the first successful response.

        Raises:
            MetricsUnavailable: If every candidate endpoint fails.
        """
        base = self.base_url.rstrip("/")
        candidates = [
            f"{base}/api/v1/query",
            f"{base}/prometheus/api/v1/query",
        ]

        headers = {}
        if self.bearer_token:
            headers["Authorization"] = f"Bearer {self.bearer_token}"

        auth = None
        if self.username and self.password:
            auth = (self.username, self.password)

        client = self._get_client()
        last_err = None
        for query_url in candidates:
            try:
                logger.debug("Querying Prometheus at %s", query_url)
                response = await client.get(query_url, params={"query": query}, headers=headers, auth=auth)
                response.raise_for_status()

                data = response.json()
                if data.get("status") != "success":
                    last_err = data.get("error", "Unknown")
                    logger.warning("Prometheus returned non-success status for %s: %s", query_url, last_err)
                    continue

                results = data.get("data", {}).get("result", [])
                logger.debug("Prometheus at %s returned %d result(s)", query_url, len(results))
                return results
            except httpx.HTTPError as e:
                last_err = e
                logger.debug("Failed to query Prometheus at %s: %s", query_url, e)
                continue
            except ValueError as e:
                last_err = e
                logger.warning("Prometheus at %s returned invalid JSON: %s", query_url, e)
                continue

        logger.error("All Prometheus query endpoints failed. Last error: %s", last_err)
        raise MetricsUnavailable(f"Prometheus query failed: {last_err}")

    @staticmethod
    def _parse_vector(results: List[Dict[str, Any]]) -> Dict[PodKey, Tuple[float, Optional[datetime]]]:
        """
        Maps (namespace, pod) to (value, sample time). Series without pod
        labels or with NaN/negative values are skipped.
        """
        parsed: Dict[PodKey, Tuple[float, Optional[datetime]]] = {}
        skipped = 0
        for item in results:
            metric = item.get("metric", {})
            namespace = metric.get("namespace") or metric.get("kubernetes_namespace")
            pod = metric.get("pod") or metric.get("pod_name") or metric.get("kubernetes_pod_name")
            sample = item.get("value") or [None, None]
            if not namespace or not pod or len(sample) != 2:
                skipped += 1
                continue
            try:
                value = float(sample[1])
                ts = datetime.fromtimestamp(float(sample[0]), tz=timezone.utc) if sample[0] is not None else None
            except (TypeError, ValueError):
                skipped += 1
                continue
            if math.isnan(value) or value < 0:
                skipped += 1
                continue
            parsed[(namespace, pod)] = (value, ts)

        if skipped:
            logger.debug("Skipped %d Prometheus series without usable pod labels or values.", skipped)
        return parsed

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None
