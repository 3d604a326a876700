# src/costcompass/collectors/node_collector.py

import logging
from datetime import datetime, timezone
from typing import List, Optional

from kubernetes_asyncio.client.rest import ApiException

from ..core.exceptions import SourceUnavailable
from ..core.k8s_client import get_core_v1_api
from ..core.pricing import PricingConfig, node_hourly_rate
from ..models.node import Node
from ..utils.k8s_utils import parse_cpu_cores, parse_memory_gb
from .base_collector import BaseCollector

logger = logging.getLogger(__name__)

INSTANCE_TYPE_LABELS = (
    "node.kubernetes.io/instance-type",
    "beta.kubernetes.io/instance-type",
)


class NodeCollector(BaseCollector):
    """Collects node inventory (capacity, type and hourly rate) from the Kubernetes API."""

    def __init__(self, pricing: PricingConfig, request_timeout: Optional[float] = None):
        self.pricing = pricing
        self.request_timeout = request_timeout
        self._api = None

    async def _ensure_client(self):
        """
        Lazily initialize the Kubernetes Async client using the centralized thread-safe loader.
        """
        if self._api:
            return self._api

        self._api = await get_core_v1_api()
        return self._api

    async def collect(self) -> List[Node]:
        """
        Lists every node in the cluster.

        Raises:
            SourceUnavailable: If no Kubernetes configuration is available or
                the API call fails.
        """
        api = await self._ensure_client()
        if not api:
            raise SourceUnavailable("Kubernetes client is not configured; cannot list nodes.")

        try:
            node_list = await api.list_node(watch=False, _request_timeout=self.request_timeout)
        except ApiException as e:
            logger.error("Kubernetes API error while listing nodes: %s", e)
            raise SourceUnavailable(f"Kubernetes API error while listing nodes: {e.status} {e.reason}") from e
        except Exception as e:
            logger.error("An unexpected error occurred while listing nodes: %s", e)
            raise SourceUnavailable(f"Could not list nodes: {e}") from e

        nodes: List[Node] = []
        now = datetime.now(timezone.utc)
        for item in node_list.items or []:
            node = self._to_node(item, now)
            nodes.append(node)
            logger.debug(
                " -> Node '%s': type=%s, cpu=%s, mem=%.2fGB, rate=%.4f/h",
                node.name,
                node.node_type,
                node.cpu_capacity_cores,
                node.memory_capacity_gb,
                node.hourly_rate,
            )

        if not nodes:
            logger.warning("No nodes found in the cluster.")
        return nodes

    def _to_node(self, item, collected_at: datetime) -> Node:
        name = item.metadata.name
        labels = item.metadata.labels or {}
        capacity = (getattr(item, "status", None) and getattr(item.status, "capacity", None)) or {}

        node = Node(
            id=getattr(item.metadata, "uid", None) or name,
            name=name,
            node_type=self._extract_node_type(labels),
            cpu_capacity_cores=parse_cpu_cores(capacity.get("cpu")),
            memory_capacity_gb=parse_memory_gb(capacity.get("memory")),
            updated_at=collected_at,
        )
        node.hourly_rate = node_hourly_rate(node, self.pricing)
        return node

    @staticmethod
    def _extract_node_type(labels: dict) -> Optional[str]:
        for key in INSTANCE_TYPE_LABELS:
            if labels.get(key):
                return labels[key]
        return None

    async def close(self):
        """Close the Kubernetes API client if it exists."""
        if self._api:
            await self._api.api_client.close()
            logger.debug("NodeCollector Kubernetes client closed.")
            self._api = None
