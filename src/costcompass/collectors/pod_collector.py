# src/costcompass/collectors/pod_collector.py
"""
Collects pod inventory with resource 'request' data (CPU, memory)
from the Kubernetes API.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from kubernetes_asyncio.client.rest import ApiException

from ..core.exceptions import SourceUnavailable
from ..core.k8s_client import get_core_v1_api
from ..models.pod import Pod
from ..utils.k8s_utils import parse_cpu_cores, parse_memory_gb
from .base_collector import BaseCollector

logger = logging.getLogger(__name__)

# Pods in these phases have released their resources.
FINISHED_PHASES = ("Succeeded", "Failed")


def _container_requests(containers) -> List[tuple]:
    result = []
    for container in containers or []:
        resources = getattr(container, "resources", None)
        requests = (resources and resources.requests) or {}
        result.append((parse_cpu_cores(requests.get("cpu")), parse_memory_gb(requests.get("memory"))))
    return result


def effective_requests(spec) -> tuple:
    """
    Returns the (cpu cores, memory GB) a pod reserves: the sum over app
    containers, raised to the largest init container request if that is
    higher, the same way the Kubernetes scheduler accounts for it.
    """
    if spec is None:
        return 0.0, 0.0
    app = _container_requests(spec.containers)
    init = _container_requests(getattr(spec, "init_containers", None))

    cpu = sum(c for c, _ in app)
    memory = sum(m for _, m in app)
    if init:
        cpu = max(cpu, max(c for c, _ in init))
        memory = max(memory, max(m for _, m in init))
    return cpu, memory


class PodCollector(BaseCollector):
    """
    Connects to the K8s API and lists every live pod with its summed requests.
    """

    def __init__(self, deployment_label: Optional[str] = None, request_timeout: Optional[float] = None):
        self.deployment_label = deployment_label
        self.request_timeout = request_timeout
        self._api = None

    async def _ensure_client(self):
        """Lazily initialize the Kubernetes Client."""
        if self._api:
            return self._api

        self._api = await get_core_v1_api()
        if self._api:
            logger.debug("PodCollector initialized with centralized config.")
        else:
            logger.warning("PodCollector could not initialize Kubernetes client.")

        return self._api

    async def collect(self) -> List[Pod]:
        """
        Fetches all pods across namespaces, except those that have finished.

        node_id is left unset; the Collector resolves it from the node
        inventory of the same cycle.

        Raises:
            SourceUnavailable: If the Kubernetes API cannot be reached.
        """
        api = await self._ensure_client()
        if not api:
            raise SourceUnavailable("Kubernetes client is not configured; cannot list pods.")

        try:
            pod_list = await api.list_pod_for_all_namespaces(watch=False, _request_timeout=self.request_timeout)
        except ApiException as e:
            logger.error("Kubernetes API error while listing pods: %s", e)
            raise SourceUnavailable(f"Kubernetes API error while listing pods: {e.status} {e.reason}") from e
        except Exception as e:
            logger.error(f"Error collecting pods from Kubernetes API: {e}", exc_info=True)
            raise SourceUnavailable(f"Could not list pods: {e}") from e

        now = datetime.now(timezone.utc)
        pods: List[Pod] = []
        finished = 0
        for item in pod_list.items or []:
            if getattr(item.status, "phase", None) in FINISHED_PHASES:
                finished += 1
                continue
            metadata = item.metadata
            cpu, memory = effective_requests(item.spec)
            pods.append(
                Pod(
                    id=getattr(metadata, "uid", None) or f"{metadata.namespace}/{metadata.name}",
                    namespace=metadata.namespace,
                    name=metadata.name,
                    node_name=getattr(item.spec, "node_name", None) if item.spec else None,
                    deployment=self._extract_deployment(metadata.labels or {}),
                    cpu_request_cores=cpu,
                    memory_request_gb=memory,
                    created_at=getattr(metadata, "creation_timestamp", None),
                    updated_at=now,
                )
            )

        logger.debug(f"Collected {len(pods)} pods, ignored {finished} finished pods.")
        return pods

    def _extract_deployment(self, labels: dict) -> Optional[str]:
        if not self.deployment_label:
            return None
        return labels.get(self.deployment_label) or None

    async def close(self):
        """Close the Kubernetes API client if it exists."""
        if self._api:
            await self._api.api_client.close()
            logger.debug("PodCollector Kubernetes client closed.")
            self._api = None
