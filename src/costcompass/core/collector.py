# src/costcompass/core/collector.py
"""
The Collector service: one cycle snapshots the cluster inventory and the
current usage of every pod into the snapshot store.
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Tuple

from ..collectors.base_collector import BaseCollector
from ..models.metrics import CycleReport, PodUsage, UsageSnapshot
from ..models.node import Node
from ..models.pod import Pod
from ..storage.base_repository import SnapshotRepository
from ..utils.date_utils import ensure_utc, utc_now
from ..utils.retry import call_with_retry
from .exceptions import MetricsUnavailable, SourceUnavailable, StoreWriteFailed
from .telemetry import collector_cycles, collector_failures, tracer, usage_snapshots_inserted

logger = logging.getLogger(__name__)


class Collector:
    """Orchestrates inventory and usage collection and writes the snapshots."""

    def __init__(
        self,
        node_collector: BaseCollector,
        pod_collector: BaseCollector,
        metrics_collector: BaseCollector,
        repository: SnapshotRepository,
        source_timeout: float = 10.0,
        store_timeout: float = 10.0,
        retry_attempts: int = 3,
        retry_backoff: float = 1.0,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.node_collector = node_collector
        self.pod_collector = pod_collector
        self.metrics_collector = metrics_collector
        self.repository = repository
        self.source_timeout = source_timeout
        self.store_timeout = store_timeout
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff
        self.clock = clock
        self.sleep = sleep

    async def run_cycle(self) -> CycleReport:
        """
        Runs one collection cycle. Never raises: failures are logged, counted
        and recorded on the returned report.
        """
        report = CycleReport(service="collector", started_at=self.clock())
        collector_cycles.add(1)
        logger.info("--- Starting collector cycle ---")

        with tracer.start_as_current_span("collector.cycle"):
            try:
                await self._run(report)
            except (SourceUnavailable, StoreWriteFailed) as e:
                self._fail(report, e)
            except Exception as e:
                logger.error("Unexpected error in collector cycle: %s", e, exc_info=True)
                self._fail(report, e)

        report.finished_at = self.clock()
        logger.info(
            "--- Finished collector cycle: %d nodes, %d pods, %d snapshots%s ---",
            report.nodes_upserted,
            report.pods_upserted,
            report.snapshots_inserted,
            " (aborted)" if report.aborted else "",
        )
        return report

    async def _run(self, report: CycleReport):
        nodes, pods = await self._fetch_inventory()
        nodes, pods = self._stamp_inventory(nodes, pods, report.started_at)

        # Inventory commits before any usage is written.
        report.nodes_upserted = await self._write("nodes", self.repository.upsert_nodes(nodes))
        report.pods_upserted = await self._write("pods", self.repository.upsert_pods(pods))

        try:
            usages = await self._fetch("pod usage", self.metrics_collector.collect, MetricsUnavailable)
        except (MetricsUnavailable, TimeoutError) as e:
            message = f"Usage not recorded this cycle: {e}"
            logger.warning(message)
            report.warnings.append(message)
            collector_failures.add(1, {"error": "MetricsUnavailable"})
            return

        snapshots = self._to_snapshots(usages, pods)
        report.snapshots_inserted = await self._write(
            "usage snapshots", self.repository.insert_usage_snapshots(snapshots)
        )
        usage_snapshots_inserted.add(report.snapshots_inserted)

    async def _fetch_inventory(self) -> Tuple[List[Node], List[Pod]]:
        results = await asyncio.gather(
            self._fetch("nodes", self.node_collector.collect, SourceUnavailable),
            self._fetch("pods", self.pod_collector.collect, SourceUnavailable),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, TimeoutError):
                raise SourceUnavailable(str(result)) from result
            if isinstance(result, BaseException):
                raise result
        nodes, pods = results
        return nodes, pods

    async def _fetch(self, what: str, func, error_type):
        return await call_with_retry(
            func,
            max_attempts=self.retry_attempts,
            initial_delay=self.retry_backoff,
            timeout=self.source_timeout,
            exceptions=(error_type,),
            sleep=self.sleep,
            description=f"fetching {what}",
        )

    async def _write(self, what: str, operation: Awaitable[int]) -> int:
        try:
            return await asyncio.wait_for(operation, timeout=self.store_timeout)
        except asyncio.TimeoutError as e:
            raise StoreWriteFailed(f"Writing {what} timed out after {self.store_timeout}s") from e

    @staticmethod
    def _stamp_inventory(
        nodes: List[Node], pods: List[Pod], inventory_at: datetime
    ) -> Tuple[List[Node], List[Pod]]:
        """
        Gives every record of this cycle the same updated_at and resolves
        each pod's node_id from this cycle's nodes.

        Pods stamped before the newest inventory time are treated as gone
        by the Calculator.
        """
        inventory_at = ensure_utc(inventory_at)
        node_ids = {node.name: node.id for node in nodes}
        stamped_nodes = [node.model_copy(update={"updated_at": inventory_at}) for node in nodes]
        stamped_pods = []
        for pod in pods:
            node_id = node_ids.get(pod.node_name) if pod.node_name else None
            stamped_pods.append(pod.model_copy(update={"node_id": node_id, "updated_at": inventory_at}))
        return stamped_nodes, stamped_pods

    @staticmethod
    def _to_snapshots(usages: List[PodUsage], pods: List[Pod]) -> List[UsageSnapshot]:
        pod_ids: Dict[Tuple[str, str], str] = {(pod.namespace, pod.name): pod.id for pod in pods}
        snapshots = []
        skipped = 0
        for usage in usages:
            pod_id = pod_ids.get((usage.namespace, usage.pod))
            if pod_id is None:
                skipped += 1
                logger.debug("No inventory for pod %s/%s; usage skipped.", usage.namespace, usage.pod)
                continue
            snapshots.append(
                UsageSnapshot(
                    pod_id=pod_id,
                    cpu_usage_cores=usage.cpu_usage_cores,
                    memory_usage_gb=usage.memory_usage_gb,
                    observed_at=ensure_utc(usage.timestamp),
                )
            )
        if skipped:
            logger.debug("Skipped usage for %d pods not in this cycle's inventory.", skipped)
        return snapshots

    @staticmethod
    def _fail(report: CycleReport, error: Exception):
        logger.error("Collector cycle aborted: %s", error)
        report.aborted = True
        report.errors.append(f"{type(error).__name__}: {error}")
        collector_failures.add(1, {"error": type(error).__name__})

    async def close(self):
        """Closes every source client."""
        for source in (self.node_collector, self.pod_collector, self.metrics_collector):
            try:
                await source.close()
            except Exception as e:
                logger.warning("Error closing %s: %s", type(source).__name__, e)
