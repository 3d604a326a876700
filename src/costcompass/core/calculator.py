# src/costcompass/core/calculator.py

import asyncio
import logging
from datetime import date, datetime
from typing import Awaitable, Callable, List, Optional, TypeVar

from ..models.metrics import CostCalculation, CycleReport
from ..models.node import Node
from ..models.pod import Pod
from ..storage.base_repository import SnapshotRepository
from ..utils.date_utils import parse_calculation_date, utc_now
from .aggregator import aggregate_usage
from .exceptions import InvalidGroupData, QueryError, StoreWriteFailed
from .pricing import PricingConfig, price_group
from .telemetry import calculator_cycles, calculator_failures, calculator_skipped_groups, tracer

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CostCalculator:
    """Derives daily cost and efficiency per namespace and deployment from the stored snapshots."""

    def __init__(
        self,
        repository: SnapshotRepository,
        pricing: PricingConfig,
        store_timeout: float = 10.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.pricing = pricing
        self.store_timeout = store_timeout
        self.clock = clock

    async def run_cycle(self, calculation_date: Optional[date] = None) -> CycleReport:
        """
        Runs one calculation cycle for calculation_date (default: today in UTC).

        Re-running for the same date replaces that date's rows. Never raises:
        failures are logged, counted and recorded on the returned report.
        """
        started_at = self.clock()
        target_date = parse_calculation_date(calculation_date or started_at)
        report = CycleReport(service="calculator", started_at=started_at)
        calculator_cycles.add(1)
        logger.info(f"--- Starting calculator cycle for {target_date.isoformat()} ---")

        with tracer.start_as_current_span("calculator.cycle") as span:
            span.set_attribute("costcompass.calculation_date", target_date.isoformat())
            try:
                calculations = await self._calculate(target_date, report)
                report.calculations_upserted = await self._store(
                    "cost calculations", self.repository.upsert_cost_calculations(calculations), StoreWriteFailed
                )
            except (QueryError, StoreWriteFailed) as e:
                self._fail(report, e)
            except Exception as e:
                logger.error("Unexpected error in calculator cycle: %s", e, exc_info=True)
                self._fail(report, e)

        report.finished_at = self.clock()
        logger.info(
            "--- Finished calculator cycle: %d groups written, %d skipped%s ---",
            report.calculations_upserted,
            len(report.skipped_groups),
            " (aborted)" if report.aborted else "",
        )
        return report

    async def _calculate(self, target_date: date, report: CycleReport) -> List[CostCalculation]:
        pods = await self._store("pods", self.repository.get_pods(), QueryError)
        nodes = await self._store("nodes", self.repository.get_nodes(), QueryError)
        latest = await self._store("latest usage snapshots", self.repository.get_latest_usage_snapshots(), QueryError)

        pods = self._current_pods(pods, nodes)
        logger.info(
            "Loaded %d current pods (%d with usage) on %d nodes.",
            len(pods),
            sum(1 for pod in pods if pod.id in latest),
            len(nodes),
        )

        calculated_at = self.clock()
        calculations = []
        for usage in aggregate_usage(pods, latest).values():
            try:
                cost = price_group(usage, self.pricing)
            except InvalidGroupData as e:
                logger.warning("Skipping group %s: %s", usage.label, e)
                report.skipped_groups.append(usage.label)
                calculator_skipped_groups.add(1)
                continue

            if usage.pods_without_usage:
                logger.debug("%d pod(s) in %s have no usage yet.", usage.pods_without_usage, usage.label)

            calculations.append(
                CostCalculation(
                    namespace=usage.namespace,
                    deployment=usage.deployment,
                    daily_cost=cost.daily_cost,
                    wasted_cost=cost.daily_wasted_cost,
                    efficiency_score=cost.efficiency_score,
                    hourly_cost=cost.hourly_cost,
                    requested_hourly_cost=cost.requested_hourly_cost,
                    pod_count=len(usage.pod_ids),
                    calculation_date=target_date,
                    calculated_at=calculated_at,
                )
            )
        return calculations

    @staticmethod
    def _current_pods(pods: List[Pod], nodes: List[Node]) -> List[Pod]:
        """
        Keeps the pods of the newest inventory.

        Every record of one collector cycle shares the same updated_at, so a
        pod stamped earlier than the newest node or pod has left the cluster.
        """
        stamps = [record.updated_at for record in (*nodes, *pods) if record.updated_at]
        if not stamps:
            return pods
        inventory_at = max(stamps)

        current = [pod for pod in pods if pod.updated_at and pod.updated_at >= inventory_at]
        if len(current) < len(pods):
            logger.debug(
                "Ignoring %d pod(s) not seen since before %s.", len(pods) - len(current), inventory_at.isoformat()
            )

        node_ids = {node.id for node in nodes}
        unplaced = [pod for pod in current if pod.node_id and pod.node_id not in node_ids]
        if unplaced:
            logger.warning(
                "%d pod(s) reference unknown nodes, e.g. %s/%s on %s.",
                len(unplaced),
                unplaced[0].namespace,
                unplaced[0].name,
                unplaced[0].node_id,
            )
        return current

    async def _store(self, what: str, operation: Awaitable[T], error_type) -> T:
        try:
            return await asyncio.wait_for(operation, timeout=self.store_timeout)
        except asyncio.TimeoutError as e:
            raise error_type(f"Store call for {what} timed out after {self.store_timeout}s") from e

    @staticmethod
    def _fail(report: CycleReport, error: Exception):
        logger.error("Calculator cycle aborted: %s", error)
        report.aborted = True
        report.errors.append(f"{type(error).__name__}: {error}")
        calculator_failures.add(1, {"error": type(error).__name__})
