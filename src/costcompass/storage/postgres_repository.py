import logging
from datetime import date
from typing import Dict, List, Optional

from ..core.exceptions import QueryError, StoreWriteFailed
from ..models.metrics import CostCalculation, UsageSnapshot
from ..models.node import Node
from ..models.pod import Pod
from .base_repository import SnapshotRepository

logger = logging.getLogger(__name__)


class PostgresSnapshotRepository(SnapshotRepository):
    def __init__(self, db_manager):
        self.db_manager = db_manager

    async def _write_many(self, what: str, query: str, rows: List[tuple]) -> int:
        if not rows:
            return 0
        try:
            async with self.db_manager.connection_scope() as conn:
                async with conn.transaction():
                    await conn.executemany(query, rows)
            logger.debug(f"Wrote {len(rows)} {what} to Postgres.")
            return len(rows)
        except Exception as e:
            logger.error(f"Error writing {what} to Postgres: {e}")
            raise StoreWriteFailed(f"Error writing {what}: {e}") from e

    async def _fetch(self, what: str, query: str, *args):
        try:
            async with self.db_manager.connection_scope() as conn:
                return await conn.fetch(query, *args)
        except Exception as e:
            logger.error(f"Error reading {what} from Postgres: {e}")
            raise QueryError(f"Error reading {what}: {e}") from e

    async def upsert_nodes(self, nodes: List[Node]) -> int:
        query = """
            INSERT INTO nodes (
                id, name, node_type, cpu_capacity_cores, memory_capacity_gb, hourly_rate, updated_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7)
            ON CONFLICT (id) DO UPDATE SET
                name = EXCLUDED.name,
                node_type = EXCLUDED.node_type,
                cpu_capacity_cores = EXCLUDED.cpu_capacity_cores,
                memory_capacity_gb = EXCLUDED.memory_capacity_gb,
                hourly_rate = EXCLUDED.hourly_rate,
                updated_at = EXCLUDED.updated_at
        """
        rows = [
            (
                node.id,
                node.name,
                node.node_type,
                node.cpu_capacity_cores,
                node.memory_capacity_gb,
                node.hourly_rate,
                node.updated_at,
            )
            for node in nodes
        ]
        return await self._write_many("nodes", query, rows)

    async def upsert_pods(self, pods: List[Pod]) -> int:
        query = """
            INSERT INTO pods (
                id, namespace, name, node_name, node_id, deployment,
                cpu_request_cores, memory_request_gb, created_at, updated_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
            ON CONFLICT (id) DO UPDATE SET
                namespace = EXCLUDED.namespace,
                name = EXCLUDED.name,
                node_name = EXCLUDED.node_name,
                node_id = EXCLUDED.node_id,
                deployment = EXCLUDED.deployment,
                cpu_request_cores = EXCLUDED.cpu_request_cores,
                memory_request_gb = EXCLUDED.memory_request_gb,
                created_at = EXCLUDED.created_at,
                updated_at = EXCLUDED.updated_at
        """
        rows = [
            (
                pod.id,
                pod.namespace,
                pod.name,
                pod.node_name,
                pod.node_id,
                pod.deployment,
                pod.cpu_request_cores,
                pod.memory_request_gb,
                pod.created_at,
                pod.updated_at,
            )
            for pod in pods
        ]
        return await self._write_many("pods", query, rows)

    async def insert_usage_snapshots(self, snapshots: List[UsageSnapshot]) -> int:
        query = """
            INSERT INTO usage_snapshots (pod_id, cpu_usage_cores, memory_usage_gb, observed_at)
            VALUES ($1, $2, $3, $4)
        """
        rows = [(s.pod_id, s.cpu_usage_cores, s.memory_usage_gb, s.observed_at) for s in snapshots]
        return await self._write_many("usage snapshots", query, rows)

    async def get_nodes(self) -> List[Node]:
        results = await self._fetch(
            "nodes",
            """
            SELECT id, name, node_type, cpu_capacity_cores, memory_capacity_gb, hourly_rate, updated_at
            FROM nodes ORDER BY id
            """,
        )
        return [Node(**dict(row)) for row in results]

    async def get_pods(self) -> List[Pod]:
        results = await self._fetch(
            "pods",
            """
            SELECT id, namespace, name, node_name, node_id, deployment,
                   cpu_request_cores, memory_request_gb, created_at, updated_at
            FROM pods ORDER BY id
            """,
        )
        pods = []
        for row in results:
            data = dict(row)
            data["deployment"] = data.get("deployment") or None
            pods.append(Pod(**data))
        return pods

    async def get_latest_usage_snapshots(self) -> Dict[str, UsageSnapshot]:
        # BIGSERIAL ids increase with insertion order, which breaks timestamp ties.
        results = await self._fetch(
            "latest usage snapshots",
            """
            SELECT DISTINCT ON (pod_id)
                   id, pod_id, cpu_usage_cores, memory_usage_gb, observed_at
            FROM usage_snapshots
            ORDER BY pod_id, observed_at DESC, id DESC
            """,
        )
        return {row["pod_id"]: UsageSnapshot(**dict(row)) for row in results}

    async def upsert_cost_calculations(self, calculations: List[CostCalculation]) -> int:
        query = """
            INSERT INTO cost_calculations (
                namespace, deployment, daily_cost, wasted_cost, efficiency_score,
                hourly_cost, requested_hourly_cost, pod_count, calculation_date, calculated_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
            ON CONFLICT (namespace, deployment, calculation_date) DO UPDATE SET
                daily_cost = EXCLUDED.daily_cost,
                wasted_cost = EXCLUDED.wasted_cost,
                efficiency_score = EXCLUDED.efficiency_score,
                hourly_cost = EXCLUDED.hourly_cost,
                requested_hourly_cost = EXCLUDED.requested_hourly_cost,
                pod_count = EXCLUDED.pod_count,
                calculated_at = EXCLUDED.calculated_at
        """
        rows = [
            (
                c.namespace,
                c.deployment or "",
                c.daily_cost,
                c.wasted_cost,
                c.efficiency_score,
                c.hourly_cost,
                c.requested_hourly_cost,
                c.pod_count,
                c.calculation_date,
                c.calculated_at,
            )
            for c in calculations
        ]
        return await self._write_many("cost calculations", query, rows)

    async def get_cost_calculations(
        self, calculation_date: date, namespace: Optional[str] = None
    ) -> List[CostCalculation]:
        query = """
            SELECT id, namespace, deployment, daily_cost, wasted_cost, efficiency_score,
                   hourly_cost, requested_hourly_cost, pod_count, calculation_date, calculated_at
            FROM cost_calculations
            WHERE calculation_date = $1
        """
        args = [calculation_date]
        if namespace:
            query += " AND namespace = $2"
            args.append(namespace)
        query += " ORDER BY namespace, deployment"

        results = await self._fetch("cost calculations", query, *args)
        calculations = []
        for row in results:
            data = dict(row)
            data["deployment"] = data.get("deployment") or None
            calculations.append(CostCalculation(**data))
        return calculations
