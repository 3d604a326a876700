import logging
import sqlite3
from datetime import date
from typing import Dict, List, Optional

import aiosqlite

from ..core.exceptions import QueryError, StoreWriteFailed
from ..models.metrics import CostCalculation, UsageSnapshot
from ..models.node import Node
from ..models.pod import Pod
from ..utils.date_utils import parse_iso_date, to_iso_z
from .base_repository import SnapshotRepository

logger = logging.getLogger(__name__)


def _iso_or_none(value) -> Optional[str]:
    return to_iso_z(value) if value else None


class SQLiteSnapshotRepository(SnapshotRepository):
    """
    Implementation of the snapshot store for SQLite.

    Timestamps are stored as ISO 8601 strings with a 'Z' suffix and fixed
    microsecond precision so that string order is chronological order.
    """

    def __init__(self, db_manager):
        """
        Initializes the repository with a database manager.

        Args:
            db_manager: The DatabaseManager instance.
        """
        self.db_manager = db_manager

    async def _write_many(self, what: str, query: str, rows: List[tuple]) -> int:
        if not rows:
            return 0
        try:
            async with self.db_manager.write_lock, self.db_manager.connection_scope() as conn:
                try:
                    await conn.executemany(query, rows)
                    await conn.commit()
                except BaseException:
                    # Cancellation included: the connection is shared.
                    await conn.rollback()
                    raise
            return len(rows)
        except sqlite3.Error as e:
            logger.error(f"Database error while writing {what}: {e}")
            raise StoreWriteFailed(f"Could not write {what}: {e}") from e
        except Exception as e:
            logger.error(f"Unexpected error while writing {what}: {e}")
            raise StoreWriteFailed(f"Unexpected error while writing {what}: {e}") from e

    async def _fetch_all(self, what: str, query: str, params: tuple = ()) -> List[aiosqlite.Row]:
        try:
            async with self.db_manager.connection_scope() as conn:
                conn.row_factory = aiosqlite.Row
                async with conn.execute(query, params) as cursor:
                    return await cursor.fetchall()
        except sqlite3.Error as e:
            logger.error(f"Database error while reading {what}: {e}")
            raise QueryError(f"Could not read {what}: {e}") from e
        except Exception as e:
            logger.error(f"Unexpected error while reading {what}: {e}")
            raise QueryError(f"Unexpected error while reading {what}: {e}") from e

    async def upsert_nodes(self, nodes: List[Node]) -> int:
        query = """
            INSERT INTO nodes
                (id, name, node_type, cpu_capacity_cores, memory_capacity_gb, hourly_rate, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                node_type = excluded.node_type,
                cpu_capacity_cores = excluded.cpu_capacity_cores,
                memory_capacity_gb = excluded.memory_capacity_gb,
                hourly_rate = excluded.hourly_rate,
                updated_at = excluded.updated_at;
        """
        rows = [
            (
                node.id,
                node.name,
                node.node_type,
                node.cpu_capacity_cores,
                node.memory_capacity_gb,
                node.hourly_rate,
                to_iso_z(node.updated_at),
            )
            for node in nodes
        ]
        return await self._write_many("nodes", query, rows)

    async def upsert_pods(self, pods: List[Pod]) -> int:
        query = """
            INSERT INTO pods
                (id, namespace, name, node_name, node_id, deployment,
                 cpu_request_cores, memory_request_gb, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                namespace = excluded.namespace,
                name = excluded.name,
                node_name = excluded.node_name,
                node_id = excluded.node_id,
                deployment = excluded.deployment,
                cpu_request_cores = excluded.cpu_request_cores,
                memory_request_gb = excluded.memory_request_gb,
                created_at = excluded.created_at,
                updated_at = excluded.updated_at;
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
                _iso_or_none(pod.created_at),
                to_iso_z(pod.updated_at),
            )
            for pod in pods
        ]
        return await self._write_many("pods", query, rows)

    async def insert_usage_snapshots(self, snapshots: List[UsageSnapshot]) -> int:
        query = """
            INSERT INTO usage_snapshots (pod_id, cpu_usage_cores, memory_usage_gb, observed_at)
            VALUES (?, ?, ?, ?);
        """
        rows = [
            (s.pod_id, s.cpu_usage_cores, s.memory_usage_gb, to_iso_z(s.observed_at))
            for s in snapshots
        ]
        return await self._write_many("usage snapshots", query, rows)

    async def get_nodes(self) -> List[Node]:
        rows = await self._fetch_all(
            "nodes",
            """
            SELECT id, name, node_type, cpu_capacity_cores, memory_capacity_gb, hourly_rate, updated_at
            FROM nodes ORDER BY id
            """,
        )
        return [
            Node(
                id=row["id"],
                name=row["name"],
                node_type=row["node_type"],
                cpu_capacity_cores=row["cpu_capacity_cores"],
                memory_capacity_gb=row["memory_capacity_gb"],
                hourly_rate=row["hourly_rate"],
                updated_at=parse_iso_date(row["updated_at"]),
            )
            for row in rows
        ]

    async def get_pods(self) -> List[Pod]:
        rows = await self._fetch_all(
            "pods",
            """
            SELECT id, namespace, name, node_name, node_id, deployment,
                   cpu_request_cores, memory_request_gb, created_at, updated_at
            FROM pods ORDER BY id
            """,
        )
        return [
            Pod(
                id=row["id"],
                namespace=row["namespace"],
                name=row["name"],
                node_name=row["node_name"],
                node_id=row["node_id"],
                deployment=row["deployment"] or None,
                cpu_request_cores=row["cpu_request_cores"],
                memory_request_gb=row["memory_request_gb"],
                created_at=parse_iso_date(row["created_at"]),
                updated_at=parse_iso_date(row["updated_at"]),
            )
            for row in rows
        ]

    async def get_latest_usage_snapshots(self) -> Dict[str, UsageSnapshot]:
        rows = await self._fetch_all(
            "latest usage snapshots",
            """
            SELECT id, pod_id, cpu_usage_cores, memory_usage_gb, observed_at
            FROM (
                SELECT id, pod_id, cpu_usage_cores, memory_usage_gb, observed_at,
                       ROW_NUMBER() OVER (
                           PARTITION BY pod_id ORDER BY observed_at DESC, id DESC
                       ) AS rn
                FROM usage_snapshots
            )
            WHERE rn = 1
            """,
        )
        return {
            row["pod_id"]: UsageSnapshot(
                id=row["id"],
                pod_id=row["pod_id"],
                cpu_usage_cores=row["cpu_usage_cores"],
                memory_usage_gb=row["memory_usage_gb"],
                observed_at=parse_iso_date(row["observed_at"]),
            )
            for row in rows
        }

    async def upsert_cost_calculations(self, calculations: List[CostCalculation]) -> int:
        query = """
            INSERT INTO cost_calculations
                (namespace, deployment, daily_cost, wasted_cost, efficiency_score,
                 hourly_cost, requested_hourly_cost, pod_count, calculation_date, calculated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(namespace, deployment, calculation_date) DO UPDATE SET
                daily_cost = excluded.daily_cost,
                wasted_cost = excluded.wasted_cost,
                efficiency_score = excluded.efficiency_score,
                hourly_cost = excluded.hourly_cost,
                requested_hourly_cost = excluded.requested_hourly_cost,
                pod_count = excluded.pod_count,
                calculated_at = excluded.calculated_at;
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
                c.calculation_date.isoformat(),
                to_iso_z(c.calculated_at),
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
            WHERE calculation_date = ?
        """
        params = [calculation_date.isoformat()]
        if namespace:
            query += " AND namespace = ?"
            params.append(namespace)
        query += " ORDER BY namespace, deployment"

        rows = await self._fetch_all("cost calculations", query, tuple(params))
        return [
            CostCalculation(
                id=row["id"],
                namespace=row["namespace"],
                deployment=row["deployment"] or None,
                daily_cost=row["daily_cost"],
                wasted_cost=row["wasted_cost"],
                efficiency_score=row["efficiency_score"],
                hourly_cost=row["hourly_cost"] or 0.0,
                requested_hourly_cost=row["requested_hourly_cost"] or 0.0,
                pod_count=row["pod_count"] or 0,
                calculation_date=date.fromisoformat(row["calculation_date"]),
                calculated_at=parse_iso_date(row["calculated_at"]),
            )
            for row in rows
        ]
