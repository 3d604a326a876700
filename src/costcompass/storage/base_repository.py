# src/costcompass/storage/base_repository.py
from abc import ABC, abstractmethod
from datetime import date
from typing import Dict, List, Optional

from ..models.metrics import CostCalculation, UsageSnapshot
from ..models.node import Node
from ..models.pod import Pod


class SnapshotRepository(ABC):
    """
    Abstract base class for the snapshot store.

    Inventory and cost records are upserted by key; usage snapshots are
    append-only. Nothing is ever deleted. Write failures raise
    StoreWriteFailed and read failures raise QueryError.
    """

    @abstractmethod
    async def upsert_nodes(self, nodes: List[Node]) -> int:
        """
        Inserts or updates nodes keyed by id, overwriting mutable fields.

        Returns:
            The number of records written.
        """
        pass

    @abstractmethod
    async def upsert_pods(self, pods: List[Pod]) -> int:
        """
        Inserts or updates pods keyed by id, overwriting mutable fields.

        Returns:
            The number of records written.
        """
        pass

    @abstractmethod
    async def insert_usage_snapshots(self, snapshots: List[UsageSnapshot]) -> int:
        """
        Appends new usage snapshots. Existing snapshots are never modified.

        Returns:
            The number of records inserted.
        """
        pass

    @abstractmethod
    async def get_nodes(self) -> List[Node]:
        pass

    @abstractmethod
    async def get_pods(self) -> List[Pod]:
        pass

    @abstractmethod
    async def get_latest_usage_snapshots(self) -> Dict[str, UsageSnapshot]:
        """
        Returns the latest snapshot of every pod that has one, keyed by pod id.

        Latest is the maximum observed_at; ties go to the most recently
        inserted snapshot.
        """
        pass

    @abstractmethod
    async def upsert_cost_calculations(self, calculations: List[CostCalculation]) -> int:
        """
        Inserts or replaces cost calculations keyed by
        (namespace, deployment, calculation_date).

        Returns:
            The number of records written.
        """
        pass

    @abstractmethod
    async def get_cost_calculations(
        self, calculation_date: date, namespace: Optional[str] = None
    ) -> List[CostCalculation]:
        """
        Reads the cost calculations of one date, optionally for a single namespace.
        """
        pass
