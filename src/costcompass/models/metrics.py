# src/costcompass/models/metrics.py
"""
This module defines the Pydantic data models for usage observations and cost
results. These models are shared by the collectors, the calculator and the
storage layer.
"""

from datetime import date, datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field


class PodUsage(BaseModel):
    """
    Current usage of one pod as reported by a metrics source. Pods are
    identified by namespace and name because metrics sources do not know UIDs.
    """

    namespace: str
    pod: str
    cpu_usage_cores: float = Field(..., ge=0, description="CPU usage in cores")
    memory_usage_gb: float = Field(..., ge=0, description="Memory usage in GB")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the source observed the usage.",
    )


class UsageSnapshot(BaseModel):
    """
    A point-in-time observation of actual consumption for one pod.
    Append-only; id is assigned by the store in insertion order.
    """

    id: Optional[int] = None
    pod_id: str
    cpu_usage_cores: float = Field(..., ge=0)
    memory_usage_gb: float = Field(..., ge=0)
    observed_at: datetime


class CostCalculation(BaseModel):
    """
    Daily cost and efficiency of one workload grouping.

    deployment=None is the namespace-level aggregate. wasted_cost is a daily
    figure like daily_cost.
    """

    id: Optional[int] = None
    namespace: str
    deployment: Optional[str] = None
    daily_cost: float = Field(..., ge=0)
    wasted_cost: float = Field(..., ge=0)
    efficiency_score: float = Field(..., ge=0, le=100)
    calculation_date: date
    hourly_cost: float = Field(0.0, ge=0)
    requested_hourly_cost: float = Field(0.0, ge=0)
    pod_count: int = 0
    calculated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def key(self):
        return (self.namespace, self.deployment, self.calculation_date)


class CycleReport(BaseModel):
    """Outcome of one Collector or Calculator cycle."""

    service: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    nodes_upserted: int = 0
    pods_upserted: int = 0
    snapshots_inserted: int = 0
    calculations_upserted: int = 0
    skipped_groups: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    aborted: bool = False

    @property
    def succeeded(self) -> bool:
        return not self.aborted and not self.errors
