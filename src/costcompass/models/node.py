# src/costcompass/models/node.py

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Node(BaseModel):
    """
    Pydantic model for a cluster node as kept in the inventory.

    Attributes:
        id: Node UID from the control plane
        name: Node display name
        node_type: Instance type label (e.g., 'm5.large'), if any
        cpu_capacity_cores: CPU capacity in cores
        memory_capacity_gb: Memory capacity in GB (1024**3 bytes)
        hourly_rate: Hourly cost of the node
    """

    model_config = ConfigDict(frozen=False, extra="forbid")

    id: str = Field(..., description="Node UID")
    name: str = Field(..., description="Node name")
    node_type: Optional[str] = Field(None, description="Instance type label")
    cpu_capacity_cores: float = Field(0.0, ge=0, description="CPU capacity in cores")
    memory_capacity_gb: float = Field(0.0, ge=0, description="Memory capacity in GB")
    hourly_rate: float = Field(0.0, ge=0, description="Hourly cost rate")
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When this record was last collected.",
    )
