# src/costcompass/models/pod.py

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Pod(BaseModel):
    """
    A scheduled workload instance with its summed container requests.

    node_id is a weak reference: the node may not be present in the inventory.
    deployment is only set when deployment attribution is configured and the
    pod carries the label.
    """

    model_config = ConfigDict(frozen=False, extra="forbid")

    id: str = Field(..., description="Pod UID")
    namespace: str
    name: str
    node_name: Optional[str] = Field(None, description="Name of the node the pod is scheduled on")
    node_id: Optional[str] = Field(None, description="UID of the node the pod is scheduled on")
    deployment: Optional[str] = Field(None, description="Deployment attribution, if available")
    cpu_request_cores: float = Field(0.0, ge=0, description="Requested CPU in cores")
    memory_request_gb: float = Field(0.0, ge=0, description="Requested memory in GB")
    created_at: Optional[datetime] = Field(None, description="Pod creation timestamp")
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When this record was last collected.",
    )
