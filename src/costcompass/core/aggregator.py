# src/costcompass/core/aggregator.py
"""
Aggregates pod requests and latest usage by workload grouping.

Every pod contributes to its namespace-level group (namespace, None). Pods
attributed to a deployment additionally contribute to (namespace, deployment).
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from ..models.metrics import UsageSnapshot
from ..models.pod import Pod

GroupKey = Tuple[str, Optional[str]]


@dataclass
class GroupUsage:
    namespace: str
    deployment: Optional[str] = None
    requested_cpu: float = 0.0
    requested_memory: float = 0.0
    actual_cpu: float = 0.0
    actual_memory: float = 0.0
    pod_ids: List[str] = field(default_factory=list)
    pods_without_usage: int = 0

    @property
    def key(self) -> GroupKey:
        return (self.namespace, self.deployment)

    @property
    def label(self) -> str:
        if self.deployment is None:
            return self.namespace
        return f"{self.namespace}/{self.deployment}"

    def add(self, pod: Pod, snapshot: Optional[UsageSnapshot]):
        self.pod_ids.append(pod.id)
        self.requested_cpu += pod.cpu_request_cores
        self.requested_memory += pod.memory_request_gb
        if snapshot is None:
            # No observation yet counts as zero usage, not as a missing pod.
            self.pods_without_usage += 1
            return
        self.actual_cpu += snapshot.cpu_usage_cores
        self.actual_memory += snapshot.memory_usage_gb


def _group_keys(pod: Pod) -> List[GroupKey]:
    keys: List[GroupKey] = [(pod.namespace, None)]
    if pod.deployment:
        keys.append((pod.namespace, pod.deployment))
    return keys


def aggregate_usage(
    pods: Iterable[Pod],
    latest_snapshots: Mapping[str, UsageSnapshot],
) -> Dict[GroupKey, GroupUsage]:
    """Sum requested and actual CPU/memory per group.

    latest_snapshots maps pod id to that pod's latest snapshot. Pods are
    summed in id order and the result is ordered by group key, so the same
    inputs always give the same floating point sums.
    """
    groups: Dict[GroupKey, GroupUsage] = {}
    for pod in sorted(pods, key=lambda p: p.id):
        snapshot = latest_snapshots.get(pod.id)
        for key in _group_keys(pod):
            if key not in groups:
                groups[key] = GroupUsage(namespace=key[0], deployment=key[1])
            groups[key].add(pod, snapshot)

    return {key: groups[key] for key in sorted(groups, key=lambda k: (k[0], k[1] or ""))}
