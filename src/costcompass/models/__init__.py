from .metrics import CostCalculation, CycleReport, PodUsage, UsageSnapshot
from .node import Node
from .pod import Pod

__all__ = [
    "CostCalculation",
    "CycleReport",
    "Node",
    "Pod",
    "PodUsage",
    "UsageSnapshot",
]
