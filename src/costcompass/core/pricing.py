# src/costcompass/core/pricing.py
"""
Pricing model shared by the Collector (node hourly rates) and the Calculator
(group cost, waste and efficiency).
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, Optional

from ..models.node import Node
from .aggregator import GroupUsage
from .exceptions import InvalidGroupData

logger = logging.getLogger(__name__)

HOURS_PER_DAY = 24


@dataclass(frozen=True)
class PricingConfig:
    cpu_hourly_rate: float
    memory_gb_hourly_rate: float
    node_type_prices: Optional[Dict[str, float]] = None

    @classmethod
    def from_config(cls, settings) -> "PricingConfig":
        return cls(
            cpu_hourly_rate=settings.CPU_HOURLY_RATE,
            memory_gb_hourly_rate=settings.MEMORY_GB_HOURLY_RATE,
            node_type_prices=dict(settings.NODE_TYPE_PRICES or {}),
        )


@dataclass(frozen=True)
class GroupCost:
    hourly_cost: float
    requested_hourly_cost: float
    wasted_hourly_cost: float
    daily_cost: float
    daily_wasted_cost: float
    efficiency_score: float


def _is_valid_amount(value) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value) and value >= 0


def node_hourly_rate(node: Node, pricing: PricingConfig) -> float:
    """
    Hourly rate of a node: the configured price for its node type when there
    is one, otherwise its capacity priced at the per-core and per-GB rates.
    """
    prices = pricing.node_type_prices or {}
    if node.node_type and node.node_type in prices:
        return prices[node.node_type]

    rate = node.cpu_capacity_cores * pricing.cpu_hourly_rate + node.memory_capacity_gb * pricing.memory_gb_hourly_rate
    if not _is_valid_amount(rate):
        logger.warning("Could not price node '%s'; using an hourly rate of 0.", node.name)
        return 0.0
    return rate


def price_group(usage: GroupUsage, pricing: PricingConfig) -> GroupCost:
    """
    Prices one group.

    Raises:
        InvalidGroupData: If a rate or a summed quantity is missing,
            negative or not finite.
    """
    rates = {
        "cpu_hourly_rate": pricing.cpu_hourly_rate,
        "memory_gb_hourly_rate": pricing.memory_gb_hourly_rate,
    }
    quantities = {
        "requested_cpu": usage.requested_cpu,
        "requested_memory": usage.requested_memory,
        "actual_cpu": usage.actual_cpu,
        "actual_memory": usage.actual_memory,
    }
    for name, value in {**rates, **quantities}.items():
        if not _is_valid_amount(value):
            raise InvalidGroupData(f"{name} is missing or invalid ({value!r}) for group {usage.label}")

    cpu_rate = pricing.cpu_hourly_rate
    mem_rate = pricing.memory_gb_hourly_rate

    hourly_cost = usage.actual_cpu * cpu_rate + usage.actual_memory * mem_rate
    requested_hourly_cost = usage.requested_cpu * cpu_rate + usage.requested_memory * mem_rate
    wasted = max(0.0, requested_hourly_cost - hourly_cost)

    if requested_hourly_cost == 0:
        efficiency = 0.0
    else:
        # Over-commit (usage above requests) is clamped to 100.
        efficiency = min(100.0, (hourly_cost / requested_hourly_cost) * 100)

    return GroupCost(
        hourly_cost=hourly_cost,
        requested_hourly_cost=requested_hourly_cost,
        wasted_hourly_cost=wasted,
        daily_cost=hourly_cost * HOURS_PER_DAY,
        daily_wasted_cost=wasted * HOURS_PER_DAY,
        efficiency_score=efficiency,
    )
