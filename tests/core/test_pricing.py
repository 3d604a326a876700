# tests/core/test_pricing.py

import math

import pytest

from costcompass.core.aggregator import GroupUsage
from costcompass.core.exceptions import InvalidGroupData
from costcompass.core.pricing import PricingConfig, node_hourly_rate, price_group
from costcompass.models.node import Node


def _usage(requested_cpu=1.0, requested_memory=2.0, actual_cpu=0.5, actual_memory=1.0):
    return GroupUsage(
        namespace="prod",
        requested_cpu=requested_cpu,
        requested_memory=requested_memory,
        actual_cpu=actual_cpu,
        actual_memory=actual_memory,
    )


def test_price_group_half_used(pricing):
    cost = price_group(_usage(), pricing)

    assert cost.hourly_cost == pytest.approx(0.0195)
    assert cost.requested_hourly_cost == pytest.approx(0.039)
    assert cost.wasted_hourly_cost == pytest.approx(0.0195)
    assert cost.efficiency_score == pytest.approx(50.0)
    assert cost.daily_cost == pytest.approx(0.468)
    assert cost.daily_wasted_cost == pytest.approx(0.468)


def test_price_group_without_usage_wastes_everything(pricing):
    cost = price_group(_usage(actual_cpu=0.0, actual_memory=0.0), pricing)

    assert cost.hourly_cost == 0.0
    assert cost.wasted_hourly_cost == pytest.approx(cost.requested_hourly_cost)
    assert cost.efficiency_score == 0.0


def test_overcommit_is_clamped(pricing):
    cost = price_group(_usage(actual_cpu=4.0, actual_memory=8.0), pricing)

    assert cost.efficiency_score == 100.0
    assert cost.wasted_hourly_cost == 0.0
    assert cost.daily_wasted_cost == 0.0


def test_zero_requests_gives_zero_efficiency(pricing):
    cost = price_group(_usage(requested_cpu=0.0, requested_memory=0.0), pricing)

    assert cost.requested_hourly_cost == 0.0
    assert cost.efficiency_score == 0.0
    assert cost.wasted_hourly_cost == 0.0


@pytest.mark.parametrize(
    "pricing_kwargs,usage_kwargs",
    [
        ({"cpu_hourly_rate": -0.1, "memory_gb_hourly_rate": 0.004}, {}),
        ({"cpu_hourly_rate": math.nan, "memory_gb_hourly_rate": 0.004}, {}),
        ({"cpu_hourly_rate": 0.031, "memory_gb_hourly_rate": None}, {}),
        ({"cpu_hourly_rate": 0.031, "memory_gb_hourly_rate": 0.004}, {"actual_cpu": math.inf}),
        ({"cpu_hourly_rate": 0.031, "memory_gb_hourly_rate": 0.004}, {"requested_memory": -1.0}),
    ],
)
def test_invalid_inputs_raise(pricing_kwargs, usage_kwargs):
    with pytest.raises(InvalidGroupData):
        price_group(_usage(**usage_kwargs), PricingConfig(**pricing_kwargs))


def test_node_rate_prefers_node_type_price():
    pricing = PricingConfig(0.031, 0.004, node_type_prices={"m5.large": 0.096})
    node = Node(id="uid-1", name="n1", node_type="m5.large", cpu_capacity_cores=2, memory_capacity_gb=8)

    assert node_hourly_rate(node, pricing) == 0.096


def test_node_rate_falls_back_to_capacity(pricing):
    node = Node(id="uid-1", name="n1", node_type="unknown", cpu_capacity_cores=4, memory_capacity_gb=16)

    assert node_hourly_rate(node, pricing) == pytest.approx(4 * 0.031 + 16 * 0.004)


def test_pricing_from_config():
    class Settings:
        CPU_HOURLY_RATE = 0.05
        MEMORY_GB_HOURLY_RATE = 0.01
        NODE_TYPE_PRICES = {"a": 1.0}

    pricing = PricingConfig.from_config(Settings())

    assert pricing.cpu_hourly_rate == 0.05
    assert pricing.memory_gb_hourly_rate == 0.01
    assert pricing.node_type_prices == {"a": 1.0}
