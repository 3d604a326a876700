# tests/collectors/test_node_collector.py

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from kubernetes_asyncio import client
from kubernetes_asyncio.client.rest import ApiException

from costcompass.collectors.node_collector import NodeCollector
from costcompass.core.exceptions import SourceUnavailable
from costcompass.core.pricing import PricingConfig

# --- Mock Kubernetes Objects ---


def create_node(name, uid=None, labels=None, cpu="4", memory="16Gi"):
    """Helper function to create a V1Node object."""
    return client.V1Node(
        metadata=client.V1ObjectMeta(name=name, uid=uid, labels=labels or {}),
        status=client.V1NodeStatus(capacity={"cpu": cpu, "memory": memory}),
    )


def _api_with(nodes=None, side_effect=None):
    api = MagicMock()
    api.list_node = AsyncMock(return_value=client.V1NodeList(items=nodes or []), side_effect=side_effect)
    api.api_client.close = AsyncMock()
    return api


# --- Test Cases ---


async def test_collect_nodes_with_capacity_and_rate():
    pricing = PricingConfig(0.031, 0.004, node_type_prices={"m5.large": 0.096})
    api = _api_with(
        [
            create_node("node-1", uid="uid-1", labels={"node.kubernetes.io/instance-type": "m5.large"}),
            create_node("node-2", labels={"beta.kubernetes.io/instance-type": "t3.small"}, cpu="2000m", memory="4Gi"),
        ]
    )

    with patch("costcompass.collectors.node_collector.get_core_v1_api", AsyncMock(return_value=api)):
        nodes = await NodeCollector(pricing, request_timeout=5).collect()

    assert [n.id for n in nodes] == ["uid-1", "node-2"]
    assert nodes[0].node_type == "m5.large"
    assert nodes[0].cpu_capacity_cores == 4.0
    assert nodes[0].memory_capacity_gb == 16.0
    assert nodes[0].hourly_rate == 0.096

    assert nodes[1].node_type == "t3.small"
    assert nodes[1].cpu_capacity_cores == 2.0
    assert nodes[1].hourly_rate == pytest.approx(2 * 0.031 + 4 * 0.004)
    api.list_node.assert_awaited_once_with(watch=False, _request_timeout=5)


async def test_collect_raises_when_api_fails(pricing):
    api = _api_with(side_effect=ApiException(status=403, reason="Forbidden"))

    with patch("costcompass.collectors.node_collector.get_core_v1_api", AsyncMock(return_value=api)):
        with pytest.raises(SourceUnavailable, match="403"):
            await NodeCollector(pricing).collect()


async def test_collect_raises_without_kubernetes_config(pricing):
    with patch("costcompass.collectors.node_collector.get_core_v1_api", AsyncMock(return_value=None)):
        with pytest.raises(SourceUnavailable):
            await NodeCollector(pricing).collect()


async def test_empty_cluster_returns_no_nodes(pricing):
    with patch("costcompass.collectors.node_collector.get_core_v1_api", AsyncMock(return_value=_api_with([]))):
        assert await NodeCollector(pricing).collect() == []


async def test_close_releases_client(pricing):
    api = _api_with([])
    collector = NodeCollector(pricing)

    with patch("costcompass.collectors.node_collector.get_core_v1_api", AsyncMock(return_value=api)):
        await collector.collect()
    await collector.close()

    api.api_client.close.assert_awaited_once()
