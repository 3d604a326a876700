# tests/collectors/test_pod_collector.py

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from kubernetes_asyncio import client

from costcompass.collectors.pod_collector import PodCollector, effective_requests
from costcompass.core.exceptions import SourceUnavailable

CREATED = datetime(2024, 4, 30, 8, 0, tzinfo=timezone.utc)


def _container(name, cpu=None, memory=None):
    requests = {}
    if cpu:
        requests["cpu"] = cpu
    if memory:
        requests["memory"] = memory
    return client.V1Container(name=name, resources=client.V1ResourceRequirements(requests=requests or None))


def create_pod(
    name, namespace="prod", uid=None, labels=None, containers=None, init_containers=None, node_name="n1", phase="Running"
):
    return client.V1Pod(
        metadata=client.V1ObjectMeta(
            name=name,
            namespace=namespace,
            uid=uid,
            labels=labels,
            creation_timestamp=CREATED,
        ),
        spec=client.V1PodSpec(
            containers=containers or [_container("app", "250m", "512Mi")],
            init_containers=init_containers,
            node_name=node_name,
        ),
        status=client.V1PodStatus(phase=phase),
    )


def _api_with(pods=None, side_effect=None):
    api = MagicMock()
    api.list_pod_for_all_namespaces = AsyncMock(
        return_value=client.V1PodList(items=pods or []), side_effect=side_effect
    )
    return api


def test_effective_requests_sum_app_containers():
    spec = create_pod("p", containers=[_container("a", "250m", "512Mi"), _container("b", "1", "1Gi")]).spec

    assert effective_requests(spec) == (1.25, 1.5)


def test_effective_requests_use_larger_init_container():
    spec = create_pod(
        "p",
        containers=[_container("a", "100m", "128Mi")],
        init_containers=[_container("init", "2", "64Mi")],
    ).spec

    cpu, memory = effective_requests(spec)
    assert cpu == 2.0
    assert memory == 0.125


def test_container_without_requests_counts_as_zero():
    spec = create_pod("p", containers=[_container("a")]).spec

    assert effective_requests(spec) == (0.0, 0.0)


async def test_collect_pods_with_deployment_label():
    api = _api_with(
        [
            create_pod("api-1", uid="uid-1", labels={"app.kubernetes.io/name": "api"}),
            create_pod("batch", namespace="jobs", labels={"team": "data"}, node_name=None),
        ]
    )

    with patch("costcompass.collectors.pod_collector.get_core_v1_api", AsyncMock(return_value=api)):
        pods = await PodCollector(deployment_label="app.kubernetes.io/name").collect()

    assert [p.id for p in pods] == ["uid-1", "jobs/batch"]
    assert pods[0].deployment == "api"
    assert pods[0].node_name == "n1"
    assert pods[0].node_id is None
    assert pods[0].cpu_request_cores == 0.25
    assert pods[0].memory_request_gb == 0.5
    assert pods[0].created_at == CREATED
    assert pods[1].deployment is None
    assert pods[1].node_name is None


async def test_no_deployment_without_label_key():
    api = _api_with([create_pod("api-1", labels={"app.kubernetes.io/name": "api"})])

    with patch("costcompass.collectors.pod_collector.get_core_v1_api", AsyncMock(return_value=api)):
        [pod] = await PodCollector().collect()

    assert pod.deployment is None


async def test_collect_raises_on_api_error():
    api = _api_with(side_effect=RuntimeError("connection refused"))

    with patch("costcompass.collectors.pod_collector.get_core_v1_api", AsyncMock(return_value=api)):
        with pytest.raises(SourceUnavailable):
            await PodCollector().collect()


async def test_finished_pods_are_not_inventoried():
    api = _api_with(
        [
            create_pod("api-1", uid="uid-1"),
            create_pod("migrate", uid="uid-2", phase="Succeeded"),
            create_pod("crashed", uid="uid-3", phase="Failed"),
            create_pod("starting", uid="uid-4", phase="Pending"),
        ]
    )

    with patch("costcompass.collectors.pod_collector.get_core_v1_api", AsyncMock(return_value=api)):
        pods = await PodCollector().collect()

    assert [p.id for p in pods] == ["uid-1", "uid-4"]
