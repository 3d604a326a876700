# tests/collectors/test_prometheus_collector.py

import httpx
import pytest
import respx

from costcompass.collectors.prometheus_collector import PrometheusCollector
from costcompass.core.config import Config
from costcompass.core.exceptions import MetricsUnavailable

PROM_URL = "http://prometheus:9090"
GIB = 1024**3


@pytest.fixture
def settings(monkeypatch):
    monkeypatch.setenv("METRICS_SOURCE", "prometheus")
    monkeypatch.setenv("PROMETHEUS_URL", PROM_URL)
    monkeypatch.setenv("PROMETHEUS_QUERY_RANGE_STEP", "5m")
    return Config()


def _vector(*series):
    return {
        "status": "success",
        "data": {
            "resultType": "vector",
            "result": [
                {"metric": {"namespace": ns, "pod": pod}, "value": [1714564800, str(value)]}
                for ns, pod, value in series
            ],
        },
    }


def _route_by_query(request):
    query = request.url.params["query"]
    if "container_cpu_usage_seconds_total" in query:
        return httpx.Response(200, json=_vector(("prod", "api-1", 0.5), ("prod", "api-2", "NaN")))
    return httpx.Response(200, json=_vector(("prod", "api-1", GIB), ("dev", "web-1", GIB / 2)))


@respx.mock
async def test_cpu_and_memory_are_merged_per_pod(settings):
    route = respx.get(f"{PROM_URL}/api/v1/query").mock(side_effect=_route_by_query)
    collector = PrometheusCollector(settings)

    usages = await collector.collect()
    await collector.close()

    # web-1 has no CPU series and api-2 only a NaN one; neither is recorded.
    assert [(u.namespace, u.pod) for u in usages] == [("prod", "api-1")]
    assert usages[0].cpu_usage_cores == 0.5
    assert usages[0].memory_usage_gb == 1.0
    assert route.calls.last.request.headers["User-Agent"] == settings.USER_AGENT


@respx.mock
async def test_falls_back_to_prefixed_endpoint(settings):
    respx.get(f"{PROM_URL}/api/v1/query").mock(return_value=httpx.Response(404))
    prefixed = respx.get(f"{PROM_URL}/prometheus/api/v1/query").mock(side_effect=_route_by_query)

    usages = await PrometheusCollector(settings).collect()

    assert prefixed.call_count == 2
    assert [u.pod for u in usages] == ["api-1"]


@respx.mock
async def test_bearer_token_is_sent(settings):
    settings.PROMETHEUS_BEARER_TOKEN = "s3cret"
    route = respx.get(f"{PROM_URL}/api/v1/query").mock(side_effect=_route_by_query)

    await PrometheusCollector(settings).collect()

    assert route.calls[0].request.headers["Authorization"] == "Bearer s3cret"


@respx.mock
async def test_unreachable_prometheus_is_unavailable(settings):
    respx.get(f"{PROM_URL}/api/v1/query").mock(side_effect=httpx.ConnectError("refused"))
    respx.get(f"{PROM_URL}/prometheus/api/v1/query").mock(side_effect=httpx.ConnectError("refused"))

    with pytest.raises(MetricsUnavailable):
        await PrometheusCollector(settings).collect()


@respx.mock
async def test_error_status_is_unavailable(settings):
    error = {"status": "error", "errorType": "bad_data", "error": "parse error"}
    respx.get(f"{PROM_URL}/api/v1/query").mock(return_value=httpx.Response(200, json=error))
    respx.get(f"{PROM_URL}/prometheus/api/v1/query").mock(return_value=httpx.Response(200, json=error))

    with pytest.raises(MetricsUnavailable, match="parse error"):
        await PrometheusCollector(settings).collect()


@respx.mock
async def test_no_series_is_unavailable(settings):
    respx.get(f"{PROM_URL}/api/v1/query").mock(return_value=httpx.Response(200, json=_vector()))

    with pytest.raises(MetricsUnavailable):
        await PrometheusCollector(settings).collect()


async def test_missing_url_is_unavailable(settings):
    settings.PROMETHEUS_URL = ""

    with pytest.raises(MetricsUnavailable):
        await PrometheusCollector(settings).collect()
