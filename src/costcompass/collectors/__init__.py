from .metrics_server_collector import MetricsServerCollector
from .node_collector import NodeCollector
from .pod_collector import PodCollector
from .prometheus_collector import PrometheusCollector

__all__ = [
    "MetricsServerCollector",
    "NodeCollector",
    "PodCollector",
    "PrometheusCollector",
]
