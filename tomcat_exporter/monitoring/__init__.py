"""
Monitoring and Metrics Collection Module

This module turns managed objects into Prometheus metric families and
times database queries and HTTP requests.
"""

from .families import FAMILY_REGISTRY, FamilyRegistry, MetricFamily, MetricFamilyBuilder, MetricKind
from .generic_metrics import GenericRuntimeCollector
from .pool_metrics import PoolMetricsCollector
from .metrics import METRICS_REGISTRY, init_exporter
from .query_interceptor import QueryInterceptor
from .request_metrics import RequestMetrics

__all__ = [
    'FAMILY_REGISTRY',
    'FamilyRegistry',
    'GenericRuntimeCollector',
    'METRICS_REGISTRY',
    'MetricFamily',
    'MetricFamilyBuilder',
    'MetricKind',
    'PoolMetricsCollector',
    'QueryInterceptor',
    'RequestMetrics',
    'init_exporter',
]
