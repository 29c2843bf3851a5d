"""
Prometheus Metrics Registry for the Exporter

This module owns the exporter's CollectorRegistry, the create-once store for
metrics shared by several producers (query interceptors of different pools,
the request filter), and the one-time bootstrap that registers the
collectors.
"""

import logging
import threading
import weakref
from typing import Callable, Dict, Optional, TypeVar

from prometheus_client import (
    CollectorRegistry,
    GCCollector,
    PlatformCollector,
    ProcessCollector,
)

from tomcat_exporter.config import config
from tomcat_exporter.management.server import ManagementServer, get_platform_server
from tomcat_exporter.monitoring.families import FamilyRegistry
from tomcat_exporter.monitoring.generic_metrics import GenericRuntimeCollector
from tomcat_exporter.monitoring.pool_metrics import PoolMetricsCollector

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Create a custom registry for our metrics
METRICS_REGISTRY = CollectorRegistry()

_shared: "weakref.WeakKeyDictionary[CollectorRegistry, Dict[str, object]]" = weakref.WeakKeyDictionary()
_shared_lock = threading.Lock()

_exporters: "weakref.WeakKeyDictionary[CollectorRegistry, Dict[str, object]]" = weakref.WeakKeyDictionary()
_exporters_lock = threading.Lock()


def shared_metric(registry: CollectorRegistry, name: str, factory: Callable[[], T]) -> T:
    """Return the metric stored under ``name`` for ``registry``, creating it once.

    ``factory`` must register the new metric with ``registry``. Concurrent
    first calls create it only once; later callers get the same object even
    if they were configured differently.
    """
    with _shared_lock:
        metrics = _shared.setdefault(registry, {})
        metric = metrics.get(name)
        if metric is None:
            metric = metrics[name] = factory()
            logger.debug(f"Created shared metric {name}")
        return metric


def init_exporter(registry: Optional[CollectorRegistry] = None,
                  server: Optional[ManagementServer] = None,
                  families: Optional[FamilyRegistry] = None) -> CollectorRegistry:
    """Register the default, generic and pool collectors once per registry.

    Either every collector is registered or none is, so a failed call can be
    retried.
    """
    registry = registry if registry is not None else METRICS_REGISTRY
    server = server if server is not None else get_platform_server()

    with _exporters_lock:
        if registry in _exporters:
            return registry

        collectors = []
        if config.PROCESS_METRICS:
            collectors += [ProcessCollector(registry=None), PlatformCollector(registry=None),
                           GCCollector(registry=None)]
        generic = GenericRuntimeCollector(server, jmx_domain=config.JMX_DOMAIN,
                                          namespace=config.NAMESPACE, families=families)
        pools = PoolMetricsCollector(server, jmx_domain=config.JMX_DOMAIN, namespace=config.NAMESPACE,
                                     context_label=config.POOL_CONTEXT_LABEL, families=families)
        collectors += [generic, pools]

        registered = []
        try:
            for collector in collectors:
                registry.register(collector)
                registered.append(collector)
        except Exception:
            for collector in registered:
                registry.unregister(collector)
            raise
        _exporters[registry] = {"generic": generic, "pools": pools}

    detected = [tag for tag, present in pools.detect().items() if present]
    logger.info(f"Exporter initialized for domain {config.JMX_DOMAIN}; "
                f"pool implementations in use: {', '.join(detected) or 'none yet'}")
    return registry
