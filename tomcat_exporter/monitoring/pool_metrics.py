#!/usr/bin/python3
"""
Connection pool metrics.

Every supported pool implementation reports the same quantities under its
own attribute names. `POOL_IMPLEMENTATIONS` says where an implementation
registers its pools and `POOL_ATTRIBUTE_TABLE` maps its attributes onto
the canonical metrics, so supporting another pool means adding rows to both
tables.

Example metrics being exported:

    tomcat_pool_connections_max{pool="jdbc/mypool",context="/foo"} 20.0
    tomcat_pool_connections_active_total{pool="jdbc/mypool",context="/foo"} 2.0
    tomcat_pool_connections_idle_total{pool="jdbc/mypool",context="/foo"} 6.0
    tomcat_pool_connections_borrowed_total{pool="jdbc/mypool",context="/foo"} 3012.0
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from tomcat_exporter.management.server import ManagementServer
from tomcat_exporter.monitoring.collector import (
    AttributeSpec,
    BaseCollector,
    CollectionGroup,
    MetricSpec,
    as_float,
)
from tomcat_exporter.monitoring.families import FamilyRegistry, MetricKind

logger = logging.getLogger(__name__)

CONNECTIONS_MAX = MetricSpec(
    "pool_connections_max",
    "Maximum number of active connections that can be allocated from this pool at the same time")
CONNECTIONS_ACTIVE = MetricSpec(
    "pool_connections_active_total", "Number of active connections allocated from this pool")
CONNECTIONS_IDLE = MetricSpec(
    "pool_connections_idle_total", "Number of idle connections in this pool")
CONNECTIONS_TOTAL = MetricSpec(
    "pool_connections_total", "Total number of connections in this pool")
WAITING_THREADS = MetricSpec(
    "pool_waitingthreads_total", "Number of threads waiting for connections from this pool")
CONNECTIONS_BORROWED = MetricSpec(
    "pool_connections_borrowed_total", "Number of connections borrowed from this pool", MetricKind.COUNTER)
CONNECTIONS_RETURNED = MetricSpec(
    "pool_connections_returned_total", "Number of connections returned to this pool", MetricKind.COUNTER)
CONNECTIONS_CREATED = MetricSpec(
    "pool_connections_created_total", "Number of connections created by this pool", MetricKind.COUNTER)
CONNECTIONS_RELEASED = MetricSpec(
    "pool_connections_released_total", "Number of connections released by this pool", MetricKind.COUNTER)
CONNECTIONS_RECONNECTED = MetricSpec(
    "pool_connections_reconnected_total", "Number of reconnected connections by this pool", MetricKind.COUNTER)
CONNECTIONS_REMOVE_ABANDONED = MetricSpec(
    "pool_connections_removeabandoned_total", "Number of abandoned connections that have been removed",
    MetricKind.COUNTER)
CONNECTIONS_RELEASED_IDLE = MetricSpec(
    "pool_connections_releasedidle_total", "Number of idle connections that have been released",
    MetricKind.COUNTER)


@dataclass(frozen=True)
class PoolImplementation:
    """Where the pools of one implementation are registered.

    ``domain`` None means the container domain (Catalina or Tomcat).
    ``sub_resource_key`` marks per-connection objects registered under the
    same pattern as the pools themselves.
    """
    tag: str
    domain: Optional[str]
    type_filter: str
    key_filter: str
    sub_resource_key: Optional[str]


POOL_IMPLEMENTATIONS: Tuple[PoolImplementation, ...] = (
    PoolImplementation("tomcat-jdbc", "tomcat.jdbc", "ConnectionPool",
                       "class=org.apache.tomcat.jdbc.pool.DataSource,*", "connections"),
    PoolImplementation("dbcp2", None, "DataSource",
                       "class=javax.sql.DataSource,*", "connectionpool"),
    PoolImplementation("sqlalchemy", "sqlalchemy", "Pool", "*", None),
)

# implementation, source attribute, canonical metric, conversion
POOL_ATTRIBUTE_TABLE = (
    ("tomcat-jdbc", "MaxActive", CONNECTIONS_MAX, as_float),
    ("tomcat-jdbc", "Active", CONNECTIONS_ACTIVE, as_float),
    ("tomcat-jdbc", "Idle", CONNECTIONS_IDLE, as_float),
    ("tomcat-jdbc", "Size", CONNECTIONS_TOTAL, as_float),
    ("tomcat-jdbc", "WaitCount", WAITING_THREADS, as_float),
    ("tomcat-jdbc", "BorrowedCount", CONNECTIONS_BORROWED, as_float),
    ("tomcat-jdbc", "ReturnedCount", CONNECTIONS_RETURNED, as_float),
    ("tomcat-jdbc", "CreatedCount", CONNECTIONS_CREATED, as_float),
    ("tomcat-jdbc", "ReleasedCount", CONNECTIONS_RELEASED, as_float),
    ("tomcat-jdbc", "ReconnectedCount", CONNECTIONS_RECONNECTED, as_float),
    ("tomcat-jdbc", "RemoveAbandonedCount", CONNECTIONS_REMOVE_ABANDONED, as_float),
    ("tomcat-jdbc", "ReleasedIdleCount", CONNECTIONS_RELEASED_IDLE, as_float),

    ("dbcp2", "maxTotal", CONNECTIONS_MAX, as_float),
    ("dbcp2", "numActive", CONNECTIONS_ACTIVE, as_float),
    ("dbcp2", "numIdle", CONNECTIONS_IDLE, as_float),

    ("sqlalchemy", "MaxSize", CONNECTIONS_MAX, as_float),
    ("sqlalchemy", "CheckedOut", CONNECTIONS_ACTIVE, as_float),
    ("sqlalchemy", "CheckedIn", CONNECTIONS_IDLE, as_float),
    ("sqlalchemy", "Size", CONNECTIONS_TOTAL, as_float),
    ("sqlalchemy", "BorrowedCount", CONNECTIONS_BORROWED, as_float),
    ("sqlalchemy", "ReturnedCount", CONNECTIONS_RETURNED, as_float),
    ("sqlalchemy", "CreatedCount", CONNECTIONS_CREATED, as_float),
    ("sqlalchemy", "ReleasedCount", CONNECTIONS_RELEASED, as_float),
    ("sqlalchemy", "ReconnectedCount", CONNECTIONS_RECONNECTED, as_float),
)


def attributes_for(tag: str) -> Tuple[AttributeSpec, ...]:
    return tuple(AttributeSpec(attribute, metric, convert=convert)
                 for impl, attribute, metric, convert in POOL_ATTRIBUTE_TABLE if impl == tag)


class PoolMetricsCollector(BaseCollector):
    """Exports the connection pools of every implementation in the tables.

    Pools are labeled by ``pool`` and ``context``. The context is empty for
    pools registered without one, such as SQLAlchemy engine pools. With
    ``context_label`` off, pools sharing a name in different contexts
    collide and only the first one is exported.
    """

    def __init__(self, server: ManagementServer, jmx_domain: str = "Catalina", namespace: str = "tomcat",
                 context_label: bool = True, implementations: Tuple[PoolImplementation, ...] = POOL_IMPLEMENTATIONS,
                 families: Optional[FamilyRegistry] = None, strict: Optional[bool] = None):
        super().__init__("pool", server, namespace, families, strict)
        labels = (("pool", "name"), ("context", "context")) if context_label else (("pool", "name"),)
        self._groups: List[CollectionGroup] = [
            CollectionGroup(
                name=impl.tag,
                domain=impl.domain or jmx_domain,
                type_filter=impl.type_filter,
                key_filter=impl.key_filter,
                labels=labels,
                attributes=attributes_for(impl.tag),
                exclude_key=impl.sub_resource_key,
            )
            for impl in implementations
        ]

    def groups(self) -> List[CollectionGroup]:
        return self._groups

    def detect(self) -> Dict[str, bool]:
        """Which implementations currently have registered pools."""
        found = {}
        for group in self._groups:
            try:
                found[group.name] = bool(self._discovery.find(group.domain, group.type_filter, group.key_filter))
            except Exception:
                logger.exception(f"Could not look up {group.name} pools")
                found[group.name] = False
        return found
