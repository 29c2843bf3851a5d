#!/usr/bin/python3
"""Expose a SQLAlchemy engine's connection pool as a managed object.

The bean is registered as ``sqlalchemy:type=Pool,name="<name>"`` and read
by the ``sqlalchemy`` rows of the pool attribute table. Size attributes
only exist for queue-style pools; for other pool classes, and for
``MaxSize`` of a pool with unlimited overflow, they are reported as absent.
"""
import logging
import threading
from typing import Optional

from sqlalchemy import event

from tomcat_exporter.management.object_name import ObjectName
from tomcat_exporter.management.server import InMemoryManagementServer, get_platform_server

logger = logging.getLogger(__name__)

POOL_DOMAIN = "sqlalchemy"


class SQLAlchemyPoolBean:
    """Live view of one pool plus event counters."""

    def __init__(self, pool):
        self._pool = pool
        self._lock = threading.Lock()
        self._counts = {"borrowed": 0, "returned": 0, "created": 0, "released": 0, "reconnected": 0}
        event.listen(pool, "checkout", self._on_checkout)
        event.listen(pool, "checkin", self._on_checkin)
        event.listen(pool, "connect", self._on_connect)
        event.listen(pool, "close", self._on_close)
        event.listen(pool, "invalidate", self._on_invalidate)

    def _inc(self, key: str) -> None:
        with self._lock:
            self._counts[key] += 1

    def _on_checkout(self, dbapi_connection, connection_record, connection_proxy):
        self._inc("borrowed")

    def _on_checkin(self, dbapi_connection, connection_record):
        self._inc("returned")

    def _on_connect(self, dbapi_connection, connection_record):
        self._inc("created")

    def _on_close(self, dbapi_connection, connection_record):
        self._inc("released")

    def _on_invalidate(self, dbapi_connection, connection_record, exception):
        self._inc("reconnected")

    def _count(self, key: str) -> int:
        with self._lock:
            return self._counts[key]

    @property
    def MaxSize(self) -> int:
        overflow = self._pool._max_overflow
        if overflow < 0:
            raise AttributeError("pool has unlimited overflow")
        return self._pool.size() + overflow

    @property
    def Size(self) -> int:
        return self._pool.checkedin() + self._pool.checkedout()

    @property
    def CheckedOut(self) -> int:
        return self._pool.checkedout()

    @property
    def CheckedIn(self) -> int:
        return self._pool.checkedin()

    @property
    def BorrowedCount(self) -> int:
        return self._count("borrowed")

    @property
    def ReturnedCount(self) -> int:
        return self._count("returned")

    @property
    def CreatedCount(self) -> int:
        return self._count("created")

    @property
    def ReleasedCount(self) -> int:
        return self._count("released")

    @property
    def ReconnectedCount(self) -> int:
        return self._count("reconnected")


def register_engine_pool(engine, name: Optional[str] = None,
                         server: Optional[InMemoryManagementServer] = None) -> ObjectName:
    """Register ``engine.pool`` and return its object name.

    ``name`` defaults to the database name of the engine URL.
    """
    server = server if server is not None else get_platform_server()
    name = name or engine.url.database or engine.url.drivername
    object_name = ObjectName(POOL_DOMAIN, {"type": "Pool", "name": ObjectName.quote(name)})
    server.register(object_name, SQLAlchemyPoolBean(engine.pool))
    logger.info(f"Registered connection pool of {engine.url!r} as {object_name}")
    return object_name
