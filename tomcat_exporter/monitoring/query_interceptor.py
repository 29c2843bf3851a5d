#!/usr/bin/python3
"""
Query statistics for database connection pools.

The interceptor creates the following metrics:

- A histogram with global query response times, labeled by status
- A histogram with per query response times for slow queries (optional)
- A counter with per query error counts (optional)

Example usage with SQLAlchemy:

    interceptor = QueryInterceptor("logFailed=true,logSlow=true,threshold=1000")
    interceptor.instrument(engine)

or around any other driver call:

    with interceptor.track("SELECT 1"):
        cursor.execute("SELECT 1")

Example metrics being exported:

    tomcat_jdbc_query_seconds_bucket{status="success",le="0.01"} 48950.0
    tomcat_jdbc_query_seconds_count{status="success"} 353501.0
    tomcat_jdbc_slowquery_seconds_bucket{query="SELECT 1 from DUAL",le="1.0"} 3.0
    tomcat_jdbc_failedquery_total{query="select * from NON_EXISTING_TABLE"} 1.0

NOTE: enabling logFailed and logSlow creates one series per distinct query
text, so be careful with queries that inline their parameters.
"""
import logging
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, Mapping, Optional, Union

from prometheus_client import CollectorRegistry, Counter, Histogram
from sqlalchemy import event

from tomcat_exporter.monitoring.interceptor_config import InterceptorSettings, load_settings
from tomcat_exporter.monitoring.metrics import METRICS_REGISTRY, shared_metric

logger = logging.getLogger(__name__)

SUCCESS_QUERY_STATUS = "success"
FAILED_QUERY_STATUS = "error"

_START_TIMES = "tomcat_exporter_query_start"


class QueryObserver(ABC):
    """Callbacks invoked synchronously on the thread that ran the query.

    ``elapsed`` is in seconds.
    """

    @abstractmethod
    def on_success(self, query: str, elapsed: float) -> None:
        """The query completed."""

    @abstractmethod
    def on_failure(self, query: str, elapsed: float, error: BaseException) -> None:
        """The query raised ``error``."""

    @abstractmethod
    def on_slow(self, query: str, elapsed: float) -> None:
        """The query completed at or above the slow threshold."""


class QueryInterceptor(QueryObserver):
    """Classify query executions and route their durations into metrics.

    A successful query at or above the threshold is recorded both as success
    and as slow. Failed queries are never checked against the threshold.
    """

    def __init__(self, properties: Union[None, str, Mapping[str, str]] = None,
                 registry: Optional[CollectorRegistry] = None, namespace: Optional[str] = None):
        if namespace is None:
            from tomcat_exporter.config import config
            namespace = config.NAMESPACE
        self.settings: InterceptorSettings = load_settings(properties)
        self._registry = registry if registry is not None else METRICS_REGISTRY
        self._namespace = namespace
        self._threshold_ms = self.settings.threshold

        self._global = shared_metric(self._registry, self._key("jdbc_query_seconds"), lambda: Histogram(
            "jdbc_query_seconds", "JDBC query duration", ["status"], namespace=namespace,
            registry=self._registry, buckets=self.settings.buckets))

        self._slow = None
        if self.settings.log_slow:
            self._slow = shared_metric(self._registry, self._key("jdbc_slowquery_seconds"), lambda: Histogram(
                "jdbc_slowquery_seconds", "JDBC slow query duration in seconds", ["query"], namespace=namespace,
                registry=self._registry, buckets=self.settings.slow_query_buckets))

        self._failed = None
        if self.settings.log_failed:
            self._failed = shared_metric(self._registry, self._key("jdbc_failedquery"), lambda: Counter(
                "jdbc_failedquery", "Number of errors for given JDBC query", ["query"], namespace=namespace,
                registry=self._registry))

    def _key(self, name: str) -> str:
        return f"{self._namespace}_{name}" if self._namespace else name

    @property
    def slow_query_stats_enabled(self) -> bool:
        return self._slow is not None

    @property
    def failed_query_stats_enabled(self) -> bool:
        return self._failed is not None

    def is_slow(self, elapsed: float) -> bool:
        return elapsed * 1000.0 >= self._threshold_ms

    def on_success(self, query: str, elapsed: float) -> None:
        self._global.labels(SUCCESS_QUERY_STATUS).observe(elapsed)
        if self.is_slow(elapsed):
            self.on_slow(query, elapsed)

    def on_slow(self, query: str, elapsed: float) -> None:
        if self._slow is not None:
            self._slow.labels(query).observe(elapsed)

    def on_failure(self, query: str, elapsed: float, error: BaseException) -> None:
        self._global.labels(FAILED_QUERY_STATUS).observe(elapsed)
        if self._failed is not None:
            self._failed.labels(query).inc()

    @contextmanager
    def track(self, query: str) -> Iterator[None]:
        """Time the block as one execution of ``query``; errors are re-raised."""
        start = time.perf_counter()
        try:
            yield
        except Exception as e:
            self.on_failure(query, time.perf_counter() - start, e)
            raise
        self.on_success(query, time.perf_counter() - start)

    def instrument(self, engine) -> None:
        """Report every cursor execution of a SQLAlchemy ``engine``."""
        event.listen(engine, "before_cursor_execute", self._before_cursor_execute)
        event.listen(engine, "after_cursor_execute", self._after_cursor_execute)
        event.listen(engine, "handle_error", self._handle_error)
        logger.debug(f"Query interceptor attached to {engine.url!r}")

    def uninstrument(self, engine) -> None:
        event.remove(engine, "before_cursor_execute", self._before_cursor_execute)
        event.remove(engine, "after_cursor_execute", self._after_cursor_execute)
        event.remove(engine, "handle_error", self._handle_error)

    def _before_cursor_execute(self, conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault(_START_TIMES, []).append(time.perf_counter())

    def _after_cursor_execute(self, conn, cursor, statement, parameters, context, executemany):
        starts = conn.info.get(_START_TIMES)
        if starts:
            self.on_success(statement, time.perf_counter() - starts.pop())

    def _handle_error(self, exception_context):
        conn = exception_context.connection
        starts = conn.info.get(_START_TIMES) if conn is not None else None
        if not starts:
            return
        elapsed = time.perf_counter() - starts.pop()
        if exception_context.statement is None:
            return
        self.on_failure(exception_context.statement, elapsed, exception_context.original_exception)
