"""
Request Timing for Flask Applications

Hooks into a Flask application the way a global servlet filter would and
provides:

- servlet_request_seconds{context,method}: response time histogram
- servlet_request_concurrent_total{context}: requests in flight
- servlet_response_status_total{context,status}: responses per status code
"""

import logging
import time
from typing import Optional, Sequence

from flask import Flask, g, request
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

from tomcat_exporter.monitoring.metrics import METRICS_REGISTRY, shared_metric

logger = logging.getLogger(__name__)

UNDEFINED_HTTP_STATUS = 999


def request_context() -> str:
    """Mount point of the application, "/" at the root."""
    return request.script_root or "/"


class RequestMetrics:
    """Time every request of a Flask app.

    Args:
        app: Application to instrument (or call init_app later)
        registry: Registry receiving the metrics
        buckets: Response time histogram buckets in seconds
    """

    def __init__(self, app: Optional[Flask] = None, registry: Optional[CollectorRegistry] = None,
                 buckets: Optional[Sequence[float]] = None):
        if buckets is None:
            from tomcat_exporter.config import config
            buckets = config.REQUEST_BUCKETS
        registry = registry if registry is not None else METRICS_REGISTRY

        self.latency = shared_metric(registry, "servlet_request_seconds", lambda: Histogram(
            "servlet_request_seconds", "The time taken fulfilling servlet requests",
            ["context", "method"], registry=registry, buckets=buckets))
        self.concurrent = shared_metric(registry, "servlet_request_concurrent_total", lambda: Gauge(
            "servlet_request_concurrent_total", "Number of concurrent requests for given context.",
            ["context"], registry=registry))
        self.status_codes = shared_metric(registry, "servlet_response_status", lambda: Counter(
            "servlet_response_status", "Number of requests for given context and status code.",
            ["context", "status"], registry=registry))

        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        app.before_request(self._before_request)
        app.after_request(self._after_request)
        app.teardown_request(self._teardown_request)

    def _before_request(self):
        context = request_context()
        g._request_metrics = (context, request.method, time.perf_counter())
        self.concurrent.labels(context).inc()

    def _after_request(self, response):
        g._request_status = response.status_code
        return response

    def _teardown_request(self, exception=None):
        started = g.pop("_request_metrics", None)
        if started is None:
            return
        context, method, start = started
        duration = time.perf_counter() - start

        self.latency.labels(context, method).observe(duration)
        self.concurrent.labels(context).dec()
        status = g.pop("_request_status", None)
        if status is None:
            status = 500 if exception is not None else UNDEFINED_HTTP_STATUS
        self.status_codes.labels(context, str(status)).inc()
        logger.debug(f"Request {method} {context} completed in {duration:.3f}s with status {status}")
