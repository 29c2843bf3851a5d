#!/usr/bin/python3
"""
Exports container metrics applicable to most applications:

- http session metrics
- request processor metrics
- thread pool metrics
- version info

Example metrics being exported:

    tomcat_info{version="9.0.85",build="Jan 5 2024 08:26:00 UTC"} 1.0
    tomcat_session_active_total{host="localhost",context="/foo"} 877.0
    tomcat_session_created_total{host="localhost",context="/foo"} 24428.0
    tomcat_context_state_started{host="localhost",context="/foo"} 1.0
    tomcat_requestprocessor_received_bytes{name="http-nio-8080"} 0.0
    tomcat_requestprocessor_time_seconds{name="http-nio-8080"} 127.386
    tomcat_requestprocessor_request_count_total{name="http-nio-8080"} 33709.0
    tomcat_threads_total{name="http-nio-8080"} 10.0
    tomcat_threads_max{name="http-nio-8080"} 200.0
"""
from typing import Optional, Tuple

from tomcat_exporter.management.server import ManagementServer
from tomcat_exporter.monitoring.collector import (
    TEXT,
    AttributeSpec,
    BaseCollector,
    CollectionGroup,
    MetricSpec,
    millis_to_seconds,
)
from tomcat_exporter.monitoring.families import FamilyRegistry, MetricFamilyBuilder, MetricKind

STARTED = "STARTED"


def is_started(state_name) -> float:
    return 1.0 if state_name == STARTED else 0.0


REQUEST_PROCESSOR_ATTRIBUTES = (
    AttributeSpec("bytesReceived", MetricSpec(
        "requestprocessor_received_bytes", "Number of bytes received by this request processor")),
    AttributeSpec("bytesSent", MetricSpec(
        "requestprocessor_sent_bytes", "Number of bytes sent by this request processor")),
    AttributeSpec("processingTime", MetricSpec(
        "requestprocessor_time_seconds", "The total time spend by this request processor"),
        convert=millis_to_seconds),
    AttributeSpec("errorCount", MetricSpec(
        "requestprocessor_error_count", "The number of error request served by this request processor",
        MetricKind.COUNTER)),
    AttributeSpec("requestCount", MetricSpec(
        "requestprocessor_request_count", "The number of request served by this request processor",
        MetricKind.COUNTER)),
)

SESSION_ATTRIBUTES = (
    AttributeSpec("activeSessions", MetricSpec(
        "session_active_total", "Number of active sessions")),
    AttributeSpec("rejectedSessions", MetricSpec(
        "session_rejected_total", "Number of sessions rejected due to maxActive being reached")),
    AttributeSpec("sessionCounter", MetricSpec(
        "session_created_total", "Number of sessions created")),
    AttributeSpec("expiredSessions", MetricSpec(
        "session_expired_total", "Number of sessions that expired")),
    AttributeSpec("sessionAverageAliveTime", MetricSpec(
        "session_alivetime_seconds_avg", "Average time an expired session had been alive")),
    AttributeSpec("sessionMaxAliveTime", MetricSpec(
        "session_alivetime_seconds_max", "Maximum time an expired session had been alive")),
    AttributeSpec("stateName", MetricSpec(
        "context_state_started", "Indication if the lifecycle state of this context is STARTED"),
        expected=TEXT, convert=is_started),
)

THREAD_POOL_ATTRIBUTES = (
    AttributeSpec("currentThreadCount", MetricSpec(
        "threads_total", "Number threads in this pool.")),
    AttributeSpec("currentThreadsBusy", MetricSpec(
        "threads_active_total", "Number of active threads in this pool.")),
    AttributeSpec("maxThreads", MetricSpec(
        "threads_max", "Maximum number of threads allowed in this pool.")),
    AttributeSpec("connectionCount", MetricSpec(
        "connections_active_total", "Number of connections served by this pool.")),
    AttributeSpec("maxConnections", MetricSpec(
        "connections_active_max", "Maximum number of concurrent connections served by this pool.")),
)

VERSION_INFO = MetricSpec("info", "tomcat version info")


class GenericRuntimeCollector(BaseCollector):
    """Session, request processor and thread pool metrics plus version info.

    ``jmx_domain`` is ``Catalina`` for a standalone container and ``Tomcat``
    when it runs embedded.
    """

    def __init__(self, server: ManagementServer, jmx_domain: str = "Catalina", namespace: str = "tomcat",
                 families: Optional[FamilyRegistry] = None, strict: Optional[bool] = None):
        super().__init__("generic", server, namespace, families, strict)
        self._jmx_domain = jmx_domain
        self._version_info: Tuple[str, str] = (str(server.server_info.number), str(server.server_info.built))
        self._groups = (
            CollectionGroup("session", jmx_domain, "Manager", "context=*,host=*",
                            (("host", "host"), ("context", "context")), SESSION_ATTRIBUTES),
            CollectionGroup("threadpool", jmx_domain, "ThreadPool", "name=*",
                            (("name", "name"),), THREAD_POOL_ATTRIBUTES),
            CollectionGroup("requestprocessor", jmx_domain, "GlobalRequestProcessor", "name=*",
                            (("name", "name"),), REQUEST_PROCESSOR_ATTRIBUTES),
        )

    def groups(self):
        return self._groups

    def collect_static(self, builder: MetricFamilyBuilder) -> None:
        info = builder.family(self.metric_name(VERSION_INFO), VERSION_INFO.documentation,
                              MetricKind.GAUGE, ("version", "build"))
        info.set(self._version_info, 1)
