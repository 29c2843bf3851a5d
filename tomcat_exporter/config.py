#!/usr/bin/python3
"""Exporter configuration.

All settings come from environment variables so the exporter can be dropped
next to any host application without a config file.

Environment variables:
 - TOMCAT_EXPORTER_ENV : 'production'|'development'|'test' (affects STRICT default)
 - TOMCAT_EXPORTER_EMBEDDED : '1' when the container runs embedded ('Tomcat' domain)
 - TOMCAT_EXPORTER_NAMESPACE : metric name prefix (default 'tomcat')
 - TOMCAT_EXPORTER_STRICT : '1' to let collector bugs escape a scrape
 - TOMCAT_EXPORTER_POOL_CONTEXT_LABEL : '0' to drop the context label from pool metrics
 - TOMCAT_EXPORTER_REQUEST_BUCKETS : comma separated request histogram buckets
 - TOMCAT_EXPORTER_PROCESS_METRICS : '0' to skip process/platform/gc collectors
 - TOMCAT_EXPORTER_SERVER_VERSION, TOMCAT_EXPORTER_SERVER_BUILT : reported in tomcat_info
 - LOG_LEVEL : logging level name
"""
import logging
from os import getenv
from typing import Optional, Tuple

from tomcat_exporter.errors import ConfigurationError

DEFAULT_REQUEST_BUCKETS = (.01, .05, .1, .25, .5, 1, 2.5, 5, 10, 30)
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _flag(name: str, default: str = "0") -> bool:
    return getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def parse_buckets(value: Optional[str], separator: str = ",") -> Tuple[float, ...]:
    """Parse a separated list of histogram upper bounds.

    Raises:
        ConfigurationError: on a non numeric entry or a list that is not
            strictly ascending.
    """
    if value is None or not value.strip():
        raise ConfigurationError("bucket list is empty")
    try:
        buckets = tuple(float(part.strip()) for part in value.split(separator))
    except ValueError as e:
        raise ConfigurationError(f"invalid bucket list {value!r}: {e}") from e
    if any(low >= high for low, high in zip(buckets, buckets[1:])):
        raise ConfigurationError(f"buckets must be strictly ascending: {value!r}")
    return buckets


class Config:
    """Settings read once from the environment."""

    def __init__(self) -> None:
        self.ENV = getenv("TOMCAT_EXPORTER_ENV", "production")
        self.EMBEDDED = _flag("TOMCAT_EXPORTER_EMBEDDED")
        self.JMX_DOMAIN = "Tomcat" if self.EMBEDDED else "Catalina"
        self.NAMESPACE = getenv("TOMCAT_EXPORTER_NAMESPACE", "tomcat")
        self.STRICT = _flag("TOMCAT_EXPORTER_STRICT", "0" if self.ENV == "production" else "1")
        self.POOL_CONTEXT_LABEL = _flag("TOMCAT_EXPORTER_POOL_CONTEXT_LABEL", "1")
        self.PROCESS_METRICS = _flag("TOMCAT_EXPORTER_PROCESS_METRICS", "1")
        self.SERVER_VERSION = getenv("TOMCAT_EXPORTER_SERVER_VERSION", "unknown")
        self.SERVER_BUILT = getenv("TOMCAT_EXPORTER_SERVER_BUILT", "unknown")

        buckets = getenv("TOMCAT_EXPORTER_REQUEST_BUCKETS")
        self.REQUEST_BUCKETS = parse_buckets(buckets) if buckets else DEFAULT_REQUEST_BUCKETS

        self.LOG_LEVEL = getenv("LOG_LEVEL", "INFO").upper()
        if self.LOG_LEVEL not in VALID_LOG_LEVELS:
            raise ConfigurationError(f"unknown LOG_LEVEL {self.LOG_LEVEL!r}")


def configure_logging(level: Optional[str] = None) -> None:
    """Apply LOG_LEVEL (or ``level``) to the root logger."""
    logging.basicConfig(
        level=getattr(logging, level or config.LOG_LEVEL),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


config = Config()
