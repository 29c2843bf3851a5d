#!/usr/bin/python3
"""
Shared machinery of the managed-object collectors.

A collector is a list of `CollectionGroup`s. A group names a pattern, the
key properties that become labels and the `AttributeSpec`s that map
attributes to metric families. A pass runs every group in its own builder
scope:

- discovery once per group
- one bulk attribute read per discovered object
- one sample per (family, label tuple)

A group that fails contributes nothing to the pass; the other groups are
still exported.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Tuple

from prometheus_client.core import Metric

from tomcat_exporter.errors import ConfigurationError, ProgrammerError
from tomcat_exporter.management.discovery import ManagedObjectDiscovery
from tomcat_exporter.management.errors import CommunicationError, ObjectVanishedError
from tomcat_exporter.management.object_name import ObjectName
from tomcat_exporter.management.resolver import ABSENT, AttributeResolver
from tomcat_exporter.management.server import ManagementServer
from tomcat_exporter.monitoring.families import (
    FamilyRegistry,
    MetricFamilyBuilder,
    MetricKind,
    sanitize_label_value,
)

logger = logging.getLogger(__name__)

NUMERIC = (int, float)
TEXT = (str,)


def as_float(value) -> float:
    return float(value)


def millis_to_seconds(value) -> float:
    return float(value) / 1000.0


@dataclass(frozen=True)
class MetricSpec:
    """Canonical metric, named without the namespace prefix."""
    name: str
    documentation: str
    kind: MetricKind = MetricKind.GAUGE


@dataclass(frozen=True)
class AttributeSpec:
    """Where a metric value comes from and how it is extracted."""
    attribute: str
    metric: MetricSpec
    expected: Tuple[type, ...] = NUMERIC
    convert: Callable[[Any], float] = as_float


@dataclass(frozen=True)
class CollectionGroup:
    """One pattern and the attributes read from every object it matches.

    ``labels`` pairs each label name with the key property it is read from.
    Objects carrying ``exclude_key`` are management artifacts and skipped.
    """
    name: str
    domain: str
    type_filter: str
    key_filter: Optional[str]
    labels: Tuple[Tuple[str, str], ...]
    attributes: Tuple[AttributeSpec, ...]
    exclude_key: Optional[str] = None

    @property
    def label_names(self) -> Tuple[str, ...]:
        return tuple(label for label, _ in self.labels)

    def label_values(self, name: ObjectName) -> Tuple[str, ...]:
        return tuple(name.get(key, "") for _, key in self.labels)


class BaseCollector(ABC):
    """
    Base class for the managed-object collectors.

    Implements the prometheus_client custom collector protocol: register an
    instance with a ``CollectorRegistry`` and ``collect()`` runs one pass per
    scrape. Only a `ProgrammerError` in strict mode escapes ``collect()``.
    """

    def __init__(self, name: str, server: ManagementServer, namespace: str = "tomcat",
                 families: Optional[FamilyRegistry] = None, strict: Optional[bool] = None):
        if strict is None:
            from tomcat_exporter.config import config
            strict = config.STRICT
        self._name = name
        self._server = server
        self._namespace = namespace
        self._families = families
        self._strict = strict
        self._discovery = ManagedObjectDiscovery(server)
        self._resolver = AttributeResolver(server)

    @property
    def name(self) -> str:
        """Collector name."""
        return self._name

    @abstractmethod
    def groups(self) -> Iterable[CollectionGroup]:
        """Groups collected on every pass."""

    def metric_name(self, metric: MetricSpec) -> str:
        return f"{self._namespace}_{metric.name}" if self._namespace else metric.name

    def collect(self) -> List[Metric]:
        """Run one collection pass."""
        builder = MetricFamilyBuilder(self._families)
        for group in self.groups():
            self.safe_collect(builder, group.name, lambda scoped, g=group: self.collect_group(scoped, g))
        self.safe_collect(builder, "static", self.collect_static)
        metrics = builder.build()
        logger.debug(f"Collector {self._name} produced {len(metrics)} metric families")
        return metrics

    def collect_static(self, builder: MetricFamilyBuilder) -> None:
        """Hook for families that do not come from managed objects."""

    def safe_collect(self, builder: MetricFamilyBuilder, part: str,
                     collect: Callable[[MetricFamilyBuilder], None]) -> None:
        """Run ``collect`` in a scope of ``builder``; on failure its samples are dropped."""
        try:
            with builder.scope() as scoped:
                collect(scoped)
        except ProgrammerError:
            if self._strict:
                raise
            logger.exception(f"Collector {self._name} bug in {part}; skipped")
        except ConfigurationError as e:
            logger.error(f"Collector {self._name} {part} is misconfigured: {e}")
        except Exception:
            logger.exception(f"Collector {self._name} failed to collect {part}")

    def collect_group(self, builder: MetricFamilyBuilder, group: CollectionGroup) -> None:
        names = self._discovery.find(group.domain, group.type_filter, group.key_filter)
        if not names:
            return

        families = {
            spec.metric: builder.family(self.metric_name(spec.metric), spec.metric.documentation,
                                        spec.metric.kind, group.label_names)
            for spec in group.attributes
        }
        seen = {}
        for name in sorted(names):
            if group.exclude_key and name.get(group.exclude_key) is not None:
                continue
            labels = group.label_values(name)
            key = tuple(sanitize_label_value(v) for v in labels)
            if key in seen:
                logger.warning(f"{name} has the same labels {dict(zip(group.label_names, key))} as "
                               f"{seen[key]}; only the first one is exported")
                continue
            seen[key] = name
            try:
                values = self._resolver.get(name, [spec.attribute for spec in group.attributes])
            except ObjectVanishedError:
                logger.warning(f"{name} vanished before it could be read; skipped for this pass")
                continue
            except CommunicationError as e:
                logger.warning(f"Could not read {name}: {e}; skipped for this pass")
                continue

            for spec in group.attributes:
                value = self.extract(name, spec, values[spec.attribute])
                if value is not None:
                    families[spec.metric].set(labels, value)

    def extract(self, name: ObjectName, spec: AttributeSpec, value) -> Optional[float]:
        """Converted value, or None when the attribute is absent or unusable."""
        if value is ABSENT:
            return None
        if not isinstance(value, spec.expected):
            self._resolver.report_absent(name, spec.attribute, f"of unexpected type {type(value).__name__}")
            return None
        try:
            return spec.convert(value)
        except (TypeError, ValueError) as e:
            self._resolver.report_absent(name, spec.attribute, f"not convertible ({e})")
            return None
