#!/usr/bin/python3
"""
Metric families built during a collection pass.

The schema of a family (name, help, kind, label names, buckets) is
registered once in a process-wide `FamilyRegistry` and never changes
afterwards. The samples are recomputed on every pass: a collector opens a
`MetricFamilyBuilder`, sets one value per label tuple and turns the result
into prometheus_client metric families. Nothing accumulates across passes,
and a label tuple that is not set during a pass is simply not exported.
"""
import logging
import threading
from bisect import bisect_left
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from prometheus_client import Histogram
from prometheus_client.core import (
    CounterMetricFamily,
    GaugeMetricFamily,
    HistogramMetricFamily,
    Metric,
)
from prometheus_client.utils import INF, floatToGoString

from tomcat_exporter.errors import ConfigurationError, ProgrammerError

logger = logging.getLogger(__name__)

_UNSAFE_LABEL_CHARS = str.maketrans("", "", '"\\')


class MetricKind(Enum):
    GAUGE = "gauge"
    COUNTER = "counter"
    HISTOGRAM = "histogram"


def sanitize_label_value(value) -> str:
    """Strip quote and backslash characters from a label value."""
    return str(value).translate(_UNSAFE_LABEL_CHARS)


def normalize_buckets(buckets: Optional[Sequence[float]]) -> Tuple[float, ...]:
    """Sorted upper bounds ending with +Inf.

    Raises:
        ConfigurationError: if the bounds are empty or not strictly ascending.
    """
    if buckets is None:
        return tuple(Histogram.DEFAULT_BUCKETS)
    bounds = [float(b) for b in buckets]
    if bounds and bounds[-1] != INF:
        bounds.append(INF)
    if len(bounds) < 2 or any(low >= high for low, high in zip(bounds, bounds[1:])):
        raise ConfigurationError(f"histogram buckets must be ascending and non-empty: {buckets!r}")
    return tuple(bounds)


@dataclass(frozen=True)
class FamilyDefinition:
    name: str
    documentation: str
    kind: MetricKind
    label_names: Tuple[str, ...]
    buckets: Tuple[float, ...] = ()


class FamilyRegistry:
    """Get-or-create store of family schemas, keyed by name."""

    def __init__(self):
        self._definitions: Dict[str, FamilyDefinition] = {}
        self._lock = threading.Lock()

    def define(self, name: str, documentation: str, kind: MetricKind,
               label_names: Sequence[str], buckets: Optional[Sequence[float]] = None) -> FamilyDefinition:
        """Return the schema registered under ``name``, creating it if needed.

        Raises:
            ProgrammerError: if ``name`` is already registered with another
                kind or other label names.
        """
        label_names = tuple(label_names)
        with self._lock:
            existing = self._definitions.get(name)
            if existing is not None:
                if existing.kind != kind or existing.label_names != label_names:
                    raise ProgrammerError(
                        f"family {name} is registered as {existing.kind.value}{list(existing.label_names)}, "
                        f"not {kind.value}{list(label_names)}")
                return existing
            definition = FamilyDefinition(
                name, documentation, kind, label_names,
                normalize_buckets(buckets) if kind is MetricKind.HISTOGRAM else ())
            self._definitions[name] = definition
            logger.debug(f"Registered metric family {name} ({kind.value}, labels={list(label_names)})")
            return definition

    def get(self, name: str) -> Optional[FamilyDefinition]:
        with self._lock:
            return self._definitions.get(name)

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._definitions)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._definitions


FAMILY_REGISTRY = FamilyRegistry()


class MetricFamily:
    """Samples of one family collected during a single pass."""

    def __init__(self, definition: FamilyDefinition):
        self.definition = definition
        self._values: Dict[Tuple[str, ...], float] = {}
        self._bucket_counts: Dict[Tuple[str, ...], List[int]] = {}
        self._sums: Dict[Tuple[str, ...], float] = {}
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def kind(self) -> MetricKind:
        return self.definition.kind

    @property
    def label_names(self) -> Tuple[str, ...]:
        return self.definition.label_names

    def _key(self, label_values: Sequence) -> Tuple[str, ...]:
        if isinstance(label_values, str) or len(label_values) != len(self.label_names):
            raise ProgrammerError(
                f"{self.name} expects labels {list(self.label_names)}, got {label_values!r}")
        return tuple(sanitize_label_value(v) for v in label_values)

    @staticmethod
    def _number(name: str, value) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ProgrammerError(f"{name} got non numeric value {value!r}") from None

    def set(self, label_values: Sequence, value) -> None:
        """Set the value of a gauge or counter sample, replacing any earlier one."""
        if self.kind is MetricKind.HISTOGRAM:
            raise ProgrammerError(f"{self.name} is a histogram, use observe()")
        key = self._key(label_values)
        number = self._number(self.name, value)
        with self._lock:
            self._values[key] = number

    def observe(self, label_values: Sequence, value) -> None:
        """Add one observation to a histogram sample."""
        if self.kind is not MetricKind.HISTOGRAM:
            raise ProgrammerError(f"{self.name} is a {self.kind.value}, use set()")
        key = self._key(label_values)
        number = self._number(self.name, value)
        index = bisect_left(self.definition.buckets, number)
        with self._lock:
            counts = self._bucket_counts.setdefault(key, [0] * len(self.definition.buckets))
            counts[index] += 1
            self._sums[key] = self._sums.get(key, 0.0) + number

    def samples(self) -> Dict[Tuple[str, ...], float]:
        """Gauge/counter values by label tuple, or histogram sums."""
        with self._lock:
            return dict(self._values) if self.kind is not MetricKind.HISTOGRAM else dict(self._sums)

    def merge(self, other: "MetricFamily") -> None:
        with other._lock:
            values = dict(other._values)
            counts = {k: list(v) for k, v in other._bucket_counts.items()}
            sums = dict(other._sums)
        with self._lock:
            self._values.update(values)
            for key, added in counts.items():
                current = self._bucket_counts.setdefault(key, [0] * len(added))
                self._bucket_counts[key] = [a + b for a, b in zip(current, added)]
                self._sums[key] = self._sums.get(key, 0.0) + sums.get(key, 0.0)

    def __len__(self) -> int:
        with self._lock:
            return len(self._values) + len(self._bucket_counts)

    def to_metric(self) -> Metric:
        """Snapshot as a prometheus_client metric family."""
        labels = list(self.label_names)
        doc = self.definition.documentation
        with self._lock:
            if self.kind is MetricKind.GAUGE:
                metric = GaugeMetricFamily(self.name, doc, labels=labels)
            elif self.kind is MetricKind.COUNTER:
                metric = CounterMetricFamily(self.name, doc, labels=labels)
            else:
                metric = HistogramMetricFamily(self.name, doc, labels=labels)
                for key, counts in sorted(self._bucket_counts.items()):
                    cumulative, buckets = 0, []
                    for bound, count in zip(self.definition.buckets, counts):
                        cumulative += count
                        buckets.append((floatToGoString(bound), cumulative))
                    metric.add_metric(list(key), buckets, self._sums[key])
                return metric
            for key, value in sorted(self._values.items()):
                metric.add_metric(list(key), value)
        return metric


class MetricFamilyBuilder:
    """Collects the families of one pass against a shared `FamilyRegistry`."""

    def __init__(self, registry: Optional[FamilyRegistry] = None):
        self._registry = registry if registry is not None else FAMILY_REGISTRY
        self._families: Dict[str, MetricFamily] = {}
        self._lock = threading.Lock()

    @property
    def registry(self) -> FamilyRegistry:
        return self._registry

    def family(self, name: str, documentation: str, kind: MetricKind = MetricKind.GAUGE,
               label_names: Sequence[str] = (), buckets: Optional[Sequence[float]] = None) -> MetricFamily:
        """Get or create the family ``name`` for this pass."""
        definition = self._registry.define(name, documentation, kind, label_names, buckets)
        with self._lock:
            family = self._families.get(name)
            if family is None:
                family = self._families[name] = MetricFamily(definition)
            return family

    @contextmanager
    def scope(self) -> Iterator["MetricFamilyBuilder"]:
        """Stage samples in a child builder; keep them only if the block completes."""
        child = MetricFamilyBuilder(self._registry)
        yield child
        self.merge(child)

    def merge(self, other: "MetricFamilyBuilder") -> None:
        with other._lock:
            staged = list(other._families.values())
        for family in staged:
            self.family(family.name, family.definition.documentation, family.kind,
                        family.label_names, family.definition.buckets or None).merge(family)

    def families(self) -> List[MetricFamily]:
        """Families with at least one sample, in registration order."""
        with self._lock:
            return [f for f in self._families.values() if len(f)]

    def build(self) -> List[Metric]:
        return [family.to_metric() for family in self.families()]
