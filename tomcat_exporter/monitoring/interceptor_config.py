#!/usr/bin/python3
"""Query interceptor configuration schema.

The interceptor is configured with a flat string property bag, the same
shape a pool resource definition uses:

    logFailed=true,logSlow=true,threshold=1000,buckets=.01|.05|.1|1|10,slowQueryBuckets=1|10|30

- logFailed: count failures per query text
- logSlow: time queries at or above threshold per query text
- threshold: slow query threshold in milliseconds (default 1000)
- buckets: global query histogram buckets in seconds (default .01|.05|.1|.25|.5|1|2.5|10)
- slowQueryBuckets: slow query histogram buckets in seconds (default 1|2.5|10|30)

logFailed and logSlow label series by raw query text, which is unbounded.
Both are off unless enabled explicitly.
"""
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from marshmallow import EXCLUDE, Schema, ValidationError, fields, post_load, validate

from tomcat_exporter.errors import ConfigurationError

DEFAULT_BUCKETS = (.01, .05, .1, .25, .5, 1, 2.5, 10)
DEFAULT_SLOW_QUERY_BUCKETS = (1, 2.5, 10, 30)
DEFAULT_THRESHOLD_MS = 1000


class PipeSeparatedFloats(fields.Field):
    """Ascending list of numbers written as ``1|2.5|10``."""

    def _deserialize(self, value, attr, data, **kwargs):
        if isinstance(value, str):
            parts = [p.strip() for p in value.split("|")]
        elif isinstance(value, (list, tuple)):
            parts = list(value)
        else:
            raise ValidationError("must be a pipe separated list of numbers")
        try:
            numbers = tuple(float(p) for p in parts)
        except (TypeError, ValueError):
            raise ValidationError(f"{value!r} is not a pipe separated list of numbers") from None
        if not numbers:
            raise ValidationError("must not be empty")
        if any(low >= high for low, high in zip(numbers, numbers[1:])):
            raise ValidationError("buckets must be in strictly ascending order")
        return numbers

    def _serialize(self, value, attr, obj, **kwargs):
        if value is None:
            return None
        return "|".join(f"{v:g}" for v in value)


@dataclass(frozen=True)
class InterceptorSettings:
    log_failed: bool = False
    log_slow: bool = False
    threshold: int = DEFAULT_THRESHOLD_MS
    buckets: Tuple[float, ...] = DEFAULT_BUCKETS
    slow_query_buckets: Tuple[float, ...] = DEFAULT_SLOW_QUERY_BUCKETS


class InterceptorPropertiesSchema(Schema):
    """Validate and load the interceptor property bag.

    Unknown keys are ignored so one property string can be shared with
    other interceptors of the same pool.
    """

    class Meta:
        unknown = EXCLUDE

    log_failed = fields.Boolean(data_key="logFailed", load_default=False)
    log_slow = fields.Boolean(data_key="logSlow", load_default=False)
    threshold = fields.Integer(data_key="threshold", load_default=DEFAULT_THRESHOLD_MS,
                               validate=validate.Range(min=0))
    buckets = PipeSeparatedFloats(data_key="buckets", load_default=DEFAULT_BUCKETS)
    slow_query_buckets = PipeSeparatedFloats(data_key="slowQueryBuckets",
                                             load_default=DEFAULT_SLOW_QUERY_BUCKETS)

    @post_load
    def make_settings(self, data, **kwargs):
        return InterceptorSettings(**data)


def parse_properties(text: str) -> dict:
    """Split ``key=value,key=value`` into a dict. Values may contain ``|``."""
    properties = {}
    for part in (text or "").split(","):
        part = part.strip()
        if not part:
            continue
        key, sep, value = part.partition("=")
        if not sep or not key.strip():
            raise ConfigurationError(f"invalid interceptor property {part!r}")
        properties[key.strip()] = value.strip()
    return properties


def load_settings(properties: Optional[Mapping[str, str]] = None) -> InterceptorSettings:
    """Load settings from a property bag (or a ``key=value,...`` string).

    Raises:
        ConfigurationError: if a value is malformed.
    """
    if isinstance(properties, str):
        properties = parse_properties(properties)
    try:
        return InterceptorPropertiesSchema().load(dict(properties or {}))
    except ValidationError as e:
        raise ConfigurationError(f"invalid interceptor properties: {e.messages}") from e
