#!/usr/bin/python3
"""Managed object names.

A name has the form ``domain:key=value[,key=value...]``. Values may be
quoted (``name="jdbc/mypool"``) and keep their quotes, exactly as the host
reports them. A name is a pattern when its domain or a value contains ``*``
or ``?``, or when its property list contains a lone ``*`` which allows any
additional properties:

    Catalina:type=Manager,context=*,host=*
    tomcat.jdbc:class=org.apache.tomcat.jdbc.pool.DataSource,type=ConnectionPool,*
"""
import re
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from tomcat_exporter.errors import ConfigurationError

_WILDCARDS = ("*", "?")
_KEY_FORBIDDEN = set(':=,*?"\n')
_VALUE_FORBIDDEN = set(':=,"\n')


class MalformedObjectNameError(ConfigurationError):
    """The text is not a valid object name or pattern."""


def _has_wildcard(text: str) -> bool:
    return any(w in text for w in _WILDCARDS)


def _wildcard_regex(text: str):
    escaped = re.escape(text).replace(r"\*", ".*").replace(r"\?", ".")
    return re.compile(f"^{escaped}$", re.DOTALL)


def _split_properties(text: str) -> List[str]:
    """Split on commas that are not inside a quoted value."""
    parts, current = [], []
    in_quote = escaped = False
    for ch in text:
        if escaped:
            escaped = False
        elif in_quote and ch == "\\":
            escaped = True
        elif ch == '"':
            in_quote = not in_quote
        elif ch == "," and not in_quote:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    if in_quote:
        raise MalformedObjectNameError(f"unterminated quoted value in {text!r}")
    parts.append("".join(current))
    return parts


def _check_value(text: str, key: str, value: str) -> None:
    if not value:
        raise MalformedObjectNameError(f"empty value for key {key!r} in {text!r}")
    if value.startswith('"'):
        if len(value) < 2 or not value.endswith('"'):
            raise MalformedObjectNameError(f"bad quoted value for key {key!r} in {text!r}")
        return
    if _VALUE_FORBIDDEN & set(value):
        raise MalformedObjectNameError(f"invalid character in value for key {key!r} in {text!r}")


class ObjectName:
    """Immutable identifier (or pattern) of a managed object.

    Two names are equal when their domains and key properties are equal,
    regardless of the order the properties were written in.
    """

    def __init__(self, domain: str, properties: Mapping[str, str], property_list_pattern: bool = False):
        self._domain = domain
        self._properties = MappingProxyType(dict(properties))
        self._property_list_pattern = property_list_pattern
        self._canonical = domain + ":" + ",".join(
            f"{k}={v}" for k, v in sorted(self._properties.items()))
        if property_list_pattern:
            self._canonical += ",*" if self._properties else "*"

    @classmethod
    def parse(cls, text: str) -> "ObjectName":
        """Parse ``text`` into a name.

        Raises:
            MalformedObjectNameError: if ``text`` is not well-formed.
        """
        if not isinstance(text, str) or ":" not in text:
            raise MalformedObjectNameError(f"missing domain separator in {text!r}")
        domain, _, rest = text.partition(":")
        if not domain:
            raise MalformedObjectNameError(f"empty domain in {text!r}")
        if "\n" in domain:
            raise MalformedObjectNameError(f"invalid domain in {text!r}")
        if not rest:
            raise MalformedObjectNameError(f"no key properties in {text!r}")

        properties: Dict[str, str] = {}
        property_list_pattern = False
        for part in _split_properties(rest):
            if part == "*":
                if property_list_pattern:
                    raise MalformedObjectNameError(f"repeated '*' in {text!r}")
                property_list_pattern = True
                continue
            key, sep, value = part.partition("=")
            if not sep or not key or _KEY_FORBIDDEN & set(key):
                raise MalformedObjectNameError(f"invalid key property {part!r} in {text!r}")
            if key in properties:
                raise MalformedObjectNameError(f"duplicate key {key!r} in {text!r}")
            _check_value(text, key, value)
            properties[key] = value
        return cls(domain, properties, property_list_pattern)

    @staticmethod
    def quote(value: str) -> str:
        """Return ``value`` as a quoted object name value."""
        escaped = (value.replace("\\", "\\\\").replace('"', '\\"')
                   .replace("*", "\\*").replace("?", "\\?").replace("\n", "\\n"))
        return f'"{escaped}"'

    @property
    def domain(self) -> str:
        return self._domain

    @property
    def properties(self) -> Mapping[str, str]:
        """Key properties in the order they were written."""
        return self._properties

    @property
    def property_list_pattern(self) -> bool:
        return self._property_list_pattern

    @property
    def is_pattern(self) -> bool:
        return (self._property_list_pattern or _has_wildcard(self._domain)
                or any(_has_wildcard(v) for v in self._properties.values() if not v.startswith('"')))

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Raw value of a key property, quotes included."""
        return self._properties.get(key, default)

    def matches(self, name: "ObjectName") -> bool:
        """Whether the concrete ``name`` is selected by this pattern."""
        if not _wildcard_regex(self._domain).match(name.domain):
            return False
        for key, value in self._properties.items():
            actual = name.get(key)
            if actual is None:
                return False
            if _has_wildcard(value) and not value.startswith('"'):
                if not _wildcard_regex(value).match(actual):
                    return False
            elif value != actual:
                return False
        if not self._property_list_pattern and set(name.properties) != set(self._properties):
            return False
        return True

    def __eq__(self, other) -> bool:
        if not isinstance(other, ObjectName):
            return NotImplemented
        return self._canonical == other._canonical

    def __hash__(self) -> int:
        return hash(self._canonical)

    def __lt__(self, other: "ObjectName") -> bool:
        return self._canonical < other._canonical

    def __str__(self) -> str:
        props = ",".join(f"{k}={v}" for k, v in self._properties.items())
        if self._property_list_pattern:
            props = f"{props},*" if props else "*"
        return f"{self._domain}:{props}"

    def __repr__(self) -> str:
        return f"ObjectName({str(self)!r})"
