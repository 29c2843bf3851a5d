#!/usr/bin/python3
"""Version tolerant attribute resolution.

Attribute sets differ between server versions. A missing attribute is
reported as `ABSENT` instead of raising, and logged only the first time it
is seen for a given object.
"""
import logging
import threading
from typing import Any, Dict, Iterable, Set, Tuple

from tomcat_exporter.management.errors import InstanceNotFoundError, ObjectVanishedError
from tomcat_exporter.management.object_name import ObjectName
from tomcat_exporter.management.server import ManagementServer

logger = logging.getLogger(__name__)


class _Absent:
    """Marker for an attribute the object did not report."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()


class AttributeResolver:
    """Read attribute values of discovered objects in one bulk call."""

    def __init__(self, server: ManagementServer):
        self._server = server
        self._reported: Set[Tuple[ObjectName, str]] = set()
        self._lock = threading.Lock()

    def get(self, name: ObjectName, attributes: Iterable[str]) -> Dict[str, Any]:
        """Map each attribute to its value or `ABSENT`.

        Raises:
            ObjectVanishedError: ``name`` was unregistered since discovery.
            CommunicationError: the object could not be read at all.
        """
        attributes = list(attributes)
        try:
            found = self._server.get_attributes(name, attributes)
        except InstanceNotFoundError as e:
            raise ObjectVanishedError(str(name)) from e

        values = {}
        for attribute in attributes:
            if attribute in found and found[attribute] is not None:
                values[attribute] = found[attribute]
            else:
                values[attribute] = ABSENT
                self.report_absent(name, attribute, "not exposed")
        return values

    def report_absent(self, name: ObjectName, attribute: str, reason: str) -> None:
        """Log an unusable attribute once per (object, attribute) pair."""
        key = (name, attribute)
        with self._lock:
            if key in self._reported:
                return
            self._reported.add(key)
        logger.warning(f"Attribute {attribute!r} of {name} is {reason}; its metric is skipped")
