#!/usr/bin/python3
"""Managed-object query interface.

`ManagementServer` is the contract the collectors consume. The host
application registers its managed objects ("beans") in an
`InMemoryManagementServer`; the process-wide instance is returned by
`get_platform_server()`.

A bean is either a mapping of attribute name to value or any object whose
attributes are read with ``getattr``. Callable values are invoked on every
read so beans can expose live values.
"""
import logging
import threading
from abc import ABC, abstractmethod
from collections import namedtuple
from typing import Any, Dict, Iterable, Mapping, Optional, Set, Union

from tomcat_exporter.management.errors import (
    AttributeNotFoundError,
    CommunicationError,
    InstanceNotFoundError,
)
from tomcat_exporter.management.object_name import MalformedObjectNameError, ObjectName

logger = logging.getLogger(__name__)

ServerInfo = namedtuple("ServerInfo", ["number", "built"])

NameLike = Union[str, ObjectName]


def as_object_name(name: NameLike) -> ObjectName:
    return name if isinstance(name, ObjectName) else ObjectName.parse(name)


class ManagementServer(ABC):
    """Read-only view of the registered managed objects."""

    server_info = ServerInfo("unknown", "unknown")

    @abstractmethod
    def query_names(self, pattern: ObjectName) -> Set[ObjectName]:
        """Names of all registered objects matched by ``pattern``."""

    @abstractmethod
    def get_attribute(self, name: ObjectName, attribute: str) -> Any:
        """Current value of one attribute.

        Raises:
            InstanceNotFoundError: ``name`` is not registered.
            AttributeNotFoundError: the object has no such attribute.
            CommunicationError: the object failed to produce the value.
        """

    def get_attributes(self, name: ObjectName, attributes: Iterable[str]) -> Dict[str, Any]:
        """Values of several attributes; missing attributes are left out."""
        values = {}
        for attribute in attributes:
            try:
                values[attribute] = self.get_attribute(name, attribute)
            except AttributeNotFoundError:
                continue
        return values


class InMemoryManagementServer(ManagementServer):
    """Thread-safe registry of in-process managed objects."""

    def __init__(self, server_info: Optional[ServerInfo] = None):
        self._beans: Dict[ObjectName, Any] = {}
        self._lock = threading.RLock()
        if server_info is not None:
            self.server_info = server_info

    def register(self, name: NameLike, bean: Any) -> ObjectName:
        """Register ``bean`` under ``name`` and return the parsed name."""
        object_name = as_object_name(name)
        if object_name.is_pattern:
            raise MalformedObjectNameError(f"cannot register a pattern: {object_name}")
        with self._lock:
            if object_name in self._beans:
                raise ValueError(f"already registered: {object_name}")
            self._beans[object_name] = bean
        logger.debug(f"Registered managed object {object_name}")
        return object_name

    def unregister(self, name: NameLike) -> None:
        object_name = as_object_name(name)
        with self._lock:
            if self._beans.pop(object_name, None) is None:
                raise InstanceNotFoundError(str(object_name))
        logger.debug(f"Unregistered managed object {object_name}")

    def is_registered(self, name: NameLike) -> bool:
        with self._lock:
            return as_object_name(name) in self._beans

    def query_names(self, pattern: ObjectName) -> Set[ObjectName]:
        with self._lock:
            return {name for name in self._beans if pattern.matches(name)}

    def _bean(self, name: ObjectName) -> Any:
        with self._lock:
            try:
                return self._beans[name]
            except KeyError:
                raise InstanceNotFoundError(str(name)) from None

    @staticmethod
    def _read(name: ObjectName, bean: Any, attribute: str) -> Any:
        try:
            if isinstance(bean, Mapping):
                value = bean[attribute]
            else:
                value = getattr(bean, attribute)
            return value() if callable(value) else value
        except (KeyError, AttributeError):
            raise AttributeNotFoundError(f"{name} has no attribute {attribute!r}") from None
        except Exception as e:
            raise CommunicationError(f"{name} failed to read {attribute!r}: {e}") from e

    def get_attribute(self, name: ObjectName, attribute: str) -> Any:
        return self._read(name, self._bean(name), attribute)

    def get_attributes(self, name: ObjectName, attributes: Iterable[str]) -> Dict[str, Any]:
        bean = self._bean(name)
        values = {}
        for attribute in attributes:
            try:
                values[attribute] = self._read(name, bean, attribute)
            except AttributeNotFoundError:
                continue
        return values


_platform_server: Optional[InMemoryManagementServer] = None
_platform_lock = threading.Lock()


def get_platform_server() -> InMemoryManagementServer:
    """Process-wide management server, created on first use."""
    global _platform_server
    with _platform_lock:
        if _platform_server is None:
            from tomcat_exporter.config import config
            _platform_server = InMemoryManagementServer(
                ServerInfo(config.SERVER_VERSION, config.SERVER_BUILT))
        return _platform_server
