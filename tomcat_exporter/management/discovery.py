#!/usr/bin/python3
"""Discovery of managed objects by name pattern."""
import logging
from typing import FrozenSet, Optional

from tomcat_exporter.management.object_name import ObjectName
from tomcat_exporter.management.server import ManagementServer

logger = logging.getLogger(__name__)


class ManagedObjectDiscovery:
    """Find the managed objects currently registered under a pattern."""

    def __init__(self, server: ManagementServer):
        self._server = server

    @staticmethod
    def pattern(domain: str, type_filter: str, key_filter: Optional[str] = None) -> ObjectName:
        """Build ``domain:type=<type_filter>[,<key_filter>]``.

        ``key_filter`` uses object name syntax, e.g. ``"context=*,host=*"`` or
        ``"class=javax.sql.DataSource,*"``.

        Raises:
            MalformedObjectNameError: if the resulting pattern is not well-formed.
        """
        text = f"{domain}:type={type_filter}"
        if key_filter:
            text = f"{text},{key_filter}"
        return ObjectName.parse(text)

    def find(self, domain: str, type_filter: str, key_filter: Optional[str] = None) -> FrozenSet[ObjectName]:
        """Names matching the pattern; empty when nothing is registered yet."""
        pattern = self.pattern(domain, type_filter, key_filter)
        names = frozenset(self._server.query_names(pattern))
        logger.debug(f"{pattern} matched {len(names)} managed objects")
        return names
