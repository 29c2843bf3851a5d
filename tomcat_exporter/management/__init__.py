"""
Managed object access: names, the query interface, discovery and
attribute resolution.
"""

from .errors import (
    AttributeNotFoundError,
    CommunicationError,
    InstanceNotFoundError,
    ManagementError,
    ObjectVanishedError,
)
from .object_name import MalformedObjectNameError, ObjectName
from .server import InMemoryManagementServer, ManagementServer, ServerInfo, get_platform_server
from .discovery import ManagedObjectDiscovery
from .resolver import ABSENT, AttributeResolver

__all__ = [
    'ABSENT',
    'AttributeNotFoundError',
    'AttributeResolver',
    'CommunicationError',
    'InMemoryManagementServer',
    'InstanceNotFoundError',
    'MalformedObjectNameError',
    'ManagedObjectDiscovery',
    'ManagementError',
    'ManagementServer',
    'ObjectName',
    'ObjectVanishedError',
    'ServerInfo',
    'get_platform_server',
]
