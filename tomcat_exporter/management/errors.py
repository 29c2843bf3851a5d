#!/usr/bin/python3
"""Typed failures of the managed-object query interface."""
from tomcat_exporter.errors import ExporterError


class ManagementError(ExporterError):
    """Base class for management interface failures."""


class InstanceNotFoundError(ManagementError):
    """No managed object is registered under the given name."""


class AttributeNotFoundError(ManagementError):
    """The managed object exists but does not expose the attribute."""


class CommunicationError(ManagementError):
    """The managed object could not produce its attribute values.

    Tolerated at object granularity: the object is skipped for the pass.
    """


class ObjectVanishedError(ManagementError):
    """A discovered object was unregistered before it could be resolved."""
