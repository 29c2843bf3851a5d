#!/usr/bin/python3
"""Exception hierarchy shared by the exporter packages."""


class ExporterError(Exception):
    """Base class for all exporter errors."""


class ConfigurationError(ExporterError):
    """A pattern, bucket list or setting could not be parsed.

    Raised at setup time. During a collection pass it only drops the
    sub-collection that owns the bad pattern.
    """


class ProgrammerError(ExporterError):
    """Internal contract violation, e.g. a label tuple of the wrong arity.

    This is a collector bug and never a runtime condition of the monitored
    server.
    """
