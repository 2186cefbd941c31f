# src/durascope/contracts/errors.py
"""Exceptions that cross the storage / analyzer / server boundaries.

Absent resources are NOT exceptions: adapters map them to ``None``,
``False``, ``[]`` or ``0``. Only substrate failures (service down,
authentication rejected, throttling exhausted) propagate as errors.
"""


class DurascopeError(Exception):
    """Base class for durascope errors."""


class StorageUnavailableError(DurascopeError):
    """A storage service call failed for a reason other than "not found".

    The original SDK exception is chained as ``__cause__``.

    Attributes:
        resource: Table, queue, container or blob the call targeted
        status_code: HTTP status from the service, if one was received
    """

    def __init__(self, resource: str, message: str, *, status_code: int | None = None) -> None:
        self.resource = resource
        self.status_code = status_code
        super().__init__(f"Storage call for '{resource}' failed: {message}")


class ConfigurationError(DurascopeError):
    """Settings could not be turned into working storage clients."""
