"""Failure taxonomy for depot lookups.

Every adapter translates the exceptions of the library it wraps into one of
these classes. The HTTP layer collapses all of them into the same
``{"ok": false}`` envelope and only uses ``kind`` for logging and metrics.
"""

from typing import Any


class DepotLookupError(Exception):
    """Base class for failures while resolving or aggregating depots."""

    kind: str = "error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        return self.message


class NotFound(DepotLookupError):
    """The term could not be resolved, or a source returned nothing usable."""

    kind = "not_found"


class UpstreamUnavailable(DepotLookupError):
    """Network failure, timeout or non-success status from an upstream."""

    kind = "upstream_unavailable"


class ParseError(DepotLookupError):
    """An upstream answered with a body that could not be decoded."""

    kind = "parse_error"


class StorageError(DepotLookupError):
    """A cache or store operation failed or timed out."""

    kind = "storage_error"
