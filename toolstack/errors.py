"""
ToolStack Errors
================

Error taxonomy shared by the sync pipeline and the API layer.

Caller-facing errors carry a ``status`` code that the API translates into
an HTTP response. Per-record failures inside the sync pipeline are caught
and counted, they never reach a caller.
"""

from typing import Optional


class ToolStackError(Exception):
    """Base class for all ToolStack errors."""

    status = "internal"
    http_status = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidArgumentError(ToolStackError):
    """Missing or malformed caller input."""

    status = "invalid-argument"
    http_status = 400


class UnauthenticatedError(ToolStackError):
    """Caller identity missing where it is required."""

    status = "unauthenticated"
    http_status = 401


class ReferenceResolutionError(ToolStackError):
    """A category/ecosystem id did not resolve. Recovered with a sentinel."""

    def __init__(self, kind: str, reference_id: Optional[str]):
        self.kind = kind
        self.reference_id = reference_id
        super().__init__(f"{kind} {reference_id!r} could not be resolved")


class UpstreamServiceError(ToolStackError):
    """An embedding, completion, index or store call failed."""

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(f"{service}: {message}")


class InternalError(ToolStackError):
    """Generic failure surfaced to callers without upstream details."""

    status = "internal"
    http_status = 500
