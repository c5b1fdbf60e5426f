"""Error taxonomy shared by the store, the traversal engine and the API."""

from __future__ import annotations


class TraceTreeError(Exception):
    """Base class for every error raised by tracetree."""

    status_code = 500


class NotFound(TraceTreeError):
    """The requested span, or the trace's root span, does not exist."""

    status_code = 404


class QueryError(TraceTreeError):
    """A span store call failed (sqlite error, bad record, upstream failure)."""

    status_code = 502


class Cancelled(TraceTreeError):
    """The caller's deadline or cancellation signal fired mid-traversal."""

    status_code = 504


class InvalidArgument(TraceTreeError):
    """A traversal option is out of range or an identifier is malformed."""

    status_code = 400
