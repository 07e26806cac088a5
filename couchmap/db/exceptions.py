"""Errors raised by the couchmap mapping layer.

Transport failures (e.g. httpx.ConnectError) are not wrapped and reach the caller unchanged.
"""


class CouchMapError(Exception):
    """Base class of every error raised by couchmap."""


class InvalidArgument(CouchMapError, ValueError):
    """Malformed host, port, database name, missing id/revision or a non-conforming argument.

    Always raised before any request is sent.
    """


class NotFound(CouchMapError):
    """The database, document, list or show function does not exist (HTTP 404)."""


class ViewNotFound(NotFound):
    """A named view does not exist (HTTP 404)."""


class UnexpectedResponse(CouchMapError):
    """The server answered with a status code the operation does not expect."""

    def __init__(self, status: int, message: str | None = None):
        self.status = status
        super().__init__(message or f"Unexpected response from server: {status}")


class RevisionConflict(UnexpectedResponse):
    """An update was sent with a revision that is no longer current (HTTP 409).

    The caller has to re-fetch the document and retry.
    """

    def __init__(self, message: str | None = None):
        super().__init__(409, message or "Cannot save updated document: revision conflict")


class DatabaseExists(UnexpectedResponse):
    """Creating a database that already exists (HTTP 412)."""

    def __init__(self, db_name: str):
        self.db_name = db_name
        super().__init__(412, f"Database '{db_name}' already exists")


class MalformedResult(CouchMapError):
    """A view response without a rows container."""


class ReadOnlyViolation(CouchMapError):
    """Attempt to write to a read-only query result."""


class OutOfRange(CouchMapError, IndexError):
    """Row or cursor index outside of [0, length)."""
