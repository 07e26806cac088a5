"""Attachment model: a named binary payload stored alongside a document."""

from couchmap.db.ConnectionInterface import ConnectionInterface
from couchmap.db.exceptions import InvalidArgument


class Attachment:
    """One attachment of a document.

    An inline attachment carries its payload already (it was set locally or
    fetched with the document). A stub only knows the owning document's URL and
    its name, and loads content type and payload from the connection on first
    access to get_data().
    """

    def __init__(
        self,
        url: str | None,
        name: str,
        content_type: str | None = None,
        data: bytes | None = None,
        connection: ConnectionInterface | None = None,
    ):
        self._url = url
        self._name = name
        self._content_type = content_type
        self._data = data
        self._connection = connection

    def __repr__(self) -> str:
        state = "inline" if self._data is not None else "stub"
        return f"<Attachment {self._name!r} ({self._content_type or 'unknown'}, {state})>"

    def get_name(self) -> str:
        return self._name

    def get_url(self) -> str | None:
        """URL of the owning document."""
        return self._url

    def is_loaded(self) -> bool:
        return self._data is not None

    def get_content_type(self) -> str | None:
        return self._content_type

    def get_data(self) -> bytes:
        """Return the payload, fetching it through the connection when this is a stub.

        Raises:
            InvalidArgument: If the stub has no URL or is not bound to a connection.
            NotFound: If the server no longer has the attachment.
        """
        if self._data is None:
            if not self._url or self._connection is None:
                raise InvalidArgument(f"Unable to load attachment '{self._name}' without a known document URL and connection")
            content_type, payload = self._connection.fetch_attachment(self._url, self._name)
            self._data = payload
            if content_type:
                self._content_type = content_type
        return self._data
