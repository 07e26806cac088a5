"""Document model: one stored record with its system metadata.

Keys starting with "_" (``_id``, ``_rev``, ``_attachments``, ...) are kept in
the metadata container, every other key in the data container. Field access
(get_field/set_field, ``doc[name]``) only ever reaches the data container.
"""

import base64
import uuid
from datetime import datetime
from typing import Any, Iterator
from urllib.parse import quote

from couchmap.clients.serializer.SerializerInterface import SerializerInterface
from couchmap.clients.serializer.json.SerializerJson import SerializerJson
from couchmap.db.ConnectionInterface import ConnectionInterface
from couchmap.db.exceptions import InvalidArgument, NotFound
from couchmap.db.models.Attachment import Attachment

META_PREFIX = "_"


class Document:
    def __init__(self, data: dict | None = None, url: str | None = None, connection: ConnectionInterface | None = None):
        """Create a document from a field mapping.

        Args:
            data (dict | None): All fields, metadata included. An ``_id`` is generated if missing.
            url (str | None): The document's URL. Derived from the connection and the id if omitted.
            connection (ConnectionInterface | None): The database this document belongs to.

        Raises:
            InvalidArgument: If connection is not a ConnectionInterface.
        """
        if connection is not None and not isinstance(connection, ConnectionInterface):
            raise InvalidArgument(f"connection is expected to be a ConnectionInterface, got {type(connection).__name__}")
        self._connection = connection
        self._metadata: dict[str, Any] = {}
        self._data: dict[str, Any] = {}
        self._url: str | None = None

        data = dict(data or {})
        if "_id" not in data:
            data["_id"] = uuid.uuid4().hex
        self.from_dict(data)

        if url:
            self._url = url
        elif connection is not None:
            self._url = connection.get_url() + self._quote_id(data["_id"])

    @classmethod
    def from_row(cls, value: dict, connection: ConnectionInterface | None = None) -> "Document":
        """Build a document from a view row value.

        A row value is not a document location, so the result is bound to the
        connection but has no URL.
        """
        document = cls(value, None, connection)
        document._url = None
        return document

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.get_id()!r}@{self.get_revision()!r} {self._data!r}>"

    def __str__(self) -> str:
        return self._get_serializer().encode(self.to_dict(metadata=True))

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_id(self) -> Any:
        return self._metadata.get("_id")

    def get_revision(self) -> str | None:
        return self._metadata.get("_rev")

    def get_url(self) -> str | None:
        return self._url

    def get_connection(self) -> ConnectionInterface | None:
        return self._connection

    def get_metadata(self) -> dict[str, Any]:
        """Return a copy of the metadata container."""
        return dict(self._metadata)

    def to_dict(self, metadata: bool = False) -> dict[str, Any]:
        """Convert the document to a plain dict.

        Args:
            metadata (bool): Whether to include the metadata fields as well.
        """
        result = dict(self._data)
        if metadata:
            result.update(self._metadata)
        return result

    def from_dict(self, data: dict) -> None:
        """Merge a field mapping into the document, splitting metadata from data."""
        for key, value in data.items():
            if key.startswith(META_PREFIX):
                self._metadata[key] = value
            else:
                self._data[key] = value

    ################ FIELDS ##################
    def get_field(self, name: str, default: Any = None) -> Any:
        return self._data.get(name, default)

    def set_field(self, name: str, value: Any) -> None:
        if name.startswith(META_PREFIX):
            raise InvalidArgument(f"Field '{name}' is reserved for document metadata")
        self._data[name] = value

    def has_field(self, name: str) -> bool:
        return name in self._data

    def unset_field(self, name: str) -> None:
        self._data.pop(name, None)

    def __getitem__(self, name: str) -> Any:
        if name not in self._data:
            raise KeyError(name)
        return self._data[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self.set_field(name, value)

    def __delitem__(self, name: str) -> None:
        if name not in self._data:
            raise KeyError(name)
        del self._data[name]

    def __contains__(self, name: object) -> bool:
        return name in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    ################ ATTACHMENTS ##################
    def get_attachments(self) -> dict[str, dict]:
        """Return the attachment descriptors (not the payloads)."""
        return self._metadata.get("_attachments", {})

    def set_attachment(self, name: str, content_type: str, data: bytes | str) -> None:
        """Attach a payload inline, replacing any attachment with the same name."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        attachments = self._metadata.setdefault("_attachments", {})
        attachments[name] = {
            "content_type": content_type,
            "data": base64.b64encode(data).decode("ascii"),
        }

    def get_attachment(self, name: str) -> Attachment | None:
        """Return an attachment by name.

        Returns:
            Attachment | None: An inline attachment if the payload is held locally,
            a lazy stub if it has to be fetched, or None if there is no such
            attachment or the stub cannot be fetched for lack of a URL.
        """
        descriptor = self.get_attachments().get(name)
        if descriptor is None:
            return None

        if "data" in descriptor:
            return Attachment(
                self._url,
                name,
                content_type=descriptor.get("content_type"),
                data=base64.b64decode(descriptor["data"]),
                connection=self._connection,
            )

        if not self._url:
            return None
        return Attachment(self._url, name, content_type=descriptor.get("content_type"), connection=self._connection)

    ################ DATES ##################
    @staticmethod
    def date_array(date: datetime | None = None, fmt: list[str] | None = None) -> list:
        """Split a date into a list suitable for view keys, e.g. [2024, 3, 9].

        Args:
            date (datetime | None): The date to split. Defaults to now.
            fmt (list[str] | None): strftime directives, one per element. Defaults to year, month, day.
        """
        if fmt is None:
            fmt = ["%Y", "%m", "%d"]
        if date is None:
            date = datetime.now()
        out = []
        for part in fmt:
            val = date.strftime(part)
            out.append(int(val) if val.isdigit() else val)
        return out

    def get_date(self, field: str = "date", fmt: str | None = None) -> datetime | str:
        """Read a [year, month, day] field back as a datetime, or as a string when fmt is given.

        Raises:
            InvalidArgument: If the field does not hold a [year, month, day] list.
        """
        parts = self.get_field(field)
        if not isinstance(parts, (list, tuple)) or len(parts) < 3:
            raise InvalidArgument(f"Field '{field}' does not hold a [year, month, day] date")
        date = datetime(int(parts[0]), int(parts[1]), int(parts[2]))
        return date if fmt is None else date.strftime(fmt)

    ##########################################
    ############## LIFECYCLE #################
    ##########################################

    def save(self) -> None:
        """Store the document, creating it if it has never been saved.

        A new document adopts the id, revision and URL assigned by the server;
        an existing one gets its revision refreshed.

        Raises:
            InvalidArgument: If the document is not bound to a connection.
            RevisionConflict: If the stored revision moved on in the meantime.
        """
        connection = self._require_connection("save")
        if self.get_revision() is None:
            body = dict(self._data)
            if "_attachments" in self._metadata:
                body["_attachments"] = self._metadata["_attachments"]
            new_doc = connection.create(body, self._url)
            self._metadata["_id"] = new_doc.get_id()
            self._metadata["_rev"] = new_doc.get_revision()
            self._url = new_doc.get_url()
        else:
            connection.update(self, self._url)

    def revert(self) -> None:
        """Discard all local changes and reload the document from the database.

        Does nothing for a document that has never been saved.

        Raises:
            NotFound: If the document no longer exists.
        """
        if self.get_revision() is None:
            return
        connection = self._require_connection("revert")
        fresh = connection.fetch(self.get_id())
        if fresh is None:
            raise NotFound(f"Document '{self.get_id()}' no longer exists")

        self._metadata = {}
        self._data = {}
        self.from_dict(fresh.to_dict(metadata=True))

    def delete(self) -> bool:
        """Delete the document from the database.

        Returns:
            bool: False if the document did not exist anymore.

        Raises:
            InvalidArgument: If URL or id are unknown.
        """
        if not self._url or not self.get_id():
            raise InvalidArgument("Unable to delete a document without known URL")
        connection = self._require_connection("delete")
        return connection.delete(self.get_id(), self.get_revision())

    ##########################################
    ############### INTERNAL #################
    ##########################################

    def adopt_revision(self, revision: str) -> None:
        """Record the revision the server assigned after a successful update."""
        self._metadata["_rev"] = revision

    def _require_connection(self, action: str) -> ConnectionInterface:
        if self._connection is None:
            raise InvalidArgument(f"Unable to {action} a document that is not bound to a connection")
        return self._connection

    def _get_serializer(self) -> SerializerInterface:
        if self._connection is not None:
            return self._connection.get_serializer()
        return SerializerJson()

    def _quote_id(self, doc_id: Any) -> str:
        if not isinstance(doc_id, str):
            doc_id = self._get_serializer().encode(doc_id)
        return quote(doc_id, safe="")
