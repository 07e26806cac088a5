"""QueryResult: read-only, randomly seekable view of a view/query response."""

import copy
from typing import Any, Iterator

from couchmap.clients.serializer.SerializerInterface import SerializerInterface
from couchmap.clients.serializer.json.SerializerJson import SerializerJson
from couchmap.db.ConnectionInterface import ConnectionInterface
from couchmap.db.exceptions import InvalidArgument, MalformedResult, OutOfRange, ReadOnlyViolation
from couchmap.db.models.Document import Document
from couchmap.db.models.ReturnMode import ReturnKind, ReturnMode


class QueryResult:
    """Rows of a view response plus the result level metadata (total_rows, offset, ...).

    Rows are materialized on read according to the ReturnMode:

        result = connection.query_view("orders", "by_item", {"key": "pen"})
        len(result)           # number of rows
        result[0]             # value of the first row
        result.total_rows     # result metadata, None if the server did not send it
        for value in result:  # iteration does not touch the cursor
            ...

    Besides indexing and iteration the result keeps a forward cursor
    (current/next/rewind/has_more/seek). Everything else is read-only: item or
    attribute assignment raises ReadOnlyViolation.
    """

    def __init__(
        self,
        result: dict,
        return_mode: ReturnMode | None = None,
        connection: ConnectionInterface | None = None,
        serializer: SerializerInterface | None = None,
    ):
        """
        Args:
            result (dict): The decoded response body; must contain "rows".
            return_mode (ReturnMode | None): How row values are materialized. Defaults to raw.
            connection (ConnectionInterface | None): The connection documents are bound to in object mode.
            serializer (SerializerInterface | None): Used in text mode. Defaults to the connection's serializer.

        Raises:
            MalformedResult: If the result has no list of rows.
            InvalidArgument: If object mode is requested without a connection or with a non Document type.
        """
        if not isinstance(result, dict) or "rows" not in result:
            raise MalformedResult("Result does not seem to be a valid view result")
        rows = result["rows"]
        if rows is None:
            rows = []
        if not isinstance(rows, list):
            raise MalformedResult(f"Expected a list of rows, got {type(rows).__name__}")

        return_mode = return_mode or ReturnMode.raw()
        document_type = None
        if return_mode.is_object():
            if connection is None:
                raise InvalidArgument("Object return mode requires a connection to bind documents to")
            document_type = return_mode.document_type or Document
            if not isinstance(document_type, type) or not issubclass(document_type, Document):
                raise InvalidArgument(f"{document_type!r} is not a subclass of Document as expected")

        if serializer is None:
            serializer = connection.get_serializer() if connection is not None else SerializerJson()

        metadata = {key: value for key, value in result.items() if key != "rows"}

        # attribute writes are blocked by __setattr__
        object.__setattr__(self, "_rows", copy.deepcopy(rows))
        object.__setattr__(self, "_metadata", copy.deepcopy(metadata))
        object.__setattr__(self, "_return_mode", return_mode)
        object.__setattr__(self, "_document_type", document_type)
        object.__setattr__(self, "_connection", connection)
        object.__setattr__(self, "_serializer", serializer)
        object.__setattr__(self, "_pointer", 0)

    def __repr__(self) -> str:
        return f"<QueryResult rows={len(self._rows)} mode={self._return_mode.kind.value} metadata={self._metadata!r}>"

    ##########################################
    ############### SEQUENCE #################
    ##########################################

    def __len__(self) -> int:
        return len(self._rows)

    def __getitem__(self, offset: int) -> Any:
        return self.get_at(offset)

    def __iter__(self) -> Iterator[Any]:
        for offset in range(len(self._rows)):
            yield self.get_at(offset)

    def get_at(self, offset: int) -> Any:
        """Return the materialized value of the row at offset.

        Raises:
            OutOfRange: If offset is outside of [0, len).
        """
        self._check_offset(offset)
        return self._materialize(self._rows[offset].get("value"), offset)

    ##########################################
    ################ ROWS ####################
    ##########################################

    def get_row(self, offset: int | None = None) -> dict | None:
        """Return a copy of the full row (id, key, value, doc), or None if there is no such row.

        Args:
            offset (int | None): Row offset. Defaults to the cursor position.
        """
        offset = self._pointer if offset is None else offset
        if not self._has_offset(offset):
            return None
        return copy.deepcopy(self._rows[offset])

    def get_rows(self) -> list[dict]:
        """Return copies of all rows as sent by the server."""
        return copy.deepcopy(self._rows)

    def get_row_metadata(self, offset: int | None = None) -> dict | None:
        """Return the row without its value (normally id and key), or None if there is no such row."""
        row = self.get_row(offset)
        if row is None:
            return None
        row.pop("value", None)
        return row

    def get_embedded_document(self, offset: int | None = None) -> Any:
        """Return the document included with the row (include_docs=true), materialized like values.

        Returns None if there is no such row or the row carries no document (a missing
        "doc" or a null one, as sent for deleted documents).
        """
        offset = self._pointer if offset is None else offset
        if not self._has_offset(offset) or self._rows[offset].get("doc") is None:
            return None
        return self._materialize(self._rows[offset]["doc"], offset)

    def get_embedded_documents(self) -> list:
        return [self.get_embedded_document(offset) for offset in range(len(self._rows))]

    ##########################################
    ############### METADATA #################
    ##########################################

    def get_metadata(self, name: str | None = None) -> Any:
        """Return one result metadata field (None if unknown), or a copy of all of them."""
        if name is None:
            return copy.deepcopy(self._metadata)
        return self._metadata.get(name)

    def get_return_mode(self) -> ReturnMode:
        return self._return_mode

    def __getattr__(self, name: str) -> Any:
        # only reached for names that are not regular attributes
        if name.startswith("_"):
            raise AttributeError(name)
        return self._metadata.get(name)

    ##########################################
    ################ CURSOR ##################
    ##########################################

    def key(self) -> int:
        return self._pointer

    def current(self) -> Any:
        """Return the value at the cursor.

        Raises:
            OutOfRange: If the cursor is past the last row.
        """
        return self.get_at(self._pointer)

    def next(self) -> None:
        object.__setattr__(self, "_pointer", self._pointer + 1)

    def rewind(self) -> None:
        object.__setattr__(self, "_pointer", 0)

    def has_more(self) -> bool:
        """True while the cursor points at a row."""
        return self._has_offset(self._pointer)

    def seek(self, index: int) -> None:
        """Move the cursor to index.

        Raises:
            OutOfRange: If index is outside of [0, len).
        """
        self._check_offset(index)
        object.__setattr__(self, "_pointer", index)

    ##########################################
    ############## READ-ONLY #################
    ##########################################

    def __setitem__(self, offset, value) -> None:
        raise ReadOnlyViolation("Trying to write to read-only result set")

    def __delitem__(self, offset) -> None:
        raise ReadOnlyViolation("Trying to write to read-only result set")

    def __setattr__(self, name, value) -> None:
        raise ReadOnlyViolation("Trying to write to read-only result set")

    def __delattr__(self, name) -> None:
        raise ReadOnlyViolation("Trying to write to read-only result set")

    ##########################################
    ############### INTERNAL #################
    ##########################################

    def _has_offset(self, offset: Any) -> bool:
        return isinstance(offset, int) and not isinstance(offset, bool) and 0 <= offset < len(self._rows)

    def _check_offset(self, offset: Any) -> None:
        if not isinstance(offset, int) or isinstance(offset, bool):
            raise TypeError(f"Row offsets must be integers, not {type(offset).__name__}")
        if not 0 <= offset < len(self._rows):
            raise OutOfRange(f"Offset {offset} is outside of the result (0..{len(self._rows) - 1})")

    def _materialize(self, value: Any, offset: int) -> Any:
        kind = self._return_mode.kind
        if kind == ReturnKind.TEXT:
            return self._serializer.encode(value)
        if kind == ReturnKind.OBJECT:
            if not isinstance(value, dict):
                raise MalformedResult(f"Row {offset} cannot be materialized as a document: {value!r}")
            return self._document_type.from_row(copy.deepcopy(value), self._connection)
        return copy.deepcopy(value)
