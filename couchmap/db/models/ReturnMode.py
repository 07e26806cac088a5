"""ReturnMode: how a QueryResult materializes the values of its rows."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

from couchmap.db.exceptions import InvalidArgument
from couchmap.db.models.Document import Document


class ReturnKind(str, Enum):
    RAW = "raw"
    TEXT = "text"
    OBJECT = "object"


class ReturnMode(BaseModel):
    """Closed set of materialization modes, fixed when a QueryResult is built.

    Use the factories instead of the constructor:

        ReturnMode.raw()                 # the row value as decoded (dict, list, ...)
        ReturnMode.text()                # the row value re-encoded by the serializer
        ReturnMode.objects(MyDocument)   # MyDocument.from_row(value, connection)
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: ReturnKind = ReturnKind.RAW
    document_type: Any = None

    @classmethod
    def raw(cls) -> "ReturnMode":
        return cls(kind=ReturnKind.RAW)

    @classmethod
    def text(cls) -> "ReturnMode":
        return cls(kind=ReturnKind.TEXT)

    @classmethod
    def objects(cls, document_type: type = Document) -> "ReturnMode":
        """Materialize rows as instances of document_type.

        Raises:
            InvalidArgument: If document_type is not a Document subclass.
        """
        if not isinstance(document_type, type) or not issubclass(document_type, Document):
            raise InvalidArgument(f"{document_type!r} is not a subclass of Document as expected")
        return cls(kind=ReturnKind.OBJECT, document_type=document_type)

    def is_object(self) -> bool:
        return self.kind == ReturnKind.OBJECT
