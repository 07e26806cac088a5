from abc import ABC, abstractmethod
from typing import Any

from couchmap.clients.serializer.SerializerInterface import SerializerInterface


class ConnectionInterface(ABC):
    """The capability Documents, Attachments and QueryResults rely on when bound to a database."""

    ##########################################
    ################ GETTER ##################
    ##########################################

    @abstractmethod
    def get_url(self) -> str:
        """
        Returns the base URL of the database, always ending with "/" (e.g. "http://localhost:5984/orders/").
        """
        pass

    @abstractmethod
    def get_serializer(self) -> SerializerInterface:
        """
        Returns the serializer used to encode bodies and query parameters.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @abstractmethod
    def create(self, data: dict, doc: str | list[str] | None = None) -> Any:
        """Create a new document and return it as a bound Document."""
        pass

    @abstractmethod
    def fetch(self, doc: str | list[str], document_type: type | None = None, rev: str | None = None, full: bool = False) -> Any:
        """Fetch a document, or None if it does not exist."""
        pass

    @abstractmethod
    def update(self, data: Any, url: str | None = None) -> str:
        """Store a modified document and return its new revision."""
        pass

    @abstractmethod
    def delete(self, doc: str | list[str], rev: str) -> bool:
        """Delete a document. Returns False if it does not exist."""
        pass

    @abstractmethod
    def fetch_attachment(self, url: str, name: str) -> tuple[str | None, bytes]:
        """Fetch the content type and payload of an attachment of the document at url."""
        pass
