from abc import ABC, abstractmethod
from typing import Any


class SerializerInterface(ABC):
    """Encodes and decodes the tree-shaped values (dicts, lists, strings, numbers, booleans, None) sent over the wire."""

    def get_engine_name(self) -> str:
        """
        Returns the name of the engine used by the serializer. E.g. "json"
        """
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        pass

    @abstractmethod
    def get_content_type(self) -> str:
        """Returns the content type of encoded request bodies (e.g. "application/json")."""
        pass

    @abstractmethod
    def encode(self, value: Any) -> str:
        """Encode a value to text.

        Raises:
            TypeError: If the value contains something that cannot be encoded.
        """
        pass

    @abstractmethod
    def decode(self, text: str | bytes) -> Any:
        """Decode text back to a value.

        Raises:
            ValueError: If the text is not a valid encoding.
        """
        pass
