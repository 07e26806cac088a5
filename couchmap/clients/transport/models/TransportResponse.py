"""TransportResponse model: the engine-independent result of a single HTTP call."""

from pydantic import BaseModel


class TransportResponse(BaseModel):
    """Status, headers and raw body of one HTTP response, as returned by a transport engine.

    Attributes:
        status_code: Numeric HTTP status code.
        headers:     Response headers. Lookups through get_header() are case-insensitive.
        body:        Raw response body.
    """

    status_code: int
    headers: dict[str, str] = {}
    body: bytes = b""

    def get_header(self, name: str) -> str | None:
        """Return a header value by case-insensitive name, or None if absent."""
        name = name.lower()
        for key, value in self.headers.items():
            if key.lower() == name:
                return value
        return None

    def get_text(self, encoding: str = "utf-8") -> str:
        """Return the body decoded as text."""
        return self.body.decode(encoding)

    def is_success(self) -> bool:
        return 200 <= self.status_code < 300
