import json
from typing import Any

from couchmap.clients.serializer.SerializerInterface import SerializerInterface


class SerializerJson(SerializerInterface):
    def _get_engine_name(self) -> str:
        return "Json"

    def get_content_type(self) -> str:
        return "application/json"

    def encode(self, value: Any) -> str:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))

    def decode(self, text: str | bytes) -> Any:
        return json.loads(text)
