import base64
import itertools
import json
import logging
from typing import Any, Callable
from urllib.parse import unquote, urlsplit

import pytest

from couchmap.clients.transport.models.TransportResponse import TransportResponse
from couchmap.db.Connection import Connection
from couchmap.helper.HelperConfig import HelperConfig


def _json_response(status_code: int, payload: Any, headers: dict | None = None) -> TransportResponse:
    return TransportResponse(
        status_code=status_code,
        headers={"Content-Type": "application/json", **(headers or {})},
        body=json.dumps(payload).encode("utf-8"),
    )


def _next_rev(current: str | None) -> str:
    number = int(current.split("-")[0]) + 1 if current else 1
    return f"{number}-{chr(ord('a') + (number - 1) % 26)}"


class FakeCouchTransport:
    """In-memory stand-in for a CouchDB server, speaking the transport capability.

    Revisions are "1-a", "2-b", ... per document. Inline attachments are turned
    into stubs on write, their payloads are served from the attachment URL.
    Views, lists and shows are plain Python callables registered per test.
    """

    def __init__(self, base_url: str = "http://localhost:5984/"):
        self.base_url = base_url
        self.databases: dict[str, dict[str, dict]] = {}
        self.attachments: dict[tuple[str, str, str], tuple[str, bytes]] = {}
        self.views: dict[tuple[str, str], Callable[[dict, dict], dict]] = {}
        self.lists: dict[tuple[str, str], Callable[[dict, str, dict], str]] = {}
        self.shows: dict[tuple[str, str], Callable[[dict | None, dict], Any]] = {}
        self.requests: list[dict] = []
        self._ids = itertools.count(1)

    def send(self, method, url, params=None, body=None, headers=None) -> TransportResponse:
        self.requests.append({"method": method, "url": url, "params": dict(params or {}), "body": body, "headers": dict(headers or {})})
        path = urlsplit(url).path.strip("/")
        segments = [unquote(segment) for segment in path.split("/")] if path else []
        return self._dispatch(method, segments, dict(params or {}), json.loads(body) if body else None)

    ################ routing ##################
    def _dispatch(self, method: str, segments: list[str], params: dict, body: Any) -> TransportResponse:
        if not segments:
            return _json_response(200, {"couchdb": "Welcome"})
        if segments == ["_all_dbs"]:
            return _json_response(200, sorted(self.databases))

        db, rest = segments[0], segments[1:]
        if not rest:
            return self._database(method, db, body)
        if db not in self.databases:
            return _json_response(404, {"error": "not_found", "reason": "no_db_file"})
        docs = self.databases[db]

        if rest == ["_all_docs"]:
            return self._all_docs(docs, params)
        if rest == ["_temp_view"]:
            rows = [{"id": doc_id, "key": doc_id, "value": self._user_fields(doc)} for doc_id, doc in sorted(docs.items())]
            return _json_response(200, {"total_rows": len(rows), "offset": 0, "rows": rows})
        if rest[0] == "_design" and len(rest) >= 4:
            return self._design(docs, rest[1], rest[2], rest[3:], params)

        if rest[0] == "_design":
            doc_id, attachment = "/".join(rest[:2]), rest[2:]
        else:
            doc_id, attachment = rest[0], rest[1:]
        if attachment:
            return self._attachment(db, doc_id, "/".join(attachment))
        return self._document(method, db, doc_id, params, body)

    def _database(self, method: str, db: str, body: Any) -> TransportResponse:
        if method == "PUT":
            if db in self.databases:
                return _json_response(412, {"error": "file_exists"})
            self.databases[db] = {}
            return _json_response(201, {"ok": True})
        if db not in self.databases:
            return _json_response(404, {"error": "not_found", "reason": "no_db_file"})
        if method == "DELETE":
            del self.databases[db]
            return _json_response(200, {"ok": True})
        if method == "POST":
            doc_id = body.get("_id") or f"id{next(self._ids)}"
            return self._store(db, doc_id, body)
        docs = self.databases[db]
        return _json_response(200, {"db_name": db, "doc_count": len(docs)}, headers={"Etag": f'"{len(docs)}"'})

    def _all_docs(self, docs: dict, params: dict) -> TransportResponse:
        ids = sorted(docs, reverse=params.get("descending") == "true")
        if "startkey" in params:
            start = json.loads(params["startkey"])
            ids = [i for i in ids if (i <= start if params.get("descending") == "true" else i >= start)]
        if "limit" in params:
            ids = ids[: int(params["limit"])]
        rows = [{"id": i, "key": i, "value": {"rev": docs[i]["_rev"]}} for i in ids]
        return _json_response(200, {"total_rows": len(docs), "offset": 0, "rows": rows})

    def _design(self, docs: dict, ddoc: str, kind: str, parts: list[str], params: dict) -> TransportResponse:
        if kind == "_view" and len(parts) == 1 and (ddoc, parts[0]) in self.views:
            decoded = {key: json.loads(value) for key, value in params.items()}
            return _json_response(200, self.views[(ddoc, parts[0])](docs, decoded), headers={"Etag": '"view-etag"'})
        if kind == "_list" and len(parts) == 2 and (ddoc, parts[0]) in self.lists:
            text = self.lists[(ddoc, parts[0])](docs, parts[1], params)
            return TransportResponse(status_code=200, headers={"Content-Type": "text/plain"}, body=text.encode("utf-8"))
        if kind == "_show" and len(parts) == 2 and (ddoc, parts[0]) in self.shows:
            return _json_response(200, self.shows[(ddoc, parts[0])](docs.get(parts[1]), params))
        return _json_response(404, {"error": "not_found", "reason": "missing"})

    def _attachment(self, db: str, doc_id: str, name: str) -> TransportResponse:
        if (db, doc_id, name) not in self.attachments:
            return _json_response(404, {"error": "not_found", "reason": "Document is missing attachment"})
        content_type, payload = self.attachments[(db, doc_id, name)]
        return TransportResponse(status_code=200, headers={"Content-Type": content_type}, body=payload)

    def _document(self, method: str, db: str, doc_id: str, params: dict, body: Any) -> TransportResponse:
        docs = self.databases[db]
        existing = docs.get(doc_id)
        if method == "GET":
            if existing is None:
                return _json_response(404, {"error": "not_found", "reason": "missing"})
            return _json_response(200, existing, headers={"Etag": f'"{existing["_rev"]}"'})
        if method == "PUT":
            if existing is not None and body.get("_rev") != existing["_rev"]:
                return _json_response(409, {"error": "conflict"})
            if existing is None and body.get("_rev"):
                return _json_response(409, {"error": "conflict"})
            return self._store(db, doc_id, body)
        if method == "DELETE":
            if existing is None:
                return _json_response(404, {"error": "not_found", "reason": "deleted"})
            if params.get("rev") != existing["_rev"]:
                return _json_response(409, {"error": "conflict"})
            del docs[doc_id]
            return _json_response(200, {"ok": True, "id": doc_id, "rev": _next_rev(existing["_rev"])})
        return _json_response(405, {"error": "method_not_allowed"})

    def _store(self, db: str, doc_id: str, body: dict) -> TransportResponse:
        docs = self.databases[db]
        revision = _next_rev(docs[doc_id]["_rev"] if doc_id in docs else None)
        document = {**body, "_id": doc_id, "_rev": revision}
        stubs = {}
        for name, attachment in (body.get("_attachments") or {}).items():
            if "data" in attachment:
                payload = base64.b64decode(attachment["data"])
                self.attachments[(db, doc_id, name)] = (attachment["content_type"], payload)
                stubs[name] = {"content_type": attachment["content_type"], "length": len(payload), "stub": True}
            else:
                stubs[name] = attachment
        if stubs:
            document["_attachments"] = stubs
        docs[doc_id] = document
        return _json_response(201, {"ok": True, "id": doc_id, "rev": revision}, headers={"Etag": f'"{revision}"'})

    @staticmethod
    def _user_fields(doc: dict) -> dict:
        return {key: value for key, value in doc.items() if not key.startswith("_")}


class ScriptedTransport:
    """Transport returning queued responses in order, recording every request."""

    def __init__(self):
        self.responses: list[TransportResponse | Exception] = []
        self.requests: list[dict] = []

    def add(self, status_code: int, payload: Any = None, headers: dict | None = None, raw: bytes | None = None) -> None:
        if raw is not None:
            self.responses.append(TransportResponse(status_code=status_code, headers=headers or {}, body=raw))
        else:
            self.responses.append(_json_response(status_code, payload if payload is not None else {}, headers))

    def fail_with(self, error: Exception) -> None:
        self.responses.append(error)

    def send(self, method, url, params=None, body=None, headers=None) -> TransportResponse:
        self.requests.append({"method": method, "url": url, "params": dict(params or {}), "body": body, "headers": dict(headers or {})})
        if not self.responses:
            raise AssertionError(f"Unexpected request: {method} {url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("couchmap.tests")


@pytest.fixture
def helper_config(logger) -> HelperConfig:
    return HelperConfig(logger=logger)


@pytest.fixture
def couch() -> FakeCouchTransport:
    transport = FakeCouchTransport()
    transport.databases["orders"] = {}
    return transport


@pytest.fixture
def connection(helper_config, couch) -> Connection:
    return Connection(helper_config=helper_config, transport=couch, db_name="orders")


@pytest.fixture
def scripted() -> ScriptedTransport:
    return ScriptedTransport()


@pytest.fixture
def scripted_connection(helper_config, scripted) -> Connection:
    return Connection(helper_config=helper_config, transport=scripted, db_name="orders")
