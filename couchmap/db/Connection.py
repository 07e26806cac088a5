"""Connection: maps document database operations onto single HTTP requests.

Every public operation builds one URL, sends exactly one request through the
transport and dispatches on the status code. Nothing is retried: conflicts and
unexpected statuses surface as typed errors, "not found" is either an error or
a sentinel depending on the operation.

    transport = TransportManager(helper_config).get_client()
    transport.boot()
    db = Connection(helper_config=helper_config, transport=transport, db_name="orders")
    doc = db.create({"item": "pen", "qty": 3})
    doc.set_field("qty", 5)
    doc.save()
"""

import re
from typing import Any
from urllib.parse import quote

from couchmap.clients.serializer.SerializerInterface import SerializerInterface
from couchmap.clients.serializer.json.SerializerJson import SerializerJson
from couchmap.clients.transport.TransportInterface import TransportInterface
from couchmap.clients.transport.models.TransportResponse import TransportResponse
from couchmap.db.ConnectionInterface import ConnectionInterface
from couchmap.db.exceptions import (
    DatabaseExists,
    InvalidArgument,
    NotFound,
    RevisionConflict,
    UnexpectedResponse,
    ViewNotFound,
)
from couchmap.db.models.Document import Document
from couchmap.db.models.QueryResult import QueryResult
from couchmap.db.models.ReturnMode import ReturnMode
from couchmap.helper.HelperConfig import HelperConfig

COUCH_PORT = 5984

_HOST_PATTERN = re.compile(r"^(?:[a-zA-Z0-9][a-zA-Z0-9\-]{0,62}\.)*[a-zA-Z0-9][a-zA-Z0-9\-]{0,62}$")
_HOST_MAX_LENGTH = 254
_DB_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_$()+\-/]*$")


def _send_request(
    transport: TransportInterface,
    logger,
    method: str,
    url: str,
    params: dict[str, str] | None = None,
    body: str | None = None,
    content_type: str | None = None,
) -> TransportResponse:
    """Send one request and log its outcome. Transport errors propagate unchanged."""
    headers = {"Content-Type": content_type} if body is not None and content_type else None
    response = transport.send(method, url, params=params, body=body, headers=headers)
    logger.debug("%s %s -> %d", method, url, response.status_code)
    return response


def _unexpected(logger, response: TransportResponse, url: str) -> UnexpectedResponse:
    logger.warning("Unexpected response %d from %s", response.status_code, url)
    return UnexpectedResponse(response.status_code)


class Connection(ConnectionInterface):
    def __init__(
        self,
        helper_config: HelperConfig,
        transport: TransportInterface,
        db_name: str,
        host: str = "localhost",
        port: int = COUCH_PORT,
        serializer: SerializerInterface | None = None,
    ):
        """Create a connection to one database. No request is sent.

        Raises:
            InvalidArgument: If host, port or db_name are malformed.
        """
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self._transport = transport
        self._serializer = serializer or SerializerJson()
        self._db_name = db_name
        self._db_url = self.make_db_url(db_name, host, port)
        self._last_etag: str | None = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._db_url})"

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_url(self) -> str:
        return self._db_url

    def get_db_name(self) -> str:
        return self._db_name

    def get_serializer(self) -> SerializerInterface:
        return self._serializer

    def get_transport(self) -> TransportInterface:
        return self._transport

    def get_last_etag(self) -> str | None:
        """Returns the Etag of the last successful response that carried one, without quotes."""
        return self._last_etag

    ##########################################
    ############# URL BUILDING ###############
    ##########################################

    @staticmethod
    def make_url(host: str, port: int | str, path: str = "") -> str:
        """Validate host and port and build "http://host:port/path".

        Raises:
            InvalidArgument: If host is not a valid DNS name or port is outside of 1..65535.
        """
        if not isinstance(host, str) or len(host) > _HOST_MAX_LENGTH or not _HOST_PATTERN.match(host):
            raise InvalidArgument(f"Invalid host name: '{host}'")
        if isinstance(port, bool):
            raise InvalidArgument(f"Invalid db port: '{port}'")
        try:
            port = int(port)
        except (TypeError, ValueError):
            raise InvalidArgument(f"Invalid db port: '{port}'")
        if port < 0x1 or port > 0xFFFF:
            raise InvalidArgument(f"Invalid db port: '{port}'")
        return f"http://{host}:{port}/{path}"

    @classmethod
    def make_db_url(cls, db_name: str, host: str, port: int | str) -> str:
        """Validate the database name and build its base URL, ending with "/".

        Raises:
            InvalidArgument: If db_name, host or port are malformed.
        """
        if not isinstance(db_name, str) or not _DB_NAME_PATTERN.match(db_name):
            raise InvalidArgument(f"Invalid db name: '{db_name}'")
        return cls.make_url(host, port, db_name.replace("/", "%2F") + "/")

    @staticmethod
    def encode_doc_path(path: str | list[str] | tuple) -> str:
        """Percent-encode a document path.

        A string is encoded as a single segment. A list is encoded segment by
        segment and joined with literal "/", which addresses design documents
        and attachments (e.g. ["_design", "orders"]).
        """
        if isinstance(path, (list, tuple)):
            return "/".join(quote(str(segment), safe="") for segment in path)
        return quote(str(path), safe="")

    def _document_url(self, doc_id: Any) -> str:
        if not isinstance(doc_id, str):
            doc_id = self._serializer.encode(doc_id)
        return self._db_url + quote(doc_id, safe="")

    def _design_url(self, design_doc: str, *parts: str) -> str:
        return self._db_url + self.encode_doc_path(["_design", design_doc, *parts])

    ##########################################
    ############### REQUESTS #################
    ##########################################

    def _do_request(self, method: str, url: str, params: dict[str, str] | None = None, body: Any = None) -> TransportResponse:
        encoded = self._serializer.encode(body) if body is not None else None
        return _send_request(
            self._transport,
            self.logging,
            method,
            url,
            params=params,
            body=encoded,
            content_type=self._serializer.get_content_type(),
        )

    def _remember_etag(self, response: TransportResponse) -> None:
        etag = response.get_header("Etag")
        if etag:
            self._last_etag = etag.strip().strip('"')

    def _decode(self, response: TransportResponse) -> Any:
        return self._serializer.decode(response.get_text())

    def _encode_params(self, params: dict | None) -> dict[str, str]:
        return {key: self._serializer.encode(value) for key, value in (params or {}).items()}

    ################ DATABASE ##################
    def get_info(self) -> dict:
        """Get information about the database (doc count, update sequence, ...).

        Raises:
            NotFound: If the database does not exist.
            UnexpectedResponse: On any other non-200 status.
        """
        response = self._do_request("GET", self._db_url)
        if response.status_code == 200:
            self._remember_etag(response)
            return self._decode(response)
        elif response.status_code == 404:
            raise NotFound(f"Database '{self._db_name}' does not exist")
        raise _unexpected(self.logging, response, self._db_url)

    def get_all_documents(self, start_key: Any = None, limit: int | None = None, descending: bool = False) -> list[dict]:
        """List the rows of _all_docs ({id, key, value: {rev}}).

        Args:
            start_key (Any): Key to start from.
            limit (int | None): Maximum number of rows.
            descending (bool): Reverse order.

        Raises:
            NotFound: If the database does not exist.
            UnexpectedResponse: On any other non-200 status.
        """
        params: dict[str, str] = {}
        if start_key is not None:
            params["startkey"] = self._serializer.encode(start_key)
        if limit is not None:
            params["limit"] = str(int(limit))
        if descending:
            params["descending"] = "true"

        url = self._db_url + "_all_docs"
        response = self._do_request("GET", url, params=params)
        if response.status_code == 200:
            self._remember_etag(response)
            return self._decode(response).get("rows", [])
        elif response.status_code == 404:
            raise NotFound(f"Database '{self._db_name}' does not exist")
        raise _unexpected(self.logging, response, url)

    ################ DOCUMENTS ##################
    def create(self, data: dict, doc: str | list[str] | None = None) -> Document:
        """Create a new document and return it bound to this connection.

        Args:
            data (dict): The document fields.
            doc (str | list[str] | None): Explicit id (or path segments, or a full
                "http://" or "https://" URL) to PUT the document at. Without it the document is
                POSTed and the server assigns the id.

        Raises:
            UnexpectedResponse: On any status but 201.
        """
        if doc:
            if isinstance(doc, str) and doc.startswith(("http://", "https://")):
                url = doc
            else:
                url = self._db_url + self.encode_doc_path(doc)
            response = self._do_request("PUT", url, body=data)
        else:
            url = self._db_url
            response = self._do_request("POST", url, body=data)

        if response.status_code == 201:
            self._remember_etag(response)
            result = self._decode(response)
            document_data = dict(data)
            document_data["_id"] = result["id"]
            document_data["_rev"] = result["rev"]
            return Document(document_data, self._document_url(result["id"]), self)
        raise _unexpected(self.logging, response, url)

    def fetch(
        self,
        doc: str | list[str],
        document_type: type = Document,
        rev: str | None = None,
        full: bool = False,
    ) -> Document | None:
        """Retrieve a document.

        Args:
            doc (str | list[str]): Document id, or path segments.
            document_type (type): Document subclass to instantiate.
            rev (str | None): Specific revision to retrieve.
            full (bool): Ask for the full document.

        Returns:
            Document | None: The document, or None if it does not exist.

        Raises:
            InvalidArgument: If document_type is not a Document subclass.
            UnexpectedResponse: On any status but 200 and 404.
        """
        if not isinstance(document_type, type) or not issubclass(document_type, Document):
            raise InvalidArgument(f"Class {document_type!r} is expected to extend Document")

        url = self._db_url + self.encode_doc_path(doc)
        params: dict[str, str] = {}
        if rev is not None:
            params["rev"] = rev
        if full:
            params["full"] = "true"

        response = self._do_request("GET", url, params=params)
        if response.status_code == 200:
            self._remember_etag(response)
            return document_type(self._decode(response), url, self)
        elif response.status_code == 404:
            return None
        raise _unexpected(self.logging, response, url)

    def update(self, data: Document | dict, url: str | None = None) -> str:
        """Store a modified document and return its new revision.

        A Document passed in gets its revision refreshed on success. A dict has
        to carry "_id" (unless url is given) and "_rev".

        Raises:
            InvalidArgument: If data has no known URL/id or no revision, or is neither a dict nor a Document.
            RevisionConflict: If the revision is not the current one (HTTP 409).
            UnexpectedResponse: On any other status but 201.
        """
        document = None
        if isinstance(data, Document):
            document = data
            payload = data.to_dict(metadata=True)
            if not url:
                url = data.get_url()
        elif isinstance(data, dict):
            payload = dict(data)
        else:
            raise InvalidArgument("Data is expected to be either a dict or a Document")

        if not url and payload.get("_id") is not None:
            url = self._document_url(payload["_id"])
        if not url:
            raise InvalidArgument("Unable to update a document without a known URL")
        if not payload.get("_rev"):
            raise InvalidArgument("Unable to update a document without a known revision")

        response = self._do_request("PUT", url, body=payload)
        if response.status_code == 201:
            self._remember_etag(response)
            revision = self._decode(response)["rev"]
            if document is not None:
                document.adopt_revision(revision)
            return revision
        elif response.status_code == 409:
            self.logging.warning("Revision conflict updating %s (revision %s)", url, payload["_rev"])
            raise RevisionConflict()
        raise _unexpected(self.logging, response, url)

    def delete(self, doc: str | list[str], rev: str) -> bool:
        """Delete a document.

        Returns:
            bool: True if deleted, False if the document does not exist.

        Raises:
            InvalidArgument: If no revision is given.
            UnexpectedResponse: On any status but 200 and 404.
        """
        if not rev:
            raise InvalidArgument("Unable to delete a document without a known revision")
        url = self._db_url + self.encode_doc_path(doc)
        response = self._do_request("DELETE", url, params={"rev": rev})
        if response.status_code == 200:
            self._remember_etag(response)
            return True
        elif response.status_code == 404:
            return False
        raise _unexpected(self.logging, response, url)

    def fetch_attachment(self, url: str, name: str) -> tuple[str | None, bytes]:
        """Fetch an attachment of the document at url.

        Returns:
            tuple[str | None, bytes]: Content type (if sent) and payload.

        Raises:
            NotFound: If the document or attachment does not exist.
            UnexpectedResponse: On any other status but 200.
        """
        attachment_url = url.rstrip("/") + "/" + self.encode_doc_path(name)
        response = _send_request(self._transport, self.logging, "GET", attachment_url)
        if response.status_code == 200:
            self._remember_etag(response)
            return response.get_header("Content-Type"), response.body
        elif response.status_code == 404:
            raise NotFound(f"Attachment '{name}' does not exist at {url}")
        raise _unexpected(self.logging, response, attachment_url)

    ################ VIEWS ##################
    def query_view(
        self,
        design_doc: str,
        view: str,
        params: dict | None = None,
        return_mode: ReturnMode | None = None,
    ) -> QueryResult:
        """Query a view of a design document.

        Args:
            design_doc (str): Design document name, without "_design/".
            view (str): View name.
            params (dict | None): View parameters (key, startkey, limit, include_docs, ...).
                Every value is serializer-encoded, so strings end up quoted.
            return_mode (ReturnMode | None): How rows are materialized. Defaults to raw.

        Raises:
            ViewNotFound: If the design document or view does not exist.
            UnexpectedResponse: On any other status but 200.
        """
        url = self._design_url(design_doc, "_view", view)
        response = self._do_request("GET", url, params=self._encode_params(params))
        if response.status_code == 200:
            self._remember_etag(response)
            return QueryResult(self._decode(response), return_mode or ReturnMode.raw(), self, self._serializer)
        elif response.status_code == 404:
            raise ViewNotFound(f"View document '{design_doc}/{view}' does not exist")
        raise _unexpected(self.logging, response, url)

    def query_ad_hoc(self, view: dict, params: dict | None = None, return_mode: ReturnMode | None = None) -> QueryResult:
        """Run a temporary view from its definition (e.g. {"map": "function(doc) {...}"}).

        Raises:
            UnexpectedResponse: On any status but 200.
        """
        url = self._db_url + "_temp_view"
        response = self._do_request("POST", url, params=self._encode_params(params), body=view)
        if response.status_code == 200:
            self._remember_etag(response)
            return QueryResult(self._decode(response), return_mode or ReturnMode.raw(), self, self._serializer)
        raise _unexpected(self.logging, response, url)

    def call_list(self, design_doc: str, list_name: str, view: str, params: dict | None = None) -> str:
        """Render a view through a list function and return the raw body.

        Parameters are passed as they are, without encoding.

        Raises:
            ViewNotFound: If the list function does not exist.
            UnexpectedResponse: On any other status but 200.
        """
        url = self._design_url(design_doc, "_list", list_name, view)
        params = {key: str(value) for key, value in (params or {}).items()}
        response = self._do_request("GET", url, params=params)
        if response.status_code == 200:
            self._remember_etag(response)
            return response.get_text()
        elif response.status_code == 404:
            raise ViewNotFound(f"List function '{design_doc}/{list_name}' does not exist")
        raise _unexpected(self.logging, response, url)

    def call_show(self, design_doc: str, show: str, doc_id: str, params: dict | None = None) -> Any:
        """Render a document through a show function and return the decoded body.

        Parameters are passed as they are, without encoding.

        Raises:
            ViewNotFound: If the show function does not exist.
            UnexpectedResponse: On any other status but 200.
        """
        url = self._design_url(design_doc, "_show", show, doc_id)
        params = {key: str(value) for key, value in (params or {}).items()}
        response = self._do_request("GET", url, params=params)
        if response.status_code == 200:
            self._remember_etag(response)
            return self._decode(response)
        elif response.status_code == 404:
            raise ViewNotFound(f"Show function '{design_doc}/{show}' does not exist")
        raise _unexpected(self.logging, response, url)

    ##########################################
    ############ SERVER ADMIN ################
    ##########################################

    @classmethod
    def create_database(
        cls,
        helper_config: HelperConfig,
        transport: TransportInterface,
        db_name: str,
        host: str = "localhost",
        port: int = COUCH_PORT,
        serializer: SerializerInterface | None = None,
    ) -> "Connection":
        """Create a database and return a connection to it.

        Raises:
            InvalidArgument: If db_name, host or port are malformed.
            DatabaseExists: If the database already exists (HTTP 412).
            UnexpectedResponse: On any other status but 201.
        """
        logger = helper_config.get_logger()
        url = cls.make_db_url(db_name, host, port)
        response = _send_request(transport, logger, "PUT", url)
        if response.status_code == 201:
            logger.info("Created database '%s' on %s:%s", db_name, host, port)
            return cls(helper_config=helper_config, transport=transport, db_name=db_name, host=host, port=port, serializer=serializer)
        elif response.status_code == 412:
            raise DatabaseExists(db_name)
        raise _unexpected(logger, response, url)

    @classmethod
    def delete_database(
        cls,
        helper_config: HelperConfig,
        transport: TransportInterface,
        db_name: str,
        host: str = "localhost",
        port: int = COUCH_PORT,
    ) -> bool:
        """Delete a database.

        Raises:
            InvalidArgument: If db_name, host or port are malformed.
            NotFound: If the database does not exist.
            UnexpectedResponse: On any other status but 200.
        """
        logger = helper_config.get_logger()
        url = cls.make_db_url(db_name, host, port)
        response = _send_request(transport, logger, "DELETE", url)
        if response.status_code == 200:
            logger.info("Deleted database '%s' on %s:%s", db_name, host, port)
            return True
        elif response.status_code == 404:
            raise NotFound(f"Database '{db_name}' does not exist")
        raise _unexpected(logger, response, url)

    @classmethod
    def list_databases(
        cls,
        helper_config: HelperConfig,
        transport: TransportInterface,
        host: str = "localhost",
        port: int = COUCH_PORT,
        serializer: SerializerInterface | None = None,
    ) -> list[str]:
        """List all database names on a server.

        Raises:
            InvalidArgument: If host or port are malformed.
            UnexpectedResponse: On any status but 200.
        """
        logger = helper_config.get_logger()
        url = cls.make_url(host, port, "_all_dbs")
        response = _send_request(transport, logger, "GET", url)
        if response.status_code == 200:
            return (serializer or SerializerJson()).decode(response.get_text())
        raise _unexpected(logger, response, url)
