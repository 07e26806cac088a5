from couchmap.clients.serializer.SerializerInterface import SerializerInterface
from couchmap.clients.transport.TransportInterface import TransportInterface
from couchmap.db.Connection import COUCH_PORT, Connection
from couchmap.db.exceptions import InvalidArgument
from couchmap.helper.HelperConfig import HelperConfig

DEFAULT_CONNECTION = "default"


class ConnectionManager:
    """
    Registry of named database connections sharing one transport.

    The manager is owned by the application's composition root; there is no
    global registry.
    """

    def __init__(self, helper_config: HelperConfig, transport: TransportInterface, serializer: SerializerInterface | None = None):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self._transport = transport
        self._serializer = serializer
        self.connections: dict[str, Connection] = {}

    def load_from_env(self) -> dict[str, Connection]:
        """
        Creates a connection for every name listed in COUCH_CONNECTIONS.

        Per name, COUCH_<NAME>_HOST (default "localhost"), COUCH_<NAME>_PORT
        (default 5984) and COUCH_<NAME>_DATABASE (default the name itself) are read.

        Returns:
            dict[str, Connection]: All registered connections.

        Raises:
            InvalidArgument: If a name is registered twice or its settings are malformed.
        """
        for name in self.helper_config.get_connection_names():
            self.new_connection(name=name, **self.helper_config.get_connection_settings(name, default_port=COUCH_PORT))
        return self.get_connections()

    def new_connection(self, name: str, host: str = "localhost", port: int = COUCH_PORT, db_name: str | None = None) -> Connection:
        """
        Creates a new connection, registers it under name and returns it.

        Args:
            name (str): Registry name.
            host (str): Database host.
            port (int): Database port.
            db_name (str | None): Database name. Defaults to name.

        Raises:
            InvalidArgument: If name is already registered or the connection settings are malformed.
        """
        if name in self.connections:
            raise InvalidArgument(f"Connection '{name}' already exists")
        connection = Connection(
            helper_config=self.helper_config,
            transport=self._transport,
            db_name=db_name if db_name is not None else name,
            host=host,
            port=port,
            serializer=self._serializer,
        )
        self.connections[name] = connection
        self.logging.debug("Registered connection '%s' -> %s", name, connection.get_url())
        return connection

    def get_connection(self, name: str) -> Connection:
        """
        Returns the connection registered under name.

        Raises:
            InvalidArgument: If no such connection exists.
        """
        if name not in self.connections:
            raise InvalidArgument(f"Connection '{name}' does not exist")
        return self.connections[name]

    def get_default_connection(self) -> Connection:
        return self.get_connection(DEFAULT_CONNECTION)

    def get_connections(self) -> dict[str, Connection]:
        """Returns a copy of the name -> connection mapping."""
        return dict(self.connections)
