from couchmap.helper.HelperConfig import HelperConfig
from couchmap.clients.transport.TransportInterface import TransportInterface

DEFAULT_ENGINE = "httpx"


class TransportManager:
    """Builds the transport named by TRANSPORT_ENGINE (default "httpx").

    Engines live in couchmap.clients.transport.<engine>.Transport<Engine>.
    """

    def __init__(self, helper_config: HelperConfig, boot: bool = False):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.engine = self.helper_config.get_string_val("TRANSPORT_ENGINE", default=DEFAULT_ENGINE).lower()
        self.client = self.load_transport_class(self.engine)(helper_config=self.helper_config)
        self.logging.debug("Instantiated transport for engine: %s", self.engine)
        if boot:
            self.client.boot()

    @staticmethod
    def load_transport_class(engine: str) -> type[TransportInterface]:
        """Import the transport class of an engine.

        Raises:
            ValueError: If the engine cannot be imported or is not a TransportInterface.
        """
        class_name = f"Transport{engine.capitalize()}"
        try:
            module = __import__(f"couchmap.clients.transport.{engine}.{class_name}", fromlist=[class_name])
            transport_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise ValueError("Unsupported transport engine '%s'. Error: %s" % (engine, e))
        if not isinstance(transport_class, type) or not issubclass(transport_class, TransportInterface):
            raise ValueError(f"Transport engine '{engine}' does not provide a TransportInterface")
        return transport_class

    def get_client(self) -> TransportInterface:
        return self.client
