from abc import ABC, abstractmethod
from typing import Any

from couchmap.clients.transport.models.TransportResponse import TransportResponse
from couchmap.helper.HelperConfig import HelperConfig
from couchmap.models.config import EnvConfig


class TransportInterface(ABC):
    """Moves single HTTP requests to the database server.

    Engines declare their settings through _get_required_config(); they are read
    from TRANSPORT_<ENGINE>_<KEY> once, at construction. TRANSPORT_TIMEOUT applies
    to every engine.
    """

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self.timeout = helper_config.get_number_val(f"{self.get_client_type()}_TIMEOUT", default=30.0)
        self._config: dict[str, Any] = {}
        self.validate_full_configuration()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> None:
        """
        Reads every declared setting of the engine.

        Raises:
            ValueError: If a required setting is missing or a value cannot be parsed.
        """
        for config in self._get_required_config():
            self._config[config.env_key.upper()] = self._helper_config.get_env_config_val(config, prefix=self._get_config_prefix())

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def get_client_type(self) -> str:
        return "transport"

    def get_engine_name(self) -> str:
        """
        Returns the name of the engine in lowercase. E.g. "httpx"
        """
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        pass

    ################ CONFIG ##################
    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """
        Returns the settings of the engine, with defaults where they are optional.
        """
        pass

    def _get_config_prefix(self) -> str:
        return f"{self.get_client_type()}_{self.get_engine_name()}".upper()

    def get_config_val(self, raw_key: str) -> Any:
        """
        Returns the resolved value of a declared setting.

        Raises:
            KeyError: If the engine does not declare raw_key.
        """
        return self._config[raw_key.upper()]

    ################ AUTH ##################
    @abstractmethod
    def _get_auth_header(self) -> dict:
        """
        Returns the authentication header for the database server, empty if no credentials are set.
        """
        pass

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    @abstractmethod
    def boot(self) -> None:
        """Open the underlying HTTP client."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the underlying HTTP client."""
        pass

    @abstractmethod
    def send(
        self,
        method: str,
        url: str,
        params: dict[str, str] | None = None,
        body: str | bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> TransportResponse:
        """Perform exactly one HTTP request.

        Args:
            method: HTTP method (GET, PUT, POST, DELETE).
            url: Absolute URL, path segments already percent-encoded.
            params: Query parameters. Values are sent as given.
            body: Request body, if any.
            headers: Extra request headers.

        Returns:
            TransportResponse: Status, headers and raw body. Non-2xx statuses are returned, not raised.

        Raises:
            Exception: Network level failures of the engine propagate unchanged.
        """
        pass

    def __enter__(self) -> "TransportInterface":
        self.boot()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
