"""Central configuration helper for couchmap."""

import logging
import os
from typing import Any, Callable

from couchmap.models.config import EnvConfig

_TRUE_VALUES = ("true", "1", "yes", "on")
_FALSE_VALUES = ("false", "0", "no", "off")


class HelperConfig:
    """Reads couchmap settings from environment variables.

    Keys are case-insensitive and looked up in upper case. An empty variable
    counts as unset; an unset variable without a default raises ValueError.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    ##########################################
    ############### TYPED VALUES #############
    ##########################################

    def get_string_val(self, key: str, default: str | None = None) -> str:
        """Read a string environment variable, surrounding whitespace removed.

        Raises:
            ValueError: If the variable is not set and no default is provided.
        """
        return self._resolve(key, default, lambda raw: raw)

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """Read a numeric environment variable. "5984" gives an int, "2.5" a float.

        Raises:
            ValueError: If the variable is not set and no default is provided,
                or if the value is not a number.
        """

        def parse(raw: str) -> float | int:
            try:
                return float(raw) if "." in raw else int(raw)
            except ValueError:
                raise ValueError(f"Environment variable '{key.upper()}' is not a valid number: '{raw}'.")

        return self._resolve(key, default, parse)

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        """Read a boolean environment variable (true/1/yes/on, false/0/no/off).

        Raises:
            ValueError: If the variable is not set and no default is provided,
                or if the value is none of the accepted words.
        """

        def parse(raw: str) -> bool:
            if raw.lower() in _TRUE_VALUES:
                return True
            if raw.lower() in _FALSE_VALUES:
                return False
            raise ValueError(f"Environment variable '{key.upper()}' is not a valid boolean: '{raw}'.")

        return self._resolve(key, default, parse)

    def get_list_val(self, key: str, default: list | None = None, separator: str = ",", element_type: type = str) -> list:
        """Read a list environment variable written as "[elem1,elem2,...]".

        Empty elements are skipped, "[]" is an empty list.

        Raises:
            ValueError: If the variable is not set and no default is provided,
                if the brackets are missing or an element cannot be cast to element_type.
        """

        def parse(raw: str) -> list:
            if not raw.startswith("[") or not raw.endswith("]"):
                raise ValueError(f"Environment variable '{key.upper()}' must be in the format '[elem1{separator}elem2{separator}...]'. Got: '{raw}'")
            elements = [part.strip() for part in raw[1:-1].split(separator) if part.strip()]
            try:
                return [element_type(element) for element in elements]
            except ValueError as e:
                raise ValueError(f"Environment variable '{key.upper()}' contains invalid elements: {e}. Type set to {element_type.__name__}. Got: '{raw}'")

        return self._resolve(key, default, parse)

    def get_env_config_val(self, config: EnvConfig, prefix: str = "") -> Any:
        """Resolve a declared configuration key.

        Args:
            config (EnvConfig): The key declaration. Its env_key is appended to prefix.
            prefix (str): Key prefix, e.g. "TRANSPORT_HTTPX".

        Raises:
            ValueError: If the value is missing or invalid, or val_type is unsupported.
        """
        key = f"{prefix}_{config.env_key}" if prefix else config.env_key
        readers: dict[str, Callable[..., Any]] = {
            "string": self.get_string_val,
            "number": self.get_number_val,
            "bool": self.get_bool_val,
            "list": self.get_list_val,
        }
        if config.val_type not in readers:
            raise ValueError(f"Unsupported config value type '{config.val_type}' for env key '{key.upper()}'.")
        return readers[config.val_type](key, default=config.default)

    ##########################################
    ############## CONNECTIONS ###############
    ##########################################

    def get_connection_names(self) -> list[str]:
        """Names listed in COUCH_CONNECTIONS, e.g. "[default,archive]". Empty if unset."""
        return self.get_list_val("COUCH_CONNECTIONS", default=[])

    def get_connection_settings(self, name: str, default_port: int) -> dict[str, Any]:
        """Read host, port and database of one named connection.

        COUCH_<NAME>_HOST defaults to "localhost", COUCH_<NAME>_PORT to
        default_port and COUCH_<NAME>_DATABASE to the name itself.
        """
        prefix = f"COUCH_{name.upper()}"
        return {
            "host": self.get_string_val(f"{prefix}_HOST", default="localhost"),
            "port": self.get_number_val(f"{prefix}_PORT", default=default_port),
            "db_name": self.get_string_val(f"{prefix}_DATABASE", default=name),
        }

    def get_logger(self) -> logging.Logger:
        return self._logger

    ##########################################
    ############### INTERNAL #################
    ##########################################

    def _resolve(self, key: str, default: Any, parse: Callable[[str], Any]) -> Any:
        raw = (os.getenv(key.upper()) or "").strip()
        if raw:
            return parse(raw)
        if default is None:
            raise ValueError(f"Environment variable '{key.upper()}' is not set.")
        return default
