import base64

import httpx

from couchmap.clients.transport.TransportInterface import TransportInterface
from couchmap.clients.transport.models.TransportResponse import TransportResponse
from couchmap.helper.HelperConfig import HelperConfig
from couchmap.models.config import EnvConfig


class TransportHttpx(TransportInterface):
    def __init__(self, helper_config: HelperConfig, http_transport: httpx.BaseTransport | None = None):
        super().__init__(helper_config=helper_config)
        self._verify_tls = self.get_config_val("VERIFY_TLS")
        self._user_agent = self.get_config_val("USER_AGENT")
        self._username = self.get_config_val("USERNAME")
        self._password = self.get_config_val("PASSWORD")

        # a custom httpx transport replaces the network layer (e.g. httpx.MockTransport)
        self._http_transport = http_transport
        self._client: httpx.Client | None = None

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Httpx"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="VERIFY_TLS", val_type="bool", default=True),
            EnvConfig(env_key="USER_AGENT", val_type="string", default="couchmap"),
            EnvConfig(env_key="USERNAME", val_type="string", default=""),
            EnvConfig(env_key="PASSWORD", val_type="string", default=""),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._username:
            token = base64.b64encode(f"{self._username}:{self._password}".encode("utf-8")).decode("ascii")
            return {"Authorization": f"Basic {token}"}
        else:
            return {}

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    def boot(self) -> None:
        """Initialise the HTTP client."""
        self._client = httpx.Client(
            timeout=self.timeout,
            verify=self._verify_tls,
            transport=self._http_transport,
            headers={"User-Agent": self._user_agent, "Accept": "application/json"},
        )

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            self._client.close()
            self._client = None

    def send(
        self,
        method: str,
        url: str,
        params: dict[str, str] | None = None,
        body: str | bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> TransportResponse:
        if self._client is None:
            raise RuntimeError("HTTP client not initialised. Call boot() before making requests.")

        request_headers: dict = {}
        request_headers.update(self._get_auth_header())
        if headers:
            request_headers.update(headers)

        response = self._client.request(
            method.upper(),
            url,
            params=params or None,
            content=body,
            headers=request_headers,
        )
        return TransportResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=response.content,
        )
