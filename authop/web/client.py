"""HTTPS client used by the readiness probes."""
from typing import Any, Optional
from yarl import URL
from .session import ProbeResponse, SessionManager, build_ssl_context

HEALTHZ_PATH = "/healthz"
WELL_KNOWN_PATH = "/.well-known/oauth-authorization-server"


class OAuthProbeClient(SessionManager):
    """Probes the OAuth server route and the API server's discovery document."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)

    async def check_route(self, host: str, ca_data: Optional[bytes]) -> ProbeResponse:
        """HEAD the route's health endpoint."""
        ssl_context = build_ssl_context(ca_data)
        url = URL.build(scheme="https", host=host, path=HEALTHZ_PATH)
        return await self.request("HEAD", url, ssl_context, read_body=False)

    async def get_well_known(
        self, address: str, ca_data: Optional[bytes], server_hostname: str
    ) -> ProbeResponse:
        """GET the discovery document served at `address` (``ip:port``)."""
        ssl_context = build_ssl_context(ca_data)
        url = well_known_url(address)
        return await self.request("GET", url, ssl_context, server_hostname=server_hostname)


def well_known_url(address: str) -> str:
    return f"https://{address}{WELL_KNOWN_PATH}"
