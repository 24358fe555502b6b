import ssl
import aiohttp
from http import HTTPStatus
from typing import Any, Mapping, NamedTuple, Optional, Union
from yarl import URL
from .error import TransportError

HEADERS = {
    "Accept": "*/*",
    "Connection": "close",
    "User-Agent": "authentication-operator",
}

"""Default timeout in seconds"""
TIMEOUT: float = 10


class ProbeResponse(NamedTuple):
    status: int
    reason: str
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return self.status == HTTPStatus.OK

    @property
    def status_line(self) -> str:
        return f"{self.status} {self.reason}".strip()


def build_ssl_context(ca_data: Optional[bytes] = None) -> ssl.SSLContext:
    """Build a client TLS context trusting only `ca_data`.

    Without CA data the platform's default trust store is used.

    Raises:
        TransportError: the CA data could not be loaded.
    """
    try:
        if ca_data:
            return ssl.create_default_context(cadata=ca_data.decode("utf-8"))
        return ssl.create_default_context()
    except (ssl.SSLError, ValueError, UnicodeDecodeError) as ex:
        raise TransportError(f"invalid CA data: {ex}") from ex


class SessionManager:
    """Thin wrapper around an `aiohttp.ClientSession` for TLS probes."""

    def __init__(
        self,
        headers: Optional[Mapping] = None,
        timeout: float = TIMEOUT,
        **kwargs: Any,
    ) -> None:
        merged_headers = dict(**HEADERS)
        merged_headers.update(headers or {})
        self.headers = merged_headers
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def session(self) -> aiohttp.ClientSession:
        # Created lazily so the session binds to the running event loop
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers=self.headers)
        return self._session

    async def request(
        self,
        method: str,
        url: Union[str, URL],
        ssl_context: ssl.SSLContext,
        server_hostname: Optional[str] = None,
        read_body: bool = True,
    ) -> ProbeResponse:
        """Run a single request and return its status and body.

        Args:
            method: HTTP method.
            url: The url to request.
            ssl_context: TLS context used to verify the server.
            server_hostname: Name used for SNI and certificate verification
                instead of the URL host.
            read_body: Whether to read the response body.
        Raises:
            aiohttp.ClientError: the request failed in transport.
        """
        kwargs = {
            "ssl": ssl_context,
            "timeout": aiohttp.ClientTimeout(total=self.timeout),
            "allow_redirects": False,
        }
        if server_hostname:
            kwargs["server_hostname"] = server_hostname
        async with self.session.request(method, str(url), **kwargs) as res:
            body = await res.read() if read_body else b""
            return ProbeResponse(status=res.status, reason=res.reason or "", body=body)

    async def close(self) -> None:
        """Close the underlying session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}<timeout={self.timeout}>"
