import asyncio
import aiohttp
from typing import Optional
from authop.readiness.result import READY, Failed, NotReady, Outcome
from authop.utils.errors import ReadinessCheckError
from authop.web import OAuthProbeClient, TransportError

ROUTE_NOT_READY = "RouteNotReady"


def route_ca_bundle(route_ca: Optional[bytes], system_ca: Optional[bytes]) -> bytes:
    """CA data trusted when probing the route.

    The route CA comes first, followed by the system trust bundle on its own
    line when one is available.
    """
    ca_data = route_ca or b""
    if system_ca:
        ca_data = ca_data.strip() + b"\n"
    return ca_data + (system_ca or b"")


async def check_route_health(
    client: OAuthProbeClient, host: str, ca_data: bytes
) -> Outcome:
    """HEAD ``https://<host>/healthz`` and expect a 200."""
    try:
        response = await client.check_route(host, ca_data)
    except TransportError as ex:
        return Failed(
            ReadinessCheckError(f"failed to build transport for route: {ex}", "FailedTransport"),
            "FailedTransport",
        )
    except ValueError as ex:
        return Failed(
            ReadinessCheckError(f"failed to build request to route: {ex}", "FailedRequest"),
            "FailedRequest",
        )
    except (aiohttp.ClientError, asyncio.TimeoutError) as ex:
        return Failed(
            ReadinessCheckError(f"failed to GET route: {ex!r}", "FailedGet"), "FailedGet"
        )

    if not response.ok:
        return NotReady(
            ROUTE_NOT_READY,
            f"route not yet available, /healthz returns '{response.status_line}'",
        )
    return READY
