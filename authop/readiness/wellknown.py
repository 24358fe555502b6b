"""Checks the API server serves the expected OAuth discovery document.

Every ready API server endpoint is queried directly by IP, with the
certificate verified against the service account CA under the
``kubernetes.default.svc`` name.
"""
import asyncio
import ipaddress
import json
import logging
import aiohttp
from typing import List, Optional
from kubernetes_asyncio.client import (
    ApiException,
    CoreV1Api,
    V1EndpointSubset,
    V1Endpoints,
    V1Service,
)
from authop.readiness.result import READY, Failed, NotReady, Outcome
from authop.resources.metadata import get_metadata
from authop.types.models import AuthenticationConfig
from authop.utils.errors import EndpointsNotReadyError, ReadinessCheckError
from authop.utils.helpers import deep_compare_dict
from authop.web import OAuthProbeClient, TransportError
from authop.web.client import well_known_url

logger = logging.getLogger(__name__)

WELL_KNOWN_NOT_READY = "WellKnownNotReady"

KAS_SERVICE_NAME = "kubernetes"
KAS_SERVICE_NAMESPACE = "default"
KAS_SERVICE_HOSTNAME = "kubernetes.default.svc"

TCP = "TCP"


def join_host_port(host: str, port: int) -> str:
    try:
        if ipaddress.ip_address(host).version == 6:
            return f"[{host}]:{port}"
    except ValueError:
        pass
    return f"{host}:{port}"


def kas_target_port(service: V1Service, service_port: int) -> Optional[int]:
    """Target port behind the API server service port `service_port`."""
    for port in (service.spec.ports if service.spec else None) or []:
        target = port.target_port
        if isinstance(target, str):
            target = int(target) if target.isdigit() else 0
        if target and (port.protocol or TCP) == TCP and port.port == service_port:
            return target
    return None


def subset_has_port(subset: V1EndpointSubset, target_port: int) -> bool:
    return any(
        (port.protocol or TCP) == TCP and port.port == target_port
        for port in subset.ports or []
    )


def api_server_addresses(
    service: V1Service, endpoints: V1Endpoints, service_port: int
) -> List[str]:
    """Resolve ``ip:port`` of every ready API server endpoint.

    Raises:
        ReadinessCheckError: the target port could not be resolved.
        EndpointsNotReadyError: the serving subset has not-ready addresses
            or no ready ones.
    """
    target_port = kas_target_port(service, service_port)
    if target_port is None:
        raise ReadinessCheckError(
            f"unable to find kube api server service target port for port {service_port}"
        )

    for subset in endpoints.subsets or []:
        if not subset_has_port(subset, target_port):
            continue
        if subset.not_ready_addresses or not subset.addresses:
            raise EndpointsNotReadyError(
                f"kube api server endpoints is not ready: "
                f"{len(subset.addresses or [])} ready, "
                f"{len(subset.not_ready_addresses or [])} not ready"
            )
        return [join_host_port(address.ip, target_port) for address in subset.addresses]

    raise ReadinessCheckError(
        f"unable to find kube api server endpoints port {target_port}"
    )


def read_ca_file(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


async def check_well_known_endpoint(
    client: OAuthProbeClient, address: str, ca_data: bytes, host: str
) -> Outcome:
    url = well_known_url(address)
    try:
        response = await client.get_well_known(address, ca_data, KAS_SERVICE_HOSTNAME)
    except TransportError as ex:
        return Failed(ReadinessCheckError(f"failed to build transport for SA ca.crt: {ex}"))
    except ValueError as ex:
        return Failed(ReadinessCheckError(f"failed to build request to well-known {url}: {ex}"))
    except (aiohttp.ClientError, asyncio.TimeoutError) as ex:
        return Failed(ReadinessCheckError(f"failed to GET well-known {url}: {ex!r}"))

    if not response.ok:
        return NotReady(
            WELL_KNOWN_NOT_READY,
            f"got '{response.status_line}' status while trying to GET the OAuth "
            f"well-known {url} endpoint data",
        )

    try:
        received = json.loads(response.body)
    except (ValueError, UnicodeDecodeError) as ex:
        return Failed(ReadinessCheckError(f"failed to unmarshal well-known {url} JSON: {ex}"))
    if not isinstance(received, dict):
        return Failed(
            ReadinessCheckError(f"failed to unmarshal well-known {url} JSON: not an object")
        )

    if not deep_compare_dict(get_metadata(host), received):
        return NotReady(
            WELL_KNOWN_NOT_READY,
            f"the value returned by the well-known {url} endpoint does not match expectations",
        )
    return READY


async def check_well_known_ready(
    client: OAuthProbeClient,
    core_v1_api: CoreV1Api,
    auth_config: AuthenticationConfig,
    host: str,
    service_port: int,
    service_account_ca_path: str,
) -> Outcome:
    """Probe the discovery document on all API server endpoints.

    Skipped when the cluster uses an external metadata document or a non
    integrated authentication type. Endpoints are queried in order and the
    first one that is not ready is reported.
    """
    if auth_config.spec.oauth_metadata_name or not auth_config.integrated:
        return READY

    try:
        ca_data = read_ca_file(service_account_ca_path)
    except OSError as ex:
        return Failed(ReadinessCheckError(f"failed to read SA ca.crt: {ex}"))

    try:
        service = await core_v1_api.read_namespaced_service(
            name=KAS_SERVICE_NAME, namespace=KAS_SERVICE_NAMESPACE
        )
        endpoints = await core_v1_api.read_namespaced_endpoints(
            name=KAS_SERVICE_NAME, namespace=KAS_SERVICE_NAMESPACE
        )
        addresses = api_server_addresses(service, endpoints, service_port)
    except ApiException as ex:
        return Failed(
            ReadinessCheckError(f"failed to get API server IPs: {ex.status} {ex.reason}")
        )
    except ReadinessCheckError as ex:
        return Failed(ex)

    for address in addresses:
        outcome = await check_well_known_endpoint(client, address, ca_data, host)
        if not outcome.ready:
            logger.debug(f"well-known endpoint {address} not ready: {outcome.message}")
            return outcome
    return READY
