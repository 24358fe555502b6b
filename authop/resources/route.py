"""External route of the OAuth server and the CA data needed to reach it."""
import aiohttp
import asyncio
import logging
from typing import Any, Dict, Optional, Tuple
from kubernetes_asyncio.client import ApiException, V1Secret
from authop.resources.base import BaseResource, decode_secret_data
from authop.types.models import IngressConfig, OAuthServerResources
from authop.types.schemas import IngressConfigSchema
from authop.utils.errors import RouteError, SyncError, not_found_error

logger = logging.getLogger(__name__)

ROUTE_GROUP = "route.openshift.io"
ROUTE_VERSION = "v1"
ROUTE_PLURAL = "routes"

DEFAULT_INGRESS_CERT = "default-ingress-cert"
INGRESS_CA_KEY = "ca-bundle.crt"

PEM_CERTIFICATE = b"-----BEGIN CERTIFICATE-----"

#: Failures reaching the API server, reported like rejected requests
ROUTE_ERRORS = (ApiException, aiohttp.ClientError, asyncio.TimeoutError)


def _describe(ex: Exception) -> str:
    return ex.reason if isinstance(ex, ApiException) else str(ex) or ex.__class__.__name__


async def handle_ingress(res: BaseResource) -> IngressConfig:
    """Read the cluster ingress config; a domain is required."""
    body = await res.fetch_config("ingresses")
    if body is None:
        raise SyncError("ingress.config.openshift.io/cluster does not exist")
    ingress = IngressConfigSchema().load(body)
    if not ingress.spec.domain:
        raise SyncError("ingress config domain cannot be empty")
    return ingress


def prepare_route(ingress: IngressConfig) -> Dict[str, Any]:
    return {
        "apiVersion": f"{ROUTE_GROUP}/{ROUTE_VERSION}",
        "kind": "Route",
        "metadata": {
            "name": OAuthServerResources.NAME,
            "namespace": OAuthServerResources.NAMESPACE,
            "labels": {"app": OAuthServerResources.NAME},
        },
        "spec": {
            "host": OAuthServerResources.route_host(ingress.spec.domain),
            "to": {"kind": "Service", "name": OAuthServerResources.NAME},
            "port": {"targetPort": "https"},
            "tls": {
                "termination": "passthrough",
                "insecureEdgeTerminationPolicy": "Redirect",
            },
        },
    }


def route_host(route: Dict[str, Any]) -> str:
    return (route.get("spec") or {}).get("host") or ""


def route_admitted(route: Dict[str, Any]) -> bool:
    """Whether some router admitted the route at its spec host."""
    host = route_host(route)
    for ingress in (route.get("status") or {}).get("ingress") or []:
        if ingress.get("host") != host:
            continue
        for condition in ingress.get("conditions") or []:
            if condition.get("type") == "Admitted" and condition.get("status") == "True":
                return True
    return False


async def handle_route(
    res: BaseResource, ingress: IngressConfig
) -> Tuple[Dict[str, Any], V1Secret]:
    """Get or create the route and return it with the router certificates.

    Raises:
        RouteError: with the reason to report on the RouteStatus condition.
    """
    api = res.custom_objects_api
    namespace = OAuthServerResources.NAMESPACE
    desired = prepare_route(ingress)
    try:
        route = await api.get_namespaced_custom_object(
            ROUTE_GROUP, ROUTE_VERSION, namespace, ROUTE_PLURAL, OAuthServerResources.NAME
        )
    except ROUTE_ERRORS as ex:
        if not not_found_error(ex):
            raise RouteError(f"failed to get route: {_describe(ex)}", "FailedGet") from ex
        try:
            route = await api.create_namespaced_custom_object(
                ROUTE_GROUP, ROUTE_VERSION, namespace, ROUTE_PLURAL, desired
            )
        except ROUTE_ERRORS as ex:
            raise RouteError(f"failed to create route: {_describe(ex)}", "FailedCreate") from ex
        logger.info(f"Created route {namespace}/{OAuthServerResources.NAME}")

    if route_host(route) != route_host(desired):
        route["spec"] = desired["spec"]
        try:
            route = await api.replace_namespaced_custom_object(
                ROUTE_GROUP, ROUTE_VERSION, namespace, ROUTE_PLURAL, OAuthServerResources.NAME, route
            )
        except ROUTE_ERRORS as ex:
            raise RouteError(f"failed to update route: {_describe(ex)}", "FailedCreate") from ex

    if not route_host(route):
        raise RouteError("route has no host", "FailedHost")
    if not route_admitted(route):
        raise RouteError(
            f"route is not available at canonical host {route_host(route)}", "FailedHost"
        )

    try:
        router_secret = await res.core_v1_api.read_namespaced_secret(
            name=OAuthServerResources.router_certs_name(), namespace=namespace
        )
    except ROUTE_ERRORS as ex:
        raise RouteError(
            f"secret/{OAuthServerResources.router_certs_name()} -n {namespace}: {_describe(ex)}",
            "FailedRouterSecret",
        ) from ex
    return route, router_secret


def router_secret_to_ca(
    router_secret: Optional[V1Secret], ingress: IngressConfig, ingress_ca: bytes = b""
) -> bytes:
    """CA data for the route host.

    The router certificates for the ingress domain are used when they hold a
    PEM certificate, followed by the ingress default CA.
    """
    ca_data = decode_secret_data(router_secret).get(ingress.spec.domain, b"")
    if PEM_CERTIFICATE not in ca_data:
        if ca_data:
            logger.info(
                f"router secret entry for {ingress.spec.domain} holds no certificates, ignoring it"
            )
        ca_data = b""
    if ingress_ca:
        ca_data = ca_data.strip() + b"\n" + ingress_ca if ca_data else ingress_ca
    return ca_data


async def fetch_ingress_ca(res: BaseResource) -> bytes:
    config_map = await res.fetch_config_map(
        DEFAULT_INGRESS_CERT, OAuthServerResources.MANAGED_CONFIG_NAMESPACE
    )
    if config_map is None or not config_map.data:
        return b""
    return (config_map.data.get(INGRESS_CA_KEY) or "").encode()
