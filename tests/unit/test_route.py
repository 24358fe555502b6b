"""Unit tests for the route stage."""

import aiohttp
import asyncio
import pytest
from kubernetes_asyncio.client import ApiException, V1ConfigMap, V1Secret
from authop.resources.base import BaseResource, encode_secret_data
from authop.resources.route import (
    fetch_ingress_ca,
    handle_ingress,
    handle_route,
    prepare_route,
    route_admitted,
    router_secret_to_ca,
)
from authop.types.schemas import IngressConfigSchema
from authop.utils.errors import RouteError, SyncError

DOMAIN = "apps.example.com"
HOST = f"oauth-openshift.{DOMAIN}"
PEM = "-----BEGIN CERTIFICATE-----\nMIIB\n-----END CERTIFICATE-----\n"


def ingress(domain=DOMAIN):
    return IngressConfigSchema().load({"metadata": {"name": "cluster"}, "spec": {"domain": domain}})


def admitted_route(host=HOST):
    route = prepare_route(ingress())
    route["spec"]["host"] = host
    route["status"] = {
        "ingress": [{"host": host, "conditions": [{"type": "Admitted", "status": "True"}]}]
    }
    return route


@pytest.fixture
def res(core_v1_api, apps_v1_api, custom_objects_api):
    return BaseResource(core_v1_api, apps_v1_api, custom_objects_api)


class TestIngress:
    """Tests for handle_ingress."""

    @pytest.mark.asyncio
    async def test_missing_ingress(self, res, custom_objects_api):
        custom_objects_api.get_cluster_custom_object.side_effect = ApiException(status=404)

        with pytest.raises(SyncError, match="does not exist"):
            await handle_ingress(res)

    @pytest.mark.asyncio
    async def test_empty_domain(self, res, custom_objects_api):
        custom_objects_api.get_cluster_custom_object.return_value = {"spec": {"domain": ""}}

        with pytest.raises(SyncError, match="domain cannot be empty"):
            await handle_ingress(res)

    @pytest.mark.asyncio
    async def test_domain(self, res, custom_objects_api):
        custom_objects_api.get_cluster_custom_object.return_value = {"spec": {"domain": DOMAIN}}

        assert (await handle_ingress(res)).spec.domain == DOMAIN


class TestHandleRoute:
    """Tests for handle_route."""

    @pytest.mark.asyncio
    async def test_existing_admitted_route(self, res, custom_objects_api, core_v1_api):
        custom_objects_api.get_namespaced_custom_object.return_value = admitted_route()
        core_v1_api.read_namespaced_secret.return_value = V1Secret(data={})

        route, secret = await handle_route(res, ingress())

        assert route["spec"]["host"] == HOST
        custom_objects_api.create_namespaced_custom_object.assert_not_awaited()
        custom_objects_api.replace_namespaced_custom_object.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_route_is_created(self, res, custom_objects_api, core_v1_api):
        custom_objects_api.get_namespaced_custom_object.side_effect = ApiException(status=404)
        custom_objects_api.create_namespaced_custom_object.return_value = admitted_route()
        core_v1_api.read_namespaced_secret.return_value = V1Secret(data={})

        route, _ = await handle_route(res, ingress())

        body = custom_objects_api.create_namespaced_custom_object.await_args.args[4]
        assert body["spec"]["host"] == HOST
        assert body["spec"]["tls"]["termination"] == "passthrough"

    @pytest.mark.asyncio
    async def test_get_error(self, res, custom_objects_api):
        custom_objects_api.get_namespaced_custom_object.side_effect = ApiException(status=500)

        with pytest.raises(RouteError) as exc_info:
            await handle_route(res, ingress())

        assert exc_info.value.reason == "FailedGet"

    @pytest.mark.asyncio
    async def test_connection_failure_is_a_route_error(self, res, custom_objects_api):
        """Unreachable API server is reported on the route condition."""
        custom_objects_api.get_namespaced_custom_object.side_effect = (
            aiohttp.ClientConnectionError("connection reset")
        )

        with pytest.raises(RouteError, match="connection reset") as exc_info:
            await handle_route(res, ingress())

        assert exc_info.value.reason == "FailedGet"

    @pytest.mark.asyncio
    async def test_router_secret_timeout(self, res, custom_objects_api, core_v1_api):
        custom_objects_api.get_namespaced_custom_object.return_value = admitted_route()
        core_v1_api.read_namespaced_secret.side_effect = asyncio.TimeoutError()

        with pytest.raises(RouteError) as exc_info:
            await handle_route(res, ingress())

        assert exc_info.value.reason == "FailedRouterSecret"

    @pytest.mark.asyncio
    async def test_host_mismatch_is_replaced(self, res, custom_objects_api, core_v1_api):
        custom_objects_api.get_namespaced_custom_object.return_value = admitted_route(
            host="oauth-openshift.old.example.com"
        )
        custom_objects_api.replace_namespaced_custom_object.return_value = admitted_route()
        core_v1_api.read_namespaced_secret.return_value = V1Secret(data={})

        route, _ = await handle_route(res, ingress())

        assert route["spec"]["host"] == HOST
        custom_objects_api.replace_namespaced_custom_object.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_not_admitted(self, res, custom_objects_api):
        route = admitted_route()
        route["status"] = {}
        custom_objects_api.get_namespaced_custom_object.return_value = route

        with pytest.raises(RouteError) as exc_info:
            await handle_route(res, ingress())

        assert exc_info.value.reason == "FailedHost"

    @pytest.mark.asyncio
    async def test_router_secret_missing(self, res, custom_objects_api, core_v1_api):
        custom_objects_api.get_namespaced_custom_object.return_value = admitted_route()
        core_v1_api.read_namespaced_secret.side_effect = ApiException(status=404, reason="Not Found")

        with pytest.raises(RouteError) as exc_info:
            await handle_route(res, ingress())

        assert exc_info.value.reason == "FailedRouterSecret"

    def test_route_admitted_requires_matching_host(self):
        route = admitted_route()
        route["status"]["ingress"][0]["host"] = "other"
        assert not route_admitted(route)


class TestRouteCA:
    """Tests for router_secret_to_ca."""

    def test_router_certificate_with_ingress_ca(self):
        secret = V1Secret(data=encode_secret_data({DOMAIN: PEM}))

        ca = router_secret_to_ca(secret, ingress(), b"INGRESS-CA")

        assert ca == PEM.strip().encode() + b"\nINGRESS-CA"

    def test_non_pem_entry_is_ignored(self):
        secret = V1Secret(data=encode_secret_data({DOMAIN: "not a certificate"}))

        assert router_secret_to_ca(secret, ingress()) == b""
        assert router_secret_to_ca(secret, ingress(), b"INGRESS-CA") == b"INGRESS-CA"

    def test_other_domain_is_ignored(self):
        secret = V1Secret(data=encode_secret_data({"other.example.com": PEM}))
        assert router_secret_to_ca(secret, ingress()) == b""

    @pytest.mark.asyncio
    async def test_fetch_ingress_ca(self, res, core_v1_api):
        core_v1_api.read_namespaced_config_map.return_value = V1ConfigMap(
            data={"ca-bundle.crt": "INGRESS-CA"}
        )
        assert await fetch_ingress_ca(res) == b"INGRESS-CA"

        core_v1_api.read_namespaced_config_map.side_effect = ApiException(status=404)
        assert await fetch_ingress_ca(res) == b""
