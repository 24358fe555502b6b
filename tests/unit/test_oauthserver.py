"""Unit tests for the OAuth server reconciliation cycle."""

import aiohttp
import pytest
from unittest.mock import AsyncMock, Mock, patch
from kubernetes_asyncio.client import (
    ApiException,
    V1Deployment,
    V1DeploymentStatus,
    V1ObjectMeta,
    V1Secret,
)
from authop.common.models import VersionFingerprint
from authop.readiness import READY, Failed, NotReady
from authop.resources.bootstrap import BootstrapRolloutState
from authop.resources.oauthconfig import ConfigSyncData
from authop.resources.oauthserver import OAuthServer, set_version
from authop.status import find_condition
from authop.types.schemas import AuthenticationConfigSchema, IngressConfigSchema
from authop.utils.errors import ReadinessCheckError, RouteError, SyncError

MODULE = "authop.resources.oauthserver"
HOST = "oauth-openshift.apps.example.com"
NAMESPACE = "openshift-authentication"


def operator_body(generation=3, observed_generation=2, management_state="Managed", status=None):
    body_status = {"observedGeneration": observed_generation}
    body_status.update(status or {})
    return {
        "apiVersion": "operator.openshift.io/v1",
        "kind": "Authentication",
        "metadata": {"name": "cluster", "generation": generation, "resourceVersion": "100"},
        "spec": {"managementState": management_state},
        "status": body_status,
    }


def deployment(generation=5, replicas=2, updated=2, available=2):
    return V1Deployment(
        metadata=V1ObjectMeta(name="oauth-openshift", namespace=NAMESPACE, generation=generation),
        status=V1DeploymentStatus(
            observed_generation=generation,
            replicas=replicas,
            updated_replicas=updated,
            available_replicas=available,
        ),
    )


def persisted_condition(updater, type_):
    return find_condition(updater.current.get("conditions"), type_)


@pytest.fixture
def pipeline():
    """Every stage collaborator replaced with a succeeding stand-in."""
    mocks = dict(
        handle_ingress=AsyncMock(
            return_value=IngressConfigSchema().load({"spec": {"domain": "apps.example.com"}})
        ),
        handle_route=AsyncMock(return_value=({"spec": {"host": HOST}}, V1Secret(data={}))),
        handle_auth_config=AsyncMock(
            return_value=AuthenticationConfigSchema().load({"spec": {"type": "IntegratedOAuth"}})
        ),
        fetch_ingress_ca=AsyncMock(return_value=b""),
        handle_service_ca=AsyncMock(),
        expected_session_secret=AsyncMock(return_value=V1Secret()),
        handle_console_config=AsyncMock(return_value=Mock()),
        handle_infrastructure_config=AsyncMock(return_value=Mock()),
        handle_api_server_config=AsyncMock(return_value=Mock()),
        handle_oauth_config=AsyncMock(return_value=Mock()),
        prepare_cli_config=Mock(return_value=({"kind": "OsinServerConfig"}, ConfigSyncData())),
        handle_config_sync=AsyncMock(),
        ensure_bootstrapped_oauth_clients=AsyncMock(),
        handle_proxy_config=AsyncMock(return_value=Mock()),
        prepare_deployment=Mock(
            return_value=V1Deployment(
                metadata=V1ObjectMeta(name="oauth-openshift", namespace=NAMESPACE)
            )
        ),
        check_route_health=AsyncMock(return_value=READY),
        check_well_known_ready=AsyncMock(return_value=READY),
        check_oauth_clients_ready=AsyncMock(return_value=READY),
    )
    with patch.multiple(MODULE, **mocks):
        yield mocks


@pytest.fixture
def sensor():
    return Mock()


@pytest.fixture
def server(settings, core_v1_api, apps_v1_api, custom_objects_api, probe_client, status_updater, sensor):
    server = OAuthServer(
        settings,
        core_v1_api,
        apps_v1_api,
        custom_objects_api,
        probe_client,
        status_updater=status_updater,
        sensor=sensor,
        system_ca_bundle=b"SYSTEM",
    )
    server.apply_config_map = AsyncMock(return_value=(None, False))
    server.apply_service = AsyncMock(return_value=(None, False))
    server.apply_secret = AsyncMock(return_value=(None, False))
    server.apply_deployment = AsyncMock(return_value=(deployment(), True))
    server.resource_versions = AsyncMock(return_value=VersionFingerprint())
    return server


class TestSyncHappyPath:
    """A cycle where every stage succeeds."""

    @pytest.mark.asyncio
    async def test_unmanaged_is_skipped(self, server, pipeline, status_updater):
        await server.sync(operator_body(management_state="Unmanaged"), BootstrapRolloutState())

        pipeline["handle_ingress"].assert_not_awaited()
        assert status_updater.calls == 0
        assert server.last_sync is None

    @pytest.mark.asyncio
    async def test_reports_available_and_versions(self, server, pipeline, status_updater):
        await server.sync(operator_body(), BootstrapRolloutState())

        status = status_updater.current
        assert persisted_condition(status_updater, "Available")["status"] == "True"
        assert persisted_condition(status_updater, "Available")["reason"] == "AsExpected"
        assert persisted_condition(status_updater, "Progressing")["status"] == "False"
        assert persisted_condition(status_updater, "OperatorSyncDegraded")["status"] == "False"
        assert persisted_condition(status_updater, "RouteStatusDegraded")["status"] == "False"
        degraded = persisted_condition(status_updater, "Degraded")
        assert degraded["status"] == "False"
        assert degraded["reason"] == "AsExpected"
        assert status["versions"] == [
            {"name": "operator", "version": "4.15.0"},
            {"name": "oauth-openshift", "version": "4.15.0"},
        ]
        assert status["observedGeneration"] == 3
        assert status["readyReplicas"] == 2
        assert status["generations"] == [
            {
                "group": "apps",
                "resource": "deployments",
                "namespace": NAMESPACE,
                "name": "oauth-openshift",
                "lastGeneration": 5,
            }
        ]
        assert server.last_sync["succeeded"] is True
        assert server.last_sync["trigger"] == "update"

    @pytest.mark.asyncio
    async def test_route_ca_includes_system_bundle(self, server, pipeline):
        pipeline["fetch_ingress_ca"].return_value = b"INGRESS"

        await server.sync(operator_body(), BootstrapRolloutState())

        _, host, ca_data = pipeline["check_route_health"].await_args.args
        assert host == HOST
        assert ca_data == b"INGRESS\nSYSTEM"

    @pytest.mark.asyncio
    async def test_stage_ordering(self, server, pipeline):
        """Metadata before its readers, service before its CA, mirrors before config."""
        calls = []
        server.apply_config_map.side_effect = lambda cm: calls.append(
            f"configmap:{cm.metadata.name}"
        ) or (cm, True)
        server.apply_service.side_effect = lambda svc: calls.append("service") or (svc, True)
        pipeline["handle_auth_config"].side_effect = lambda res: calls.append("auth") or Mock(
            spec=["spec", "integrated"]
        )
        pipeline["handle_service_ca"].side_effect = lambda res: calls.append("service-ca")
        pipeline["handle_config_sync"].side_effect = lambda res, sync: calls.append("sync")

        await server.sync(operator_body(), BootstrapRolloutState())

        assert calls == [
            "configmap:oauth-openshift",
            "auth",
            "service",
            "service-ca",
            "sync",
            "configmap:v4-0-config-system-cliconfig",
        ]

    @pytest.mark.asyncio
    async def test_versions_not_rewritten_when_unchanged(self, server, pipeline, status_updater):
        versions = [
            {"name": "operator", "version": "4.15.0"},
            {"name": "oauth-openshift", "version": "4.15.0"},
        ]
        await server.sync(
            operator_body(status={"versions": versions}), BootstrapRolloutState()
        )

        assert status_updater.current["versions"] == versions

    def test_set_version(self):
        status = {"versions": [{"name": "operator", "version": "1"}]}

        assert set_version(status, "operator", "2")
        assert not set_version(status, "operator", "2")
        assert set_version(status, "oauth-openshift", "2")
        assert status["versions"] == [
            {"name": "operator", "version": "2"},
            {"name": "oauth-openshift", "version": "2"},
        ]


class TestRollout:
    """Forced rollouts of the OAuth server deployment."""

    @pytest.mark.asyncio
    async def test_generation_change_forces_rollout(self, server, pipeline):
        """Operator generation 3 with observedGeneration 2 forces a rollout."""
        await server.sync(operator_body(generation=3, observed_generation=2), BootstrapRolloutState())

        desired, expected_generation, force = server.apply_deployment.await_args.args
        assert desired is pipeline["prepare_deployment"].return_value
        assert expected_generation == -1
        assert force is True

    @pytest.mark.asyncio
    async def test_observed_generation_does_not_force(self, server, pipeline):
        generations = [
            {
                "group": "apps",
                "resource": "deployments",
                "namespace": NAMESPACE,
                "name": "oauth-openshift",
                "lastGeneration": 5,
            }
        ]
        await server.sync(
            operator_body(generation=2, observed_generation=2, status={"generations": generations}),
            BootstrapRolloutState(),
        )

        _, expected_generation, force = server.apply_deployment.await_args.args
        assert expected_generation == 5
        assert force is False

    @pytest.mark.asyncio
    async def test_bootstrap_user_removal_forces_rollout_once(self, server, pipeline):
        server.bootstrap_getter = Mock(is_enabled=AsyncMock(return_value=False))
        state = BootstrapRolloutState(armed=True)
        body = operator_body(generation=2, observed_generation=2)

        await server.sync(body, state)
        assert server.apply_deployment.await_args.args[2] is True

        await server.sync(body, state)
        assert server.apply_deployment.await_args.args[2] is False
        assert not state.armed


class TestSyncFailures:
    """Stage failures and their reporting."""

    @pytest.mark.asyncio
    async def test_ingress_failure(self, server, pipeline, status_updater):
        pipeline["handle_ingress"].side_effect = SyncError("ingress config domain cannot be empty")

        with pytest.raises(SyncError, match="^failed getting the ingress config: ingress config"):
            await server.sync(operator_body(), BootstrapRolloutState())

        pipeline["handle_route"].assert_not_awaited()
        assert persisted_condition(status_updater, "RouteStatusDegraded") is None
        degraded = persisted_condition(status_updater, "OperatorSyncDegraded")
        assert degraded["status"] == "True"
        assert "failed getting the ingress config" in degraded["message"]
        server.sensor.on_stage_failed.assert_called_once()
        assert server.last_sync["succeeded"] is False

    @pytest.mark.asyncio
    async def test_route_error_suppresses_global_degraded(self, server, pipeline, status_updater):
        """A specific degraded reason replaces the catch-all one."""
        pipeline["handle_route"].side_effect = RouteError("route has no host", "FailedHost")

        with pytest.raises(SyncError, match="failed handling the route: route has no host"):
            await server.sync(operator_body(), BootstrapRolloutState())

        route_degraded = persisted_condition(status_updater, "RouteStatusDegraded")
        assert route_degraded["status"] == "True"
        assert route_degraded["reason"] == "FailedHost"
        assert persisted_condition(status_updater, "OperatorSyncDegraded")["status"] == "False"
        degraded = persisted_condition(status_updater, "Degraded")
        assert degraded["status"] == "True"
        assert degraded["reason"] == "RouteStatus"
        assert "route has no host" in degraded["message"]

    @pytest.mark.asyncio
    async def test_raising_readiness_check_keeps_stage_conditions(
        self, server, pipeline, status_updater
    ):
        """A lookup failure is reported on its own stage, not the catch-all."""
        pipeline["check_oauth_clients_ready"].side_effect = aiohttp.ClientConnectionError(
            "connection reset"
        )

        with pytest.raises(SyncError, match="unable to check OAuth clients' readiness"):
            await server.sync(operator_body(), BootstrapRolloutState())

        assert persisted_condition(status_updater, "OAuthClientsDegraded")["status"] == "True"
        assert persisted_condition(status_updater, "RouteHealthDegraded")["status"] == "False"
        assert persisted_condition(status_updater, "WellKnownEndpointDegraded")["status"] == "False"
        assert persisted_condition(status_updater, "OperatorSyncDegraded")["status"] == "False"
        assert persisted_condition(status_updater, "Degraded")["reason"] == "OAuthClients"

    @pytest.mark.asyncio
    async def test_hard_readiness_failure_never_sets_available(
        self, server, pipeline, status_updater
    ):
        error = ReadinessCheckError("failed to GET route: boom", "FailedGet")
        pipeline["check_route_health"].return_value = Failed(error, "FailedGet")

        with pytest.raises(SyncError) as exc_info:
            await server.sync(operator_body(), BootstrapRolloutState())

        assert str(exc_info.value).startswith(
            "error checking current version: unable to check route health: failed to GET route"
        )
        assert persisted_condition(status_updater, "Available") is None
        assert persisted_condition(status_updater, "RouteHealthDegraded")["status"] == "True"
        assert persisted_condition(status_updater, "OperatorSyncDegraded")["status"] == "False"
        assert "versions" not in status_updater.current
        pipeline["check_well_known_ready"].assert_not_awaited()

    @pytest.mark.asyncio
    async def test_not_ready_completes_cycle(self, server, pipeline, status_updater):
        pipeline["check_route_health"].return_value = NotReady(
            "RouteNotReady", "route not yet available, /healthz returns '503 Service Unavailable'"
        )

        await server.sync(operator_body(), BootstrapRolloutState())

        available = persisted_condition(status_updater, "Available")
        assert available["status"] == "False"
        assert available["reason"] == "RouteNotReady"
        assert persisted_condition(status_updater, "Progressing")["status"] == "True"
        assert persisted_condition(status_updater, "OperatorSyncDegraded")["status"] == "False"
        assert "versions" not in status_updater.current

    @pytest.mark.asyncio
    async def test_status_failure_does_not_mask_sync_error(
        self, server, pipeline, make_status_updater
    ):
        server.status_updater = make_status_updater(error=ApiException(status=500, reason="boom"))
        pipeline["handle_ingress"].side_effect = SyncError("no ingress")

        with pytest.raises(SyncError, match="failed getting the ingress config"):
            await server.sync(operator_body(), BootstrapRolloutState())

        server.sensor.on_status_update_failed.assert_called_once()

    @pytest.mark.asyncio
    async def test_status_failure_surfaces_alone(self, server, pipeline, make_status_updater):
        error = ApiException(status=500, reason="boom")
        server.status_updater = make_status_updater(error=error)

        with pytest.raises(ApiException) as exc_info:
            await server.sync(operator_body(), BootstrapRolloutState())

        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_transition_times_survive_persisting(self, server, pipeline, make_status_updater):
        """Unchanged conditions keep the timestamp already stored."""
        stored = {
            "type": "Available",
            "status": "True",
            "reason": "AsExpected",
            "message": "",
            "lastTransitionTime": "2024-01-01T00:00:00Z",
        }
        server.status_updater = make_status_updater(current={"conditions": [stored]})

        await server.sync(operator_body(status={"conditions": [stored]}), BootstrapRolloutState())

        available = find_condition(server.status_updater.current["conditions"], "Available")
        assert available == stored
