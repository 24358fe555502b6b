"""Reconciliation of the integrated OAuth server.

One `sync` call runs the whole pipeline once. Stages are order dependent:

1. metadata: ingress, route, discovery metadata and authentication config
2. service: the service, then its CA material
3. config: session secret, OAuth server config and the resources it mounts
4. deployment: bootstrap clients, dependency fingerprint, deployment apply
5. version: readiness checks and version reporting

The first failing stage aborts the cycle. Conditions collected so far are
persisted either way.
"""
import asyncio
import contextlib
import copy
import logging
import aiohttp
from functools import partial
from typing import Any, Dict, Iterator, List, Optional
from kubernetes_asyncio.client import ApiException, AppsV1Api, CoreV1Api, CustomObjectsApi
from authop.common.models import VersionFingerprint
from authop.readiness import (
    Stage,
    ReadinessReport,
    check_deployment_ready,
    check_oauth_clients_ready,
    check_route_health,
    check_well_known_ready,
    evaluate,
    route_ca_bundle,
)
from authop.resources.base import BaseResource
from authop.resources.bootstrap import BootstrapRolloutState, BootstrapUserDataGetter
from authop.resources.configsync import config_resource_versions, handle_config_sync
from authop.resources.deployment import (
    expected_deployment_generation,
    prepare_deployment,
    set_deployment_generation,
)
from authop.resources.metadata import handle_auth_config, prepare_metadata_config_map
from authop.resources.oauthclients import ensure_bootstrapped_oauth_clients
from authop.resources.oauthconfig import (
    handle_api_server_config,
    handle_console_config,
    handle_infrastructure_config,
    handle_oauth_config,
    handle_proxy_config,
    prepare_cli_config,
    prepare_cli_config_map,
)
from authop.resources.route import (
    fetch_ingress_ca,
    handle_ingress,
    handle_route,
    route_host,
    router_secret_to_ca,
)
from authop.resources.service import expected_session_secret, handle_service_ca, prepare_service
from authop.sensors import OperatorSensor
from authop.status import (
    GLOBAL_DEGRADED_PREFIX,
    StatusUpdater,
    degraded_union,
    handle_degraded,
    is_degraded_ignore_global,
    merge_conditions,
    set_condition,
)
from authop.status.conditions import TRUE
from authop.types.models import (
    AuthenticationConfig,
    AuthenticationOperator,
    OAuthServerResources,
    WorkloadRecord,
)
from authop.types.schemas import AuthenticationOperatorSchema
from authop.types.settings import Settings
from authop.utils.errors import RouteError, SyncError
from authop.utils.helpers import now
from authop.web import OAuthProbeClient

logger = logging.getLogger(__name__)

ROUTE_STATUS_PREFIX = "RouteStatus"
ROUTE_HEALTH_PREFIX = "RouteHealth"
WELL_KNOWN_PREFIX = "WellKnownEndpoint"
OAUTH_CLIENTS_PREFIX = "OAuthClients"

OPERATOR_VERSION_NAME = "operator"
OPERAND_VERSION_NAME = OAuthServerResources.NAME

Status = Dict[str, Any]


def set_version(status: Status, name: str, version: str) -> bool:
    """Report `version` for `name`; returns False when it was already reported."""
    versions = [dict(v) for v in status.get("versions") or []]
    for entry in versions:
        if entry.get("name") == name:
            if entry.get("version") == version:
                return False
            entry["version"] = version
            break
    else:
        versions.append({"name": name, "version": version})
    status["versions"] = versions
    return True


class OAuthServer(BaseResource):
    """Reconciles the integrated OAuth server against the cluster configuration."""

    settings: Settings
    probe_client: OAuthProbeClient
    status_updater: StatusUpdater
    bootstrap_getter: BootstrapUserDataGetter
    system_ca_bundle: bytes

    def __init__(
        self,
        settings: Settings,
        core_v1_api: CoreV1Api,
        apps_v1_api: AppsV1Api,
        custom_objects_api: CustomObjectsApi,
        probe_client: OAuthProbeClient,
        status_updater: StatusUpdater = None,
        sensor: OperatorSensor = None,
        system_ca_bundle: bytes = b"",
        name: str = OAuthServerResources.GLOBAL_CONFIG_NAME,
    ):
        super().__init__(core_v1_api, apps_v1_api, custom_objects_api, sensor, name)
        self.settings = settings
        self.probe_client = probe_client
        self.status_updater = status_updater or StatusUpdater(
            custom_objects_api, name=name, retries=settings.status_update_retries
        )
        self.bootstrap_getter = BootstrapUserDataGetter(self)
        self.system_ca_bundle = system_ca_bundle or b""
        self.last_sync: Optional[Dict[str, Any]] = None

    @contextlib.contextmanager
    def _stage(self, stage: str, message: str) -> Iterator[None]:
        """Wrap any error raised in the block with the stage context."""
        try:
            yield
        except Exception as ex:
            self.sensor.on_stage_failed(self.name, stage, ex)
            raise SyncError(message, ex) from ex

    async def sync(
        self,
        body: Dict[str, Any],
        bootstrap_state: BootstrapRolloutState,
        trigger_source: str = "update",
    ) -> None:
        """Run one reconciliation cycle for the operator config `body`.

        Nothing happens unless the operator is Managed. The status is
        persisted even when the cycle fails; a sync error takes precedence
        over a persistence error.

        Raises:
            SyncError: a pipeline stage failed.
            ApiException: only the status update failed.
        """
        operator = AuthenticationOperatorSchema().load(body)
        if not operator.spec.managed:
            logger.info(
                f"Skipping sync, management state is {operator.spec.management_state}"
            )
            return

        status = copy.deepcopy(body.get("status") or {})
        sensor_state = self.sensor.on_sync_start(
            self.name, operator.metadata.generation, trigger_source
        )

        sync_error: Optional[Exception] = None
        try:
            await self.handle_sync(operator, status, bootstrap_state)
        except SyncError as ex:
            sync_error = ex

        # Catch-all degraded reason, only when not degraded for a specific one
        global_error = sync_error
        if is_degraded_ignore_global(status.get("conditions"), GLOBAL_DEGRADED_PREFIX):
            global_error = None
        status["conditions"] = handle_degraded(
            status.get("conditions"), GLOBAL_DEGRADED_PREFIX, global_error
        )
        status["conditions"] = set_condition(
            status["conditions"], degraded_union(status["conditions"])
        )

        try:
            await self.persist_status(status)
        except (ApiException, aiohttp.ClientError, asyncio.TimeoutError) as ex:
            logger.error(f"failed to update status: {ex}")
            self.sensor.on_status_update_failed(self.name, ex)
            if sync_error is None:
                sync_error = ex

        for condition in status.get("conditions") or []:
            self.sensor.on_condition_status(
                self.name, condition["type"], condition.get("status") == TRUE
            )
        self.sensor.on_sync_complete(
            self.name, sensor_state, sync_error is None, sync_error
        )
        self.last_sync = {
            "time": now(),
            "trigger": trigger_source,
            "succeeded": sync_error is None,
        }
        if sync_error is not None:
            raise sync_error

    async def persist_status(self, status: Status) -> None:
        """Write `status`, keeping transition times of unchanged conditions."""

        def mutate(current: Status) -> None:
            original_conditions = current.get("conditions") or []
            current.clear()
            current.update(copy.deepcopy(status))
            current["conditions"] = merge_conditions(
                original_conditions, status.get("conditions") or []
            )

        await self.status_updater.update_status(mutate)

    async def handle_sync(
        self,
        operator: AuthenticationOperator,
        status: Status,
        bootstrap_state: BootstrapRolloutState,
    ) -> None:
        # ==================================
        # BLOCK 1: Metadata
        # ==================================
        with self._stage("metadata", "failed getting the ingress config"):
            ingress = await handle_ingress(self)

        with self._stage("metadata", "failed handling the route"):
            try:
                route, router_secret = await handle_route(self, ingress)
            except RouteError as ex:
                status["conditions"] = handle_degraded(
                    status.get("conditions"), ROUTE_STATUS_PREFIX, ex, ex.reason
                )
                raise
            status["conditions"] = handle_degraded(
                status.get("conditions"), ROUTE_STATUS_PREFIX, None
            )
        host = route_host(route)

        # Publish metadata as soon as the route has a host
        with self._stage(
            "metadata", "failure applying configMap for the .well-known endpoint"
        ):
            await self.apply_config_map(prepare_metadata_config_map(host))

        with self._stage("metadata", "failed handling authentication config"):
            auth_config = await handle_auth_config(self)

        with self._stage("metadata", "failed getting the ingress default CA"):
            ingress_ca = await fetch_ingress_ca(self)
        route_ca = router_secret_to_ca(router_secret, ingress, ingress_ca)

        # ==================================
        # BLOCK 2: service and service-ca data
        # ==================================
        # The service must exist before its serving certificate is requested
        with self._stage("service", "failed applying service object"):
            await self.apply_service(prepare_service())

        with self._stage("service", "failed handling service CA"):
            await handle_service_ca(self)

        # ==================================
        # BLOCK 3: OAuth server config
        # ==================================
        with self._stage("config", "failed obtaining session secret"):
            session_secret = await expected_session_secret(self)
        with self._stage("config", "failed applying session secret"):
            await self.apply_secret(session_secret)

        console = await handle_console_config(self)
        infrastructure = await handle_infrastructure_config(self)
        api_server = await handle_api_server_config(self)

        with self._stage("config", "failed handling OAuth configuration"):
            oauth = await handle_oauth_config(self)
            cli_config, sync_data = prepare_cli_config(
                operator.spec, oauth, host, router_secret, console, infrastructure, api_server
            )

        # Mirrored resources first, the config referencing them last
        with self._stage("config", "failed syncing configuration objects"):
            await handle_config_sync(self, sync_data)

        with self._stage("config", "failed applying configMap for the CLI configuration"):
            await self.apply_config_map(prepare_cli_config_map(cli_config))

        # ==================================
        # BLOCK 4: deployment
        # ==================================
        with self._stage("deployment", "failed ensuring bootstrapped OAuth clients"):
            await ensure_bootstrapped_oauth_clients(
                self, OAuthServerResources.public_url(host)
            )

        proxy = await handle_proxy_config(self)
        with self._stage("deployment", "failed computing resource versions"):
            fingerprint = await self.resource_versions(proxy)

        desired = prepare_deployment(
            operator.spec, self.settings, sync_data, proxy, fingerprint
        )

        # Redeploy on operator spec changes or once the bootstrap user is gone
        force_rollout = operator.metadata.generation != operator.status.observed_generation
        if await bootstrap_state.edge(self.bootstrap_getter):
            logger.info("Bootstrap user removed, forcing a rollout")
            force_rollout = True

        with self._stage(
            "deployment", "failed applying deployment for the integrated OAuth server"
        ):
            deployment, _ = await self.apply_deployment(
                desired,
                expected_deployment_generation(desired, status.get("generations")),
                force_rollout,
            )

        status["generations"] = set_deployment_generation(
            status.get("generations"), deployment
        )
        status["observedGeneration"] = operator.metadata.generation
        # Ready once updated, matching what the availability checks look at
        status["readyReplicas"] = (
            (deployment.status.updated_replicas or 0) if deployment.status else 0
        )

        # ==================================
        # BLOCK 5: readiness and version
        # ==================================
        with self._stage("version", "error checking current version"):
            await self.handle_version(
                status, auth_config, host, route_ca, WorkloadRecord.from_deployment(deployment)
            )

    async def resource_versions(self, proxy) -> VersionFingerprint:
        """Fingerprint of every input the deployment depends on.

        The operator config itself is left out: status updates would change
        it on every cycle, and its relevant spec changes force a rollout
        through its generation anyway.
        """
        fingerprint = VersionFingerprint()
        fingerprint.add("proxy", proxy.name, proxy.resource_version)

        operator_deployment = await self.fetch_deployment(
            OAuthServerResources.OPERATOR_DEPLOYMENT_NAME,
            OAuthServerResources.OPERATOR_NAMESPACE,
        )
        if operator_deployment is None:
            raise SyncError(
                f"deployment {OAuthServerResources.OPERATOR_NAMESPACE}/"
                f"{OAuthServerResources.OPERATOR_DEPLOYMENT_NAME} not found"
            )
        # Prefixed since each resource may come from a different etcd
        fingerprint.add(
            "deployments",
            operator_deployment.metadata.name,
            operator_deployment.metadata.resource_version,
        )
        fingerprint.extend(await config_resource_versions(self))
        return fingerprint

    def readiness_stages(
        self,
        auth_config: AuthenticationConfig,
        host: str,
        route_ca: bytes,
        record: WorkloadRecord,
    ) -> List[Stage]:
        """Readiness checks in evaluation order.

        The operator turns available after the route, the discovery document,
        the OAuth clients and one serving pod, but reports the new version
        only once every pod runs it.
        """
        return [
            Stage(
                "route",
                partial(
                    check_route_health,
                    self.probe_client,
                    host,
                    route_ca_bundle(route_ca, self.system_ca_bundle),
                ),
                ROUTE_HEALTH_PREFIX,
                "unable to check route health",
            ),
            Stage(
                "wellknown",
                partial(
                    check_well_known_ready,
                    self.probe_client,
                    self.core_v1_api,
                    auth_config,
                    host,
                    self.settings.kas_service_port,
                    self.settings.service_account_ca_path,
                ),
                WELL_KNOWN_PREFIX,
                "unable to check the .well-known endpoint",
            ),
            Stage(
                "oauthclients",
                partial(check_oauth_clients_ready, self.custom_objects_api),
                OAUTH_CLIENTS_PREFIX,
                "unable to check OAuth clients' readiness",
            ),
            Stage("deployment", partial(check_deployment_ready, record)),
        ]

    async def handle_version(
        self,
        status: Status,
        auth_config: AuthenticationConfig,
        host: str,
        route_ca: bytes,
        record: WorkloadRecord,
    ) -> ReadinessReport:
        stages = self.readiness_stages(auth_config, host, route_ca, record)
        report = await evaluate(stages, status.get("conditions"))
        status["conditions"] = report.conditions
        self.sensor.on_readiness_verdict(
            self.name, report.stage, report.ready, report.outcome.reason
        )

        if report.error is not None:
            stage = next(s for s in stages if s.name == report.stage)
            raise SyncError(stage.error_context, report.error) from report.error

        if report.ready:
            if set_version(status, OPERATOR_VERSION_NAME, self.settings.operator_version):
                logger.info(f"Reporting operator version {self.settings.operator_version}")
            if set_version(status, OPERAND_VERSION_NAME, self.settings.operand_version):
                logger.info(f"Reporting {OPERAND_VERSION_NAME} version {self.settings.operand_version}")
        return report
