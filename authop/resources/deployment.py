"""Desired OAuth server deployment."""
from typing import Any, Dict, List
from kubernetes_asyncio.client import (
    V1ConfigMapVolumeSource,
    V1Container,
    V1ContainerPort,
    V1Deployment,
    V1DeploymentSpec,
    V1DeploymentStrategy,
    V1EnvVar,
    V1HTTPGetAction,
    V1LabelSelector,
    V1ObjectMeta,
    V1PodSpec,
    V1PodTemplateSpec,
    V1Probe,
    V1ResourceRequirements,
    V1RollingUpdateDeployment,
    V1SecretVolumeSource,
    V1Volume,
    V1VolumeMount,
)
from authop.common.models import VersionFingerprint
from authop.resources.oauthconfig import (
    CLI_CONFIG_KEY,
    CONFIG_MAP,
    SYSTEM_MOUNT_ROOT,
    ConfigSyncData,
)
from authop.resources.service import CONTAINER_PORT, default_labels, default_meta
from authop.types.models import OAuthServerResources, OperatorSpec, ProxyConfig
from authop.types.settings import Settings

RVS_HASH_ANNOTATION = "operator.openshift.io/rvs-hash"

APPS_GROUP = "apps"
DEPLOYMENTS_RESOURCE = "deployments"

SERVICE_ACCOUNT = "oauth-openshift"


def _system_volumes() -> List[Any]:
    """(volume, mount) pairs for the operator managed resources."""
    pairs = []
    for name in (
        OAuthServerResources.session_secret_name(),
        OAuthServerResources.serving_cert_name(),
        OAuthServerResources.router_certs_name(),
    ):
        pairs.append(
            (
                V1Volume(name=name, secret=V1SecretVolumeSource(secret_name=name)),
                V1VolumeMount(
                    name=name, mount_path=f"{SYSTEM_MOUNT_ROOT}/secrets/{name}", read_only=True
                ),
            )
        )
    for name in (OAuthServerResources.cli_config_name(), OAuthServerResources.service_ca_name()):
        pairs.append(
            (
                V1Volume(name=name, config_map=V1ConfigMapVolumeSource(name=name)),
                V1VolumeMount(
                    name=name, mount_path=f"{SYSTEM_MOUNT_ROOT}/configmaps/{name}", read_only=True
                ),
            )
        )
    return pairs


def _user_volumes(sync: ConfigSyncData) -> List[Any]:
    pairs = []
    for item in sync.items:
        if item.kind == CONFIG_MAP:
            volume = V1Volume(name=item.dest, config_map=V1ConfigMapVolumeSource(name=item.dest))
        else:
            volume = V1Volume(name=item.dest, secret=V1SecretVolumeSource(secret_name=item.dest))
        pairs.append(
            (volume, V1VolumeMount(name=item.dest, mount_path=item.mount_path, read_only=True))
        )
    return pairs


def prepare_proxy_env(proxy: ProxyConfig) -> List[V1EnvVar]:
    env = []
    for name, value in (
        ("HTTP_PROXY", proxy.http_proxy),
        ("HTTPS_PROXY", proxy.https_proxy),
        ("NO_PROXY", proxy.no_proxy),
    ):
        if value:
            env.append(V1EnvVar(name=name, value=value))
    return env


def prepare_deployment(
    operator_spec: OperatorSpec,
    settings: Settings,
    sync: ConfigSyncData,
    proxy: ProxyConfig,
    fingerprint: VersionFingerprint,
) -> V1Deployment:
    """Desired deployment embedding the fingerprint of its dependencies.

    The fingerprint digest is part of the pod template, so any dependency
    change becomes a spec change.
    """
    volumes = _system_volumes() + _user_volumes(sync)
    rvs_hash = {RVS_HASH_ANNOTATION: fingerprint.digest()}
    cli_config = f"{SYSTEM_MOUNT_ROOT}/configmaps/{OAuthServerResources.cli_config_name()}/{CLI_CONFIG_KEY}"

    health_probe = dict(
        http_get=V1HTTPGetAction(path="/healthz", port=CONTAINER_PORT, scheme="HTTPS"),
        timeout_seconds=1,
        period_seconds=10,
        success_threshold=1,
        failure_threshold=3,
    )
    container = V1Container(
        name="oauth-openshift",
        image=settings.oauth_server_image,
        image_pull_policy="IfNotPresent",
        command=["oauth-server", "osinserver"],
        args=[f"--config={cli_config}", f"--v={operator_spec.verbosity}"],
        ports=[V1ContainerPort(name="https", container_port=CONTAINER_PORT, protocol="TCP")],
        env=prepare_proxy_env(proxy),
        volume_mounts=[mount for _, mount in volumes],
        readiness_probe=V1Probe(**health_probe),
        liveness_probe=V1Probe(initial_delay_seconds=30, **health_probe),
        resources=V1ResourceRequirements(requests={"cpu": "10m", "memory": "50Mi"}),
        termination_message_policy="FallbackToLogsOnError",
    )

    return V1Deployment(
        api_version="apps/v1",
        kind="Deployment",
        metadata=default_meta(annotations=dict(rvs_hash)),
        spec=V1DeploymentSpec(
            replicas=settings.oauth_server_replicas,
            selector=V1LabelSelector(match_labels=default_labels().selector().as_dict()),
            strategy=V1DeploymentStrategy(
                type="RollingUpdate",
                rolling_update=V1RollingUpdateDeployment(max_unavailable=1, max_surge=0),
            ),
            template=V1PodTemplateSpec(
                metadata=V1ObjectMeta(
                    name=OAuthServerResources.NAME,
                    labels=default_labels().as_dict(),
                    annotations=dict(rvs_hash),
                ),
                spec=V1PodSpec(
                    service_account_name=SERVICE_ACCOUNT,
                    priority_class_name="system-cluster-critical",
                    node_selector={"node-role.kubernetes.io/master": ""},
                    containers=[container],
                    volumes=[volume for volume, _ in volumes],
                ),
            ),
        ),
    )


def _generation_matches(entry: Dict[str, Any], deployment: V1Deployment) -> bool:
    return (
        entry.get("group") == APPS_GROUP
        and entry.get("resource") == DEPLOYMENTS_RESOURCE
        and entry.get("namespace") == deployment.metadata.namespace
        and entry.get("name") == deployment.metadata.name
    )


def expected_deployment_generation(
    deployment: V1Deployment, generations: List[Dict[str, Any]]
) -> int:
    """Deployment generation recorded in the operator status, -1 when unknown."""
    for entry in generations or []:
        if _generation_matches(entry, deployment):
            return entry.get("lastGeneration", -1)
    return -1


def set_deployment_generation(
    generations: List[Dict[str, Any]], deployment: V1Deployment
) -> List[Dict[str, Any]]:
    """Record the deployment's current generation, replacing any earlier entry."""
    entry = {
        "group": APPS_GROUP,
        "resource": DEPLOYMENTS_RESOURCE,
        "namespace": deployment.metadata.namespace,
        "name": deployment.metadata.name,
        "lastGeneration": deployment.metadata.generation or 0,
    }
    result = [dict(g) for g in generations or []]
    for i, existing in enumerate(result):
        if _generation_matches(existing, deployment):
            result[i] = entry
            break
    else:
        result.append(entry)
    return result
