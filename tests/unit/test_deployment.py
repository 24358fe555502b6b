"""Unit tests for the desired OAuth server deployment."""

from kubernetes_asyncio.client import V1Deployment, V1ObjectMeta

from authop.common.models import VersionFingerprint
from authop.resources.deployment import (
    RVS_HASH_ANNOTATION,
    expected_deployment_generation,
    prepare_deployment,
    set_deployment_generation,
)
from authop.resources.oauthconfig import ConfigSyncData
from authop.types.schemas import (
    AuthenticationOperatorSchema,
    OperatorSpecSchema,
    ProxyConfigSchema,
)


def build(settings, operator_spec=None, proxy_status=None, sync=None, fingerprint=None):
    return prepare_deployment(
        OperatorSpecSchema().load(operator_spec or {}),
        settings,
        sync or ConfigSyncData(),
        ProxyConfigSchema().load({"status": proxy_status or {}}),
        fingerprint or VersionFingerprint([("configmaps", "cli-config", "1")]),
    )


def deployment(generation=4):
    return V1Deployment(
        metadata=V1ObjectMeta(
            name="oauth-openshift", namespace="openshift-authentication", generation=generation
        )
    )


class TestPrepareDeployment:
    """Tests for prepare_deployment."""

    def test_fingerprint_digest_on_deployment_and_template(self, settings):
        fingerprint = VersionFingerprint([("secrets", "session", "7")])
        desired = build(settings, fingerprint=fingerprint)

        digest = fingerprint.digest()
        assert desired.metadata.annotations[RVS_HASH_ANNOTATION] == digest
        assert desired.spec.template.metadata.annotations[RVS_HASH_ANNOTATION] == digest

    def test_dependency_change_changes_template(self, settings):
        a = build(settings, fingerprint=VersionFingerprint([("secrets", "session", "7")]))
        b = build(settings, fingerprint=VersionFingerprint([("secrets", "session", "8")]))

        assert a.spec.template.metadata.annotations != b.spec.template.metadata.annotations

    def test_replicas_image_and_verbosity(self, settings):
        desired = build(settings, operator_spec={"logLevel": "Debug"})
        container = desired.spec.template.spec.containers[0]

        assert desired.spec.replicas == settings.oauth_server_replicas
        assert container.image == settings.oauth_server_image
        assert "--v=4" in container.args
        assert desired.metadata.namespace == "openshift-authentication"

    def test_proxy_env(self, settings):
        desired = build(
            settings,
            proxy_status={"httpsProxy": "https://proxy:3128", "noProxy": ".cluster.local"},
        )
        env = {e.name: e.value for e in desired.spec.template.spec.containers[0].env}

        assert env == {"HTTPS_PROXY": "https://proxy:3128", "NO_PROXY": ".cluster.local"}

    def test_user_volumes_mounted(self, settings):
        sync = ConfigSyncData()
        path = sync.add_idp_secret(0, "file-data", "htpass", "htpasswd")
        desired = build(settings, sync=sync)

        pod = desired.spec.template.spec
        dest = sync.items[0].dest
        volume = next(v for v in pod.volumes if v.name == dest)
        mount = next(m for m in pod.containers[0].volume_mounts if m.name == dest)

        assert volume.secret.secret_name == dest
        assert path.startswith(mount.mount_path)
        assert mount.read_only is True

    def test_system_volumes_present(self, settings):
        desired = build(settings)
        names = {v.name for v in desired.spec.template.spec.volumes}

        assert "v4-0-config-system-session" in names
        assert "v4-0-config-system-cliconfig" in names


class TestDeploymentGenerations:
    """Tests for the deployment generation bookkeeping."""

    def test_unknown_generation(self):
        assert expected_deployment_generation(deployment(), []) == -1
        assert expected_deployment_generation(deployment(), None) == -1

    def test_recorded_generation(self):
        generations = set_deployment_generation([], deployment(generation=4))
        assert expected_deployment_generation(deployment(), generations) == 4

    def test_entry_replaced_not_duplicated(self):
        other = {
            "group": "apps",
            "resource": "deployments",
            "namespace": "other",
            "name": "oauth-openshift",
            "lastGeneration": 1,
        }
        generations = set_deployment_generation([other], deployment(generation=4))
        generations = set_deployment_generation(generations, deployment(generation=5))

        assert len(generations) == 2
        assert generations[0] == other
        assert generations[1]["lastGeneration"] == 5

    def test_generations_stay_in_the_raw_status(self):
        """The typed status only carries what drives rollouts."""
        status = {
            "observedGeneration": 2,
            "readyReplicas": 2,
            "generations": set_deployment_generation([], deployment(generation=4)),
        }

        operator = AuthenticationOperatorSchema().load({"status": status})

        assert operator.status.as_dict() == {"observed_generation": 2}
        assert expected_deployment_generation(deployment(), status["generations"]) == 4
