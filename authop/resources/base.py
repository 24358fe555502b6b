import base64
import hashlib
import logging
import uuid
import mmh3
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union
from kubernetes_asyncio.client import (
    ApiException,
    AppsV1Api,
    CoreV1Api,
    CustomObjectsApi,
    V1ConfigMap,
    V1Deployment,
    V1Namespace,
    V1ObjectMeta,
    V1Secret,
    V1Service,
)
from authop.sensors import OperatorSensor
from authop.utils.errors import already_exists_error, not_found_error
from authop.utils.helpers import canonicalize_dict

SPEC_HASH_ANNOTATION = "operator.openshift.io/spec-hash"
FORCE_ANNOTATION = "operator.openshift.io/force"
PULL_SPEC_ANNOTATION = "operator.openshift.io/pull-spec"

CONFIG_GROUP = "config.openshift.io"
CONFIG_VERSION = "v1"

logger = logging.getLogger(__name__)


def ensure_object_meta(existing: V1ObjectMeta, desired: V1ObjectMeta) -> bool:
    """Merge desired labels and annotations into `existing`.

    Keys present only on the existing object are kept. Returns whether
    anything had to change.
    """
    modified = False
    for attr in ("labels", "annotations"):
        wanted = getattr(desired, attr) or {}
        current = dict(getattr(existing, attr) or {})
        for key, value in wanted.items():
            if current.get(key) != value:
                current[key] = value
                modified = True
        setattr(existing, attr, current)
    return modified


def encode_secret_data(data: Dict[str, Union[str, bytes]]) -> Dict[str, str]:
    """Base64 encode secret values as stored in `V1Secret.data`."""
    encoded = {}
    for key, value in data.items():
        if isinstance(value, str):
            value = value.encode()
        encoded[key] = base64.b64encode(value).decode()
    return encoded


def decode_secret_data(secret: Optional[V1Secret]) -> Dict[str, bytes]:
    if secret is None or not secret.data:
        return {}
    return {key: base64.b64decode(value) for key, value in secret.data.items()}


def _service_port_fields(service: V1Service) -> List[Dict[str, Any]]:
    return [
        {
            "name": port.name,
            "port": port.port,
            "targetPort": port.target_port,
            "protocol": port.protocol or "TCP",
        }
        for port in service.spec.ports or []
    ]


class BaseResource:
    """Base for the stages deriving and applying the OAuth server resources.

    Provides typed reads (returning None when the object is absent) and an
    idempotent create-or-update for each resource kind. Every apply reports
    to the sensor and returns the observed object plus whether it changed.
    """

    core_v1_api: CoreV1Api
    apps_v1_api: AppsV1Api
    custom_objects_api: CustomObjectsApi
    sensor: OperatorSensor

    def __init__(
        self,
        core_v1_api: CoreV1Api,
        apps_v1_api: AppsV1Api,
        custom_objects_api: CustomObjectsApi,
        sensor: OperatorSensor = None,
        name: str = "cluster",
    ):
        self.core_v1_api = core_v1_api
        self.apps_v1_api = apps_v1_api
        self.custom_objects_api = custom_objects_api
        self.sensor = sensor or OperatorSensor()
        self.name = name

    def compute_hash(self, data: Any) -> str:
        """Compute a murmur3 hash."""
        if isinstance(data, dict):
            _data = canonicalize_dict(data)
        elif isinstance(data, str):
            _data = data.encode()
        else:
            raise ValueError(f"Hash of {type(data)} is not supported.")
        mumur_str = str(mmh3.hash128(_data))

        hash_obj = hashlib.sha256(mumur_str.encode("utf-8"))
        full_hash = hash_obj.hexdigest()

        # First 16 characters keep annotations readable
        return full_hash[:16]

    def prepare_hash_annotation(self, hash: Union[str, int]) -> Dict[str, str]:
        return {SPEC_HASH_ANNOTATION: str(hash)}

    # ------------------------------------------------
    # Typed reads
    # ------------------------------------------------

    async def _fetch(self, read: Callable[..., Awaitable[Any]], **kwargs: Any) -> Any:
        try:
            return await read(**kwargs)
        except ApiException as ex:
            if not_found_error(ex):
                return None
            raise

    async def fetch_config_map(self, name: str, namespace: str) -> Optional[V1ConfigMap]:
        return await self._fetch(
            self.core_v1_api.read_namespaced_config_map, name=name, namespace=namespace
        )

    async def fetch_secret(self, name: str, namespace: str) -> Optional[V1Secret]:
        return await self._fetch(
            self.core_v1_api.read_namespaced_secret, name=name, namespace=namespace
        )

    async def fetch_service(self, name: str, namespace: str) -> Optional[V1Service]:
        return await self._fetch(
            self.core_v1_api.read_namespaced_service, name=name, namespace=namespace
        )

    async def fetch_namespace(self, name: str) -> Optional[V1Namespace]:
        return await self._fetch(self.core_v1_api.read_namespace, name=name)

    async def fetch_deployment(self, name: str, namespace: str) -> Optional[V1Deployment]:
        return await self._fetch(
            self.apps_v1_api.read_namespaced_deployment, name=name, namespace=namespace
        )

    async def fetch_config(self, plural: str, name: str = "cluster") -> Optional[Dict]:
        """Read a cluster-scoped `config.openshift.io` object."""
        return await self._fetch(
            self.custom_objects_api.get_cluster_custom_object,
            group=CONFIG_GROUP,
            version=CONFIG_VERSION,
            plural=plural,
            name=name,
        )

    async def list_config_maps(self, namespace: str) -> List[V1ConfigMap]:
        result = await self.core_v1_api.list_namespaced_config_map(namespace=namespace)
        return result.items or []

    async def list_secrets(self, namespace: str) -> List[V1Secret]:
        result = await self.core_v1_api.list_namespaced_secret(namespace=namespace)
        return result.items or []

    # ------------------------------------------------
    # Apply
    # ------------------------------------------------

    async def _apply(
        self,
        resource_type: str,
        desired: Any,
        fetch: Callable[[str, str], Awaitable[Any]],
        create: Callable[..., Awaitable[Any]],
        replace: Callable[..., Awaitable[Any]],
        merge: Callable[[Any, Any], List[str]],
    ) -> Tuple[Any, bool]:
        """Create `desired` or bring the existing object in line with it.

        `merge` copies the desired state onto the existing object and returns
        the names of the fields that differed.
        """
        name = desired.metadata.name
        namespace = desired.metadata.namespace
        existing = await fetch(name, namespace)

        if existing is None:
            operation, body = "create", desired
        else:
            drift = merge(existing, desired)
            if not drift:
                return existing, False
            self.sensor.on_resource_drift_detected(
                self.name, name, namespace, resource_type, drift
            )
            operation, body = "update", existing

        sensor_state = self.sensor.on_resource_sync_start(
            self.name, name, namespace, resource_type
        )
        success, error = True, None
        try:
            if operation == "create":
                try:
                    observed = await create(namespace=namespace, body=body)
                except ApiException as ex:
                    if not already_exists_error(ex):
                        raise
                    # Lost a race with another writer, reconcile against it
                    operation = "update"
                    existing = await fetch(name, namespace)
                    merge(existing, desired)
                    observed = await replace(name=name, namespace=namespace, body=existing)
            else:
                observed = await replace(name=name, namespace=namespace, body=body)
        except Exception as ex:
            success, error = False, ex
            raise
        finally:
            self.sensor.on_resource_sync_complete(
                self.name,
                name,
                namespace,
                resource_type,
                sensor_state,
                operation,
                success,
                error,
            )
        logger.info(f"{operation.capitalize()}d {resource_type} {namespace}/{name}")
        return observed, True

    @staticmethod
    def merge_config_map(existing: V1ConfigMap, desired: V1ConfigMap) -> List[str]:
        drift = []
        if ensure_object_meta(existing.metadata, desired.metadata):
            drift.append("metadata")
        if (existing.data or {}) != (desired.data or {}):
            existing.data = desired.data
            drift.append("data")
        return drift

    @staticmethod
    def merge_secret(existing: V1Secret, desired: V1Secret) -> List[str]:
        drift = []
        if ensure_object_meta(existing.metadata, desired.metadata):
            drift.append("metadata")
        if (existing.data or {}) != (desired.data or {}):
            existing.data = desired.data
            drift.append("data")
        if desired.type and existing.type != desired.type:
            existing.type = desired.type
            drift.append("type")
        return drift

    @staticmethod
    def merge_service(existing: V1Service, desired: V1Service) -> List[str]:
        drift = []
        if ensure_object_meta(existing.metadata, desired.metadata):
            drift.append("metadata")
        if (
            existing.spec.selector != desired.spec.selector
            or _service_port_fields(existing) != _service_port_fields(desired)
            or (desired.spec.type and existing.spec.type != desired.spec.type)
        ):
            # Allocated fields (clusterIP) stay as they are
            existing.spec.selector = desired.spec.selector
            existing.spec.ports = desired.spec.ports
            existing.spec.type = desired.spec.type or existing.spec.type
            drift.append("spec")
        return drift

    async def apply_config_map(self, desired: V1ConfigMap) -> Tuple[V1ConfigMap, bool]:
        return await self._apply(
            "config_map",
            desired,
            self.fetch_config_map,
            self.core_v1_api.create_namespaced_config_map,
            self.core_v1_api.replace_namespaced_config_map,
            self.merge_config_map,
        )

    async def apply_secret(self, desired: V1Secret) -> Tuple[V1Secret, bool]:
        return await self._apply(
            "secret",
            desired,
            self.fetch_secret,
            self.core_v1_api.create_namespaced_secret,
            self.core_v1_api.replace_namespaced_secret,
            self.merge_secret,
        )

    async def apply_service(self, desired: V1Service) -> Tuple[V1Service, bool]:
        return await self._apply(
            "service",
            desired,
            self.fetch_service,
            self.core_v1_api.create_namespaced_service,
            self.core_v1_api.replace_namespaced_service,
            self.merge_service,
        )

    async def apply_deployment(
        self, desired: V1Deployment, expected_generation: int, force_rollout: bool
    ) -> Tuple[V1Deployment, bool]:
        """Create or update the deployment.

        The update is skipped when the existing metadata already carries every
        desired label and annotation, its generation is the one recorded last
        time and no rollout is forced. Otherwise the deployment spec is
        replaced; forced rollouts stamp a fresh token on the pod template.
        """
        meta = desired.metadata
        meta.annotations = dict(meta.annotations or {})
        meta.annotations[PULL_SPEC_ANNOTATION] = desired.spec.template.spec.containers[0].image
        meta.annotations.update(
            self.prepare_hash_annotation(self.compute_hash(desired.spec.to_dict()))
        )
        if force_rollout:
            template_meta = desired.spec.template.metadata
            template_meta.annotations = dict(template_meta.annotations or {})
            template_meta.annotations[FORCE_ANNOTATION] = str(uuid.uuid4())

        def merge(existing: V1Deployment, desired: V1Deployment) -> List[str]:
            drift = []
            if ensure_object_meta(existing.metadata, desired.metadata):
                drift.append("metadata")
            if existing.metadata.generation != expected_generation:
                drift.append("generation")
            if force_rollout:
                drift.append("force")
            if drift:
                existing.spec = desired.spec
            return drift

        return await self._apply(
            "deployment",
            desired,
            self.fetch_deployment,
            self.apps_v1_api.create_namespaced_deployment,
            self.apps_v1_api.replace_namespaced_deployment,
            merge,
        )

    async def delete_config_map(self, name: str, namespace: str) -> None:
        await self._delete("config_map", self.core_v1_api.delete_namespaced_config_map, name, namespace)

    async def delete_secret(self, name: str, namespace: str) -> None:
        await self._delete("secret", self.core_v1_api.delete_namespaced_secret, name, namespace)

    async def _delete(
        self, resource_type: str, delete: Callable[..., Awaitable[Any]], name: str, namespace: str
    ) -> None:
        sensor_state = self.sensor.on_resource_sync_start(
            self.name, name, namespace, resource_type
        )
        success, error = True, None
        try:
            await delete(name=name, namespace=namespace)
        except ApiException as ex:
            if not not_found_error(ex):
                success, error = False, ex
                raise
            logger.debug(f"{resource_type} {namespace}/{name} already deleted")
            return
        finally:
            self.sensor.on_resource_sync_complete(
                self.name, name, namespace, resource_type, sensor_state, "delete", success, error
            )
        logger.info(f"Deleted {resource_type} {namespace}/{name}")
