"""OAuth server service, its CA material and the session secret."""
import json
import logging
import secrets
from typing import Optional, Tuple
from kubernetes_asyncio.client import (
    V1ConfigMap,
    V1ObjectMeta,
    V1Secret,
    V1Service,
    V1ServicePort,
    V1ServiceSpec,
)
from authop.common.models import Labels
from authop.resources.base import BaseResource, decode_secret_data, encode_secret_data
from authop.types.models import OAuthServerResources
from authop.utils.errors import SyncError

logger = logging.getLogger(__name__)

SERVING_CERT_ANNOTATION = "service.alpha.openshift.io/serving-cert-secret-name"
INJECT_CA_ANNOTATION = "service.beta.openshift.io/inject-cabundle"
SERVICE_CA_KEY = "service-ca.crt"

SERVICE_PORT = 443
CONTAINER_PORT = 6443

SESSION_AUTH_KEY_LENGTH = 64
SESSION_ENCRYPTION_KEY_LENGTH = 32


def default_labels() -> Labels:
    return Labels.generate_default_labels(OAuthServerResources.NAME)


def default_meta(name: str = OAuthServerResources.NAME, **kwargs) -> V1ObjectMeta:
    return V1ObjectMeta(
        name=name,
        namespace=OAuthServerResources.NAMESPACE,
        labels=default_labels().as_dict(),
        **kwargs,
    )


def prepare_service() -> V1Service:
    meta = default_meta(
        annotations={SERVING_CERT_ANNOTATION: OAuthServerResources.serving_cert_name()}
    )
    return V1Service(
        api_version="v1",
        kind="Service",
        metadata=meta,
        spec=V1ServiceSpec(
            type="ClusterIP",
            selector=default_labels().selector().as_dict(),
            ports=[
                V1ServicePort(
                    name="https",
                    port=SERVICE_PORT,
                    target_port=CONTAINER_PORT,
                    protocol="TCP",
                )
            ],
        ),
    )


def prepare_service_ca() -> V1ConfigMap:
    return V1ConfigMap(
        api_version="v1",
        kind="ConfigMap",
        metadata=default_meta(
            OAuthServerResources.service_ca_name(),
            annotations={INJECT_CA_ANNOTATION: "true"},
        ),
    )


async def handle_service_ca(res: BaseResource) -> Tuple[V1ConfigMap, V1Secret]:
    """Ensure the CA injection configmap exists and the serving cert was issued.

    The configmap is created but never updated: its data is owned by the
    service CA injector.
    """
    namespace = OAuthServerResources.NAMESPACE
    name = OAuthServerResources.service_ca_name()
    service_ca = await res.fetch_config_map(name, namespace)
    if service_ca is None:
        service_ca, _ = await res.apply_config_map(prepare_service_ca())
    if not (service_ca.data or {}).get(SERVICE_CA_KEY):
        raise SyncError(f"config map {name} has no service ca data")

    serving_cert_name = OAuthServerResources.serving_cert_name()
    serving_cert = await res.fetch_secret(serving_cert_name, namespace)
    if serving_cert is None:
        raise SyncError(f"secret {serving_cert_name} does not exist yet")
    return service_ca, serving_cert


def _random_key(length: int) -> str:
    return secrets.token_urlsafe(length)[:length]


def prepare_session_secrets() -> str:
    return json.dumps(
        {
            "kind": "SessionSecrets",
            "apiVersion": "v1",
            "secrets": [
                {
                    "authentication": _random_key(SESSION_AUTH_KEY_LENGTH),
                    "encryption": _random_key(SESSION_ENCRYPTION_KEY_LENGTH),
                }
            ],
        }
    )


def valid_session_secret(secret: Optional[V1Secret]) -> bool:
    raw = decode_secret_data(secret).get(OAuthServerResources.session_secret_name())
    if not raw:
        return False
    try:
        doc = json.loads(raw)
    except ValueError:
        return False
    entries = doc.get("secrets") if isinstance(doc, dict) else None
    if not isinstance(entries, list) or len(entries) != 1:
        return False
    entry = entries[0]
    return (
        isinstance(entry, dict)
        and len(entry.get("authentication") or "") == SESSION_AUTH_KEY_LENGTH
        and len(entry.get("encryption") or "") == SESSION_ENCRYPTION_KEY_LENGTH
    )


async def expected_session_secret(res: BaseResource) -> V1Secret:
    """Session secret to apply: the existing one if valid, otherwise a new one."""
    name = OAuthServerResources.session_secret_name()
    existing = await res.fetch_secret(name, OAuthServerResources.NAMESPACE)
    if valid_session_secret(existing):
        data = existing.data
    else:
        if existing is not None:
            logger.warning(f"Session secret {name} is invalid, generating a new one")
        data = encode_secret_data({name: prepare_session_secrets()})
    return V1Secret(
        api_version="v1",
        kind="Secret",
        metadata=default_meta(name),
        data=data,
        type="Opaque",
    )
