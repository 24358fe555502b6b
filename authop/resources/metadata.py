"""OAuth server discovery metadata.

The same document is published in the managed config namespace for the API
server to serve at ``/.well-known/oauth-authorization-server`` and is used as
the expected value when probing that endpoint.
"""
import json
import logging
from typing import Any, Dict
from kubernetes_asyncio.client import V1ConfigMap, V1ObjectMeta
from authop.resources.base import CONFIG_GROUP, CONFIG_VERSION, BaseResource
from authop.types.models import AuthenticationConfig, OAuthServerResources
from authop.types.schemas import AuthenticationConfigSchema

logger = logging.getLogger(__name__)

METADATA_KEY = "oauthMetadata"

SCOPES_SUPPORTED = [
    "user:check-access",
    "user:full",
    "user:info",
    "user:list-projects",
    "user:list-scoped-projects",
]


def get_metadata(host: str) -> Dict[str, Any]:
    """Discovery document for an OAuth server reachable at `host`."""
    issuer = OAuthServerResources.public_url(host)
    return {
        "issuer": issuer,
        "authorization_endpoint": f"{issuer}/oauth/authorize",
        "token_endpoint": f"{issuer}/oauth/token",
        "scopes_supported": list(SCOPES_SUPPORTED),
        "response_types_supported": ["code", "token"],
        "grant_types_supported": ["authorization_code", "implicit"],
        "code_challenge_methods_supported": ["plain", "S256"],
    }


def prepare_metadata_config_map(host: str) -> V1ConfigMap:
    return V1ConfigMap(
        api_version="v1",
        kind="ConfigMap",
        metadata=V1ObjectMeta(
            name=OAuthServerResources.NAME,
            namespace=OAuthServerResources.MANAGED_CONFIG_NAMESPACE,
            labels={"app": OAuthServerResources.NAME},
        ),
        data={METADATA_KEY: json.dumps(get_metadata(host), indent=2)},
    )


AUTHENTICATIONS_PLURAL = "authentications"
CREATE_ONLY_ANNOTATION = "release.openshift.io/create-only"


async def handle_auth_config(res: BaseResource) -> AuthenticationConfig:
    """Read the cluster authentication config, creating it when absent.

    For the integrated type, the config status is pointed at the published
    metadata configmap.
    """
    api = res.custom_objects_api
    body = await res.fetch_config(AUTHENTICATIONS_PLURAL)
    if body is None:
        body = await api.create_cluster_custom_object(
            CONFIG_GROUP,
            CONFIG_VERSION,
            AUTHENTICATIONS_PLURAL,
            {
                "apiVersion": f"{CONFIG_GROUP}/{CONFIG_VERSION}",
                "kind": "Authentication",
                "metadata": {
                    "name": OAuthServerResources.GLOBAL_CONFIG_NAME,
                    "annotations": {CREATE_ONLY_ANNOTATION: "true"},
                },
            },
        )
        logger.info("Created authentication.config.openshift.io/cluster")

    auth_config = AuthenticationConfigSchema().load(body)
    if (
        auth_config.integrated
        and auth_config.status.integrated_oauth_metadata_name != OAuthServerResources.NAME
    ):
        body = dict(body)
        body["status"] = dict(body.get("status") or {})
        body["status"]["integratedOAuthMetadata"] = {"name": OAuthServerResources.NAME}
        body = await api.replace_cluster_custom_object_status(
            CONFIG_GROUP,
            CONFIG_VERSION,
            AUTHENTICATIONS_PLURAL,
            OAuthServerResources.GLOBAL_CONFIG_NAME,
            body,
        )
        auth_config = AuthenticationConfigSchema().load(body)
    return auth_config
