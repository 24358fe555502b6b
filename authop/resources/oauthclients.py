"""Bootstrap OAuth clients used by the web console and the CLI."""
import logging
from typing import Any, Dict, List
from kubernetes_asyncio.client import ApiException
from authop.readiness.oauthclients import (
    BROWSER_CLIENT_NAME,
    CHALLENGING_CLIENT_NAME,
    OAUTH_CLIENTS_PLURAL,
    OAUTH_GROUP,
    OAUTH_VERSION,
)
from authop.resources.base import BaseResource
from authop.utils.errors import already_exists_error, not_found_error

logger = logging.getLogger(__name__)


def prepare_oauth_clients(public_url: str) -> List[Dict[str, Any]]:
    def client(name: str, redirect: str, **extra: Any) -> Dict[str, Any]:
        body = {
            "apiVersion": f"{OAUTH_GROUP}/{OAUTH_VERSION}",
            "kind": "OAuthClient",
            "metadata": {"name": name},
            "secret": "",
            "redirectURIs": [f"{public_url}{redirect}"],
            "grantMethod": "auto",
        }
        body.update(extra)
        return body

    return [
        client(BROWSER_CLIENT_NAME, "/oauth/token/display"),
        client(
            CHALLENGING_CLIENT_NAME,
            "/oauth/token/implicit",
            respondWithChallenges=True,
        ),
    ]


async def ensure_bootstrapped_oauth_clients(res: BaseResource, public_url: str) -> None:
    """Create the bootstrap clients that do not exist yet.

    Existing clients are left untouched.
    """
    api = res.custom_objects_api
    for body in prepare_oauth_clients(public_url):
        name = body["metadata"]["name"]
        try:
            await api.get_cluster_custom_object(
                OAUTH_GROUP, OAUTH_VERSION, OAUTH_CLIENTS_PLURAL, name
            )
            continue
        except ApiException as ex:
            if not not_found_error(ex):
                raise
        try:
            await api.create_cluster_custom_object(
                OAUTH_GROUP, OAUTH_VERSION, OAUTH_CLIENTS_PLURAL, body
            )
            logger.info(f"Created oauthclient {name}")
        except ApiException as ex:
            if not already_exists_error(ex):
                raise
