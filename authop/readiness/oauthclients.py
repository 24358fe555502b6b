from kubernetes_asyncio.client import ApiException, CustomObjectsApi
from authop.readiness.result import READY, Failed, NotReady, Outcome
from authop.utils.errors import not_found_error

OAUTH_CLIENT_NOT_READY = "OAuthClientNotReady"

OAUTH_GROUP = "oauth.openshift.io"
OAUTH_VERSION = "v1"
OAUTH_CLIENTS_PLURAL = "oauthclients"

BROWSER_CLIENT_NAME = "openshift-browser-client"
CHALLENGING_CLIENT_NAME = "openshift-challenging-client"


async def check_oauth_clients_ready(custom_objects_api: CustomObjectsApi) -> Outcome:
    """Both bootstrap OAuth clients must exist."""
    for name, label in (
        (BROWSER_CLIENT_NAME, "browser"),
        (CHALLENGING_CLIENT_NAME, "challenging"),
    ):
        try:
            await custom_objects_api.get_cluster_custom_object(
                OAUTH_GROUP, OAUTH_VERSION, OAUTH_CLIENTS_PLURAL, name
            )
        except ApiException as ex:
            if not_found_error(ex):
                return NotReady(OAUTH_CLIENT_NOT_READY, f"{label} oauthclient does not exist")
            return Failed(ex)
    return READY
