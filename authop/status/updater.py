import copy
import logging
from typing import Any, Callable, Dict
from kubernetes_asyncio.client import ApiException, CustomObjectsApi
from authop.utils.errors import conflict_error

logger = logging.getLogger(__name__)

StatusMutation = Callable[[Dict[str, Any]], None]


class StatusUpdater:
    """Persists the status of the operator configuration object.

    The mutation receives a copy of the freshly read status and edits it in
    place. The result is written through the status subresource guarded by
    the read resourceVersion; conflicts are retried with a fresh read.
    """

    GROUP = "operator.openshift.io"
    VERSION = "v1"
    PLURAL = "authentications"

    def __init__(
        self,
        custom_objects_api: CustomObjectsApi,
        name: str = "cluster",
        retries: int = 5,
    ):
        self.custom_objects_api = custom_objects_api
        self.name = name
        self.retries = max(retries, 1)

    async def update_status(self, mutate: StatusMutation) -> Dict[str, Any]:
        last_error: ApiException = None
        for attempt in range(self.retries):
            current = await self.custom_objects_api.get_cluster_custom_object(
                group=self.GROUP,
                version=self.VERSION,
                plural=self.PLURAL,
                name=self.name,
            )
            original_status = current.get("status") or {}
            status = copy.deepcopy(original_status)
            mutate(status)
            if status == original_status:
                return current

            body = {
                "apiVersion": f"{self.GROUP}/{self.VERSION}",
                "kind": current.get("kind", "Authentication"),
                "metadata": {
                    "name": self.name,
                    "resourceVersion": current["metadata"]["resourceVersion"],
                },
                "status": status,
            }
            try:
                return await self.custom_objects_api.replace_cluster_custom_object_status(
                    group=self.GROUP,
                    version=self.VERSION,
                    plural=self.PLURAL,
                    name=self.name,
                    body=body,
                )
            except ApiException as ex:
                if not conflict_error(ex):
                    raise
                last_error = ex
                logger.debug(
                    f"Conflict updating status of {self.PLURAL}/{self.name} (attempt {attempt + 1})"
                )
        raise last_error
