"""Tracks removal of the bootstrap `kubeadmin` user.

Deleting the bootstrap user must restart the OAuth server once so that it
stops accepting the user's credentials.
"""
import logging
from datetime import timedelta
from kubernetes_asyncio.client import ApiException
from authop.resources.base import BaseResource
from authop.utils.helpers import iso_datestr_to_datetime

logger = logging.getLogger(__name__)

BOOTSTRAP_USER_NAMESPACE = "kube-system"
BOOTSTRAP_USER_SECRET = "kubeadmin"

#: The secret only counts when created this soon after its namespace
BOOTSTRAP_USER_WINDOW = timedelta(hours=1)


class BootstrapUserDataGetter:
    """Looks up the bootstrap user secret."""

    def __init__(self, res: BaseResource):
        self.res = res

    async def is_enabled(self) -> bool:
        """Whether the bootstrap user exists.

        A secret created long after the cluster itself was not created by the
        installer and does not count.
        """
        secret = await self.res.fetch_secret(BOOTSTRAP_USER_SECRET, BOOTSTRAP_USER_NAMESPACE)
        if secret is None or secret.metadata.deletion_timestamp is not None:
            return False
        namespace = await self.res.fetch_namespace(BOOTSTRAP_USER_NAMESPACE)
        if namespace is None:
            return False
        created = iso_datestr_to_datetime(secret.metadata.creation_timestamp)
        namespace_created = iso_datestr_to_datetime(namespace.metadata.creation_timestamp)
        return created - namespace_created < BOOTSTRAP_USER_WINDOW


class BootstrapRolloutState:
    """Whether a bootstrap user removal still has to force a rollout.

    Owned by the caller and carried between sync cycles.
    """

    armed: bool

    def __init__(self, armed: bool = False):
        self.armed = armed

    @classmethod
    async def detect(cls, getter: BootstrapUserDataGetter) -> "BootstrapRolloutState":
        """Arm the state when the bootstrap user exists or its state is unknown."""
        try:
            armed = await getter.is_enabled()
        except (ApiException, ValueError) as ex:
            logger.warning(f"Unable to determine the state of bootstrap user: {ex}")
            armed = True
        return cls(armed)

    async def edge(self, getter: BootstrapUserDataGetter) -> bool:
        """Return True exactly once, on the first cycle the user is seen gone."""
        if not self.armed:
            return False
        try:
            exists = await getter.is_enabled()
        except (ApiException, ValueError) as ex:
            logger.warning(f"Unable to determine the state of bootstrap user: {ex}")
            return False
        if exists:
            return False
        self.armed = False
        return True

    def __repr__(self) -> str:
        return f"BootstrapRolloutState(armed={self.armed})"
