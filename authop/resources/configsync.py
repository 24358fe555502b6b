"""Mirrors user configuration into the operand namespace."""
import logging
from kubernetes_asyncio.client import V1ConfigMap, V1Secret
from authop.common.models import VersionFingerprint
from authop.resources.base import BaseResource
from authop.resources.oauthconfig import CONFIG_MAP, SECRET, ConfigSyncData, SyncItem
from authop.resources.service import default_meta
from authop.types.models import OAuthServerResources

logger = logging.getLogger(__name__)


async def sync_item(res: BaseResource, item: SyncItem) -> None:
    """Copy the source resource to its destination name.

    A missing source removes the destination.
    """
    source_namespace = OAuthServerResources.USER_CONFIG_NAMESPACE
    namespace = OAuthServerResources.NAMESPACE
    if item.kind == SECRET:
        source = await res.fetch_secret(item.source, source_namespace)
        if source is None:
            logger.warning(f"secret {source_namespace}/{item.source} not found, removing {item.dest}")
            await res.delete_secret(item.dest, namespace)
            return
        await res.apply_secret(
            V1Secret(
                api_version="v1",
                kind="Secret",
                metadata=default_meta(item.dest),
                data=dict(source.data or {}),
                type=source.type,
            )
        )
    else:
        source = await res.fetch_config_map(item.source, source_namespace)
        if source is None:
            logger.warning(
                f"configmap {source_namespace}/{item.source} not found, removing {item.dest}"
            )
            await res.delete_config_map(item.dest, namespace)
            return
        await res.apply_config_map(
            V1ConfigMap(
                api_version="v1",
                kind="ConfigMap",
                metadata=default_meta(item.dest),
                data=dict(source.data or {}),
            )
        )


async def handle_config_sync(res: BaseResource, sync: ConfigSyncData) -> None:
    """Apply every sync item, then delete stale user resources."""
    for item in sync.items:
        await sync_item(res, item)

    namespace = OAuthServerResources.NAMESPACE
    prefix = OAuthServerResources.USER_CONFIG_PREFIX
    wanted = {(item.kind, item.dest) for item in sync.items}

    for config_map in await res.list_config_maps(namespace):
        name = config_map.metadata.name
        if name.startswith(prefix) and (CONFIG_MAP, name) not in wanted:
            await res.delete_config_map(name, namespace)

    for secret in await res.list_secrets(namespace):
        name = secret.metadata.name
        if name.startswith(prefix) and (SECRET, name) not in wanted:
            await res.delete_secret(name, namespace)


async def config_resource_versions(res: BaseResource) -> VersionFingerprint:
    """Versions of every operator managed configmap and secret, by name."""
    namespace = OAuthServerResources.NAMESPACE
    prefix = OAuthServerResources.CONFIG_PREFIX
    fingerprint = VersionFingerprint()
    for source, items in (
        ("configmaps", await res.list_config_maps(namespace)),
        ("secrets", await res.list_secrets(namespace)),
    ):
        for obj in sorted(items, key=lambda o: o.metadata.name):
            if obj.metadata.name.startswith(prefix):
                fingerprint.add(source, obj.metadata.name, obj.metadata.resource_version)
    return fingerprint
