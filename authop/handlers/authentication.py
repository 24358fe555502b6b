import aiohttp
import asyncio
import copy
import kopf
import logging
from logging import Logger
from typing import Any, Dict
from kubernetes_asyncio.client import ApiException
from authop.types.models import OAuthServerResources
from authop.types.settings import RESYNC_INTERVAL_SECONDS
from authop.utils.errors import OperatorError, convert_api_exception

GROUP = "operator.openshift.io"
VERSION = "v1"
PLURAL = "authentications"
RESOURCE = (GROUP, VERSION, PLURAL)

RESYNC_TIMER_ID = "resync"

#: Seconds kopf waits before retrying a failed cycle
RETRY_DELAY = 10


class TimerSuccessFilter(logging.Filter):
    """Drops the per-tick success messages of the resync timer."""

    def filter(self, record: logging.LogRecord) -> bool:
        return not (
            RESYNC_TIMER_ID in record.getMessage()
            and record.getMessage().endswith("succeeded.")
        )


logging.getLogger("kopf.objects").addFilter(TimerSuccessFilter())


def is_cluster_config(name: str, **kwargs) -> bool:
    """Only the singleton operator config is reconciled."""
    return name == OAuthServerResources.GLOBAL_CONFIG_NAME


async def reconcile(
    body: Dict[str, Any], memo: kopf.Memo, logger: Logger, trigger_source: str
) -> None:
    """Run one sync cycle, converting failures for kopf to retry."""
    # Timers run next to change handlers, cycles must not overlap
    async with memo.sync_lock:
        try:
            await memo.oauth_server.sync(
                copy.deepcopy(dict(body)), memo.bootstrap_state, trigger_source
            )
        except ApiException as ex:
            logger.error(f"Failed to update operator status: {ex}")
            convert_api_exception(ex, permanent=False)
        except OperatorError as ex:
            logger.error(f"Sync of the OAuth server failed: {ex}")
            raise kopf.TemporaryError(str(ex), delay=RETRY_DELAY) from ex
        except (aiohttp.ClientError, asyncio.TimeoutError) as ex:
            logger.exception(f"Unexpected failure during sync: {ex}")
            raise kopf.TemporaryError(str(ex), delay=RETRY_DELAY) from ex


@kopf.on.resume(*RESOURCE, when=is_cluster_config)
@kopf.on.create(*RESOURCE, when=is_cluster_config)
async def on_create(body, memo: kopf.Memo, logger: Logger, **kwargs):
    """Reconciles the OAuth server when the operator config appears."""
    await reconcile(body, memo, logger, trigger_source="create")


@kopf.on.update(*RESOURCE, when=is_cluster_config)
async def on_update(body, memo: kopf.Memo, logger: Logger, **kwargs):
    """Reconciles the OAuth server after a change of the operator config."""
    await reconcile(body, memo, logger, trigger_source="update")


@kopf.timer(
    *RESOURCE,
    id=RESYNC_TIMER_ID,
    when=is_cluster_config,
    initial_delay=5.0,
    interval=RESYNC_INTERVAL_SECONDS,
)
async def on_resync(body, memo: kopf.Memo, logger: Logger, **kwargs):
    """Periodic reconciliation.

    Changes of the ingress, the route, the identity provider configuration or
    the mirrored user resources are picked up here, as is readiness of the
    OAuth server after a rollout.
    """
    await reconcile(body, memo, logger, trigger_source="timer")
