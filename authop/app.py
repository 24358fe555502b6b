import asyncio
import kopf
import logging
import authop.handlers.authentication as authentication
import authop.handlers.probes as probes
from authop.types.settings import Settings
from authop.resources.bootstrap import BootstrapRolloutState
from authop.resources.oauthserver import OAuthServer
from authop.web import OAuthProbeClient
from authop.sensors import init_metrics_server, SensorDelegate, PrometheusMonitor
from kubernetes_asyncio import config
from kubernetes_asyncio.client import AppsV1Api, CoreV1Api, CustomObjectsApi
from kubernetes_asyncio.client.api_client import ApiClient


def read_system_ca_bundle(path: str, logger: logging.Logger) -> bytes:
    """System trust bundle, empty when it cannot be read."""
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError as e:
        logger.warning(f"Unable to read system CA from {path}: {e}")
        return b""


# Configure Kopf settings
@kopf.on.startup()
async def setup(
    settings: kopf.OperatorSettings, memo: kopf.Memo, logger: logging.Logger, **kwargs
):
    # Load Kubernetes config - try in-cluster first (for production), then local kubeconfig (for dev)
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        logger.info("In-cluster config not found, trying local kubeconfig")
        try:
            await config.load_kube_config()
            logger.info("Loaded local Kubernetes configuration")
        except config.ConfigException as e:
            logger.error(f"Failed to load Kubernetes configuration: {e}")
            raise

    memo.conf = Settings()

    # Create a shared ApiClient for all resources to prevent connection leaks
    shared_client = ApiClient()
    memo.shared_api_client = shared_client
    logger.info("Shared Kubernetes API client initialized")

    memo.probe_client = OAuthProbeClient(timeout=memo.conf.probe_timeout_seconds)

    # Initialize sensor infrastructure
    sensor_delegate = SensorDelegate()
    prometheus_monitor = PrometheusMonitor()
    sensor_delegate.add(prometheus_monitor)
    memo.sensor = sensor_delegate
    logger.info("Sensor infrastructure initialized with PrometheusMonitor")

    # Initialize Prometheus metrics server
    try:
        init_metrics_server(memo.conf.metrics_port)
    except OSError as e:
        logger.error(f"Failed to start metrics server: {e}")
        # Don't fail operator startup if metrics server fails
        logger.warning("Continuing without metrics server")

    memo.oauth_server = OAuthServer(
        memo.conf,
        CoreV1Api(shared_client),
        AppsV1Api(shared_client),
        CustomObjectsApi(shared_client),
        memo.probe_client,
        sensor=sensor_delegate,
        system_ca_bundle=read_system_ca_bundle(memo.conf.system_ca_bundle_path, logger),
    )
    memo.bootstrap_state = await BootstrapRolloutState.detect(
        memo.oauth_server.bootstrap_getter
    )
    logger.info(f"Bootstrap user state: {memo.bootstrap_state}")
    memo.sync_lock = asyncio.Lock()

    # A single object is reconciled, one worker is enough
    settings.batching.worker_limit = 1

    # Post events to the Kubernetes API for warnings and above
    settings.posting.enabled = True
    settings.posting.level = logging.WARNING


@kopf.on.cleanup()
async def cleanup(memo: kopf.Memo, logger: logging.Logger, **kwargs):
    """Cleanup handler for operator shutdown."""
    logger.info("Shutting down operator...")

    # Close the shared API client
    if getattr(memo, "shared_api_client", None):
        await memo.shared_api_client.close()
        logger.info("Shared API client closed")

    # Close the probe client
    if getattr(memo, "probe_client", None):
        await memo.probe_client.close()
        logger.info("Probe client closed")

    logger.info("Operator shutdown complete")


__all__ = [
    "authentication",
    "probes",
]
