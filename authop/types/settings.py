import os
import logging
from typing import Any

logger = logging.getLogger(__name__)

_TRUE, _FALSE = {"True", "true", "yes", "1"}, {"False", "false", "no", "0"}


def _getenv(name: str, *default: Any) -> Any:
    try:
        v = os.environ[name]
        if v in _TRUE:
            return True
        elif v in _FALSE:
            return False
        else:
            return v
    except KeyError:
        pass
    if default:
        return default[0]
    raise KeyError(name)


def _parse_service_port(value: Any, fallback: int = 443) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as ex:
        logger.info(f"defaulting KAS service port to {fallback} due to parsing error: {ex}")
        return fallback


# ------------------------------------------------
# ---- Defaults and environment variables ----
# ------------------------------------------------

#: Image of the managed OAuth server
OAUTH_SERVER_IMAGE = os.environ.get("IMAGE", "")

#: Version reported for the managed OAuth server once it is available
OPERAND_IMAGE_VERSION = os.environ.get("OPERAND_IMAGE_VERSION", "")

#: Version reported for the operator itself once the operand is available
OPERATOR_IMAGE_VERSION = os.environ.get("OPERATOR_IMAGE_VERSION", "")

#: System trust bundle appended to the route CA when probing the route
SYSTEM_CA_BUNDLE_PATH = _getenv(
    "SYSTEM_CA_BUNDLE_PATH", "/etc/pki/ca-trust/extracted/pem/tls-ca-bundle.pem"
)

#: Service account CA used to verify the API server when probing .well-known
SERVICE_ACCOUNT_CA_PATH = _getenv(
    "SERVICE_ACCOUNT_CA_PATH", "/var/run/secrets/kubernetes.io/serviceaccount/ca.crt"
)

#: Seconds between periodic reconciliations of the operator config
RESYNC_INTERVAL_SECONDS = float(_getenv("RESYNC_INTERVAL_SECONDS", 60.0))

#: Timeout in seconds for a single readiness probe request
PROBE_TIMEOUT_SECONDS = float(_getenv("PROBE_TIMEOUT_SECONDS", 10.0))

#: Number of OAuth server replicas
OAUTH_SERVER_REPLICAS = int(_getenv("OAUTH_SERVER_REPLICAS", 2))

#: Number of optimistic retries when persisting operator status
STATUS_UPDATE_RETRIES = int(_getenv("STATUS_UPDATE_RETRIES", 5))

#: Port of the Prometheus metrics endpoint
METRICS_PORT = int(_getenv("METRICS_PORT", 8000))


class Settings:
    """Operator settings.

    Loaded once at startup and handed to the components that need them.
    Instances are read-only after construction.
    """

    oauth_server_image: str = OAUTH_SERVER_IMAGE
    operand_version: str = OPERAND_IMAGE_VERSION
    operator_version: str = OPERATOR_IMAGE_VERSION
    kas_service_port: int = 443
    system_ca_bundle_path: str = SYSTEM_CA_BUNDLE_PATH
    service_account_ca_path: str = SERVICE_ACCOUNT_CA_PATH
    resync_interval_seconds: float = RESYNC_INTERVAL_SECONDS
    probe_timeout_seconds: float = PROBE_TIMEOUT_SECONDS
    oauth_server_replicas: int = OAUTH_SERVER_REPLICAS
    status_update_retries: int = STATUS_UPDATE_RETRIES
    metrics_port: int = METRICS_PORT

    _frozen: bool = False

    def __init__(
        self,
        *args,
        oauth_server_image: str = None,
        operand_version: str = None,
        operator_version: str = None,
        kas_service_port: Any = None,
        system_ca_bundle_path: str = None,
        service_account_ca_path: str = None,
        resync_interval_seconds: float = None,
        probe_timeout_seconds: float = None,
        oauth_server_replicas: int = None,
        status_update_retries: int = None,
        metrics_port: int = None,
        **kwargs,
    ):
        if oauth_server_image is not None:
            self.oauth_server_image = oauth_server_image

        if operand_version is not None:
            self.operand_version = operand_version

        if operator_version is not None:
            self.operator_version = operator_version

        if kas_service_port is None:
            kas_service_port = os.environ.get("KUBERNETES_SERVICE_PORT_HTTPS")
        self.kas_service_port = _parse_service_port(kas_service_port)

        if system_ca_bundle_path is not None:
            self.system_ca_bundle_path = system_ca_bundle_path

        if service_account_ca_path is not None:
            self.service_account_ca_path = service_account_ca_path

        if resync_interval_seconds is not None:
            self.resync_interval_seconds = resync_interval_seconds

        if probe_timeout_seconds is not None:
            self.probe_timeout_seconds = probe_timeout_seconds

        if oauth_server_replicas is not None:
            self.oauth_server_replicas = oauth_server_replicas

        if status_update_retries is not None:
            self.status_update_retries = status_update_retries

        if metrics_port is not None:
            self.metrics_port = metrics_port

        self._frozen = True

    def __setattr__(self, name: str, value: Any) -> None:
        if self._frozen:
            raise AttributeError(f"Settings are read-only, cannot set `{name}`")
        super().__setattr__(name, value)
