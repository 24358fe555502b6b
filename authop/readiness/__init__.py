from .result import READY, Ready, NotReady, Failed, Outcome
from .chain import AS_EXPECTED, Stage, ReadinessReport, evaluate, apply_outcome
from .route import ROUTE_NOT_READY, check_route_health, route_ca_bundle
from .wellknown import WELL_KNOWN_NOT_READY, check_well_known_ready
from .oauthclients import OAUTH_CLIENT_NOT_READY, check_oauth_clients_ready
from .deployment import DEPLOYMENT_NOT_READY, check_deployment_ready

__all__ = [
    "READY",
    "Ready",
    "NotReady",
    "Failed",
    "Outcome",
    "AS_EXPECTED",
    "Stage",
    "ReadinessReport",
    "evaluate",
    "apply_outcome",
    "ROUTE_NOT_READY",
    "check_route_health",
    "route_ca_bundle",
    "WELL_KNOWN_NOT_READY",
    "check_well_known_ready",
    "OAUTH_CLIENT_NOT_READY",
    "check_oauth_clients_ready",
    "DEPLOYMENT_NOT_READY",
    "check_deployment_ready",
]
