from .client import OAuthProbeClient, HEALTHZ_PATH, WELL_KNOWN_PATH
from .session import ProbeResponse, SessionManager, build_ssl_context
from .error import TransportError

__all__ = [
    "OAuthProbeClient",
    "HEALTHZ_PATH",
    "WELL_KNOWN_PATH",
    "ProbeResponse",
    "SessionManager",
    "build_ssl_context",
    "TransportError",
]
