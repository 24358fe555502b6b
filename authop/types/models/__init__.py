from .operator import (
    MANAGED,
    OperatorSpec,
    OperatorStatus,
    AuthenticationOperator,
)
from .config import (
    AUTHENTICATION_TYPE_INTEGRATED,
    ConfigResource,
    IngressConfig,
    IngressSpec,
    AuthenticationConfig,
    AuthenticationSpec,
    AuthenticationStatus,
    IdentityProvider,
    TokenConfig,
    OAuthTemplates,
    OAuthSpec,
    OAuthConfig,
    ConsoleConfig,
    InfrastructureConfig,
    APIServerConfig,
    ProxyConfig,
)
from .workload import WorkloadRecord
from .oauth_resources import OAuthServerResources

__all__ = [
    "MANAGED",
    "OperatorSpec",
    "OperatorStatus",
    "AuthenticationOperator",
    "AUTHENTICATION_TYPE_INTEGRATED",
    "ConfigResource",
    "IngressConfig",
    "IngressSpec",
    "AuthenticationConfig",
    "AuthenticationSpec",
    "AuthenticationStatus",
    "IdentityProvider",
    "TokenConfig",
    "OAuthTemplates",
    "OAuthSpec",
    "OAuthConfig",
    "ConsoleConfig",
    "InfrastructureConfig",
    "APIServerConfig",
    "ProxyConfig",
    "WorkloadRecord",
    "OAuthServerResources",
]
