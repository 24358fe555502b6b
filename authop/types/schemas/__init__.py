from .operator import (
    OperatorSpecSchema,
    OperatorStatusSchema,
    AuthenticationOperatorSchema,
)
from .config import (
    IDENTITY_PROVIDER_KEYS,
    IngressConfigSchema,
    AuthenticationConfigSchema,
    IdentityProviderSchema,
    OAuthConfigSchema,
    ConsoleConfigSchema,
    InfrastructureConfigSchema,
    APIServerConfigSchema,
    ProxyConfigSchema,
)

__all__ = [
    "OperatorSpecSchema",
    "OperatorStatusSchema",
    "AuthenticationOperatorSchema",
    "IDENTITY_PROVIDER_KEYS",
    "IngressConfigSchema",
    "AuthenticationConfigSchema",
    "IdentityProviderSchema",
    "OAuthConfigSchema",
    "ConsoleConfigSchema",
    "InfrastructureConfigSchema",
    "APIServerConfigSchema",
    "ProxyConfigSchema",
]
