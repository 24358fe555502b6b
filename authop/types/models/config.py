from typing import Any, Dict, List, Optional
from authop.types.base import BaseModel, ObjectMeta

AUTHENTICATION_TYPE_INTEGRATED = "IntegratedOAuth"


class ConfigResource(BaseModel):
    """A cluster-scoped configuration input, versioned by its resource version."""

    metadata: ObjectMeta

    @property
    def name(self) -> str:
        return self.metadata.name if self.metadata else ""

    @property
    def resource_version(self) -> str:
        return self.metadata.resource_version if self.metadata else ""


class IngressSpec(BaseModel):
    domain: str


class IngressConfig(ConfigResource):
    spec: IngressSpec


class AuthenticationSpec(BaseModel):
    type: str
    oauth_metadata_name: str


class AuthenticationStatus(BaseModel):
    integrated_oauth_metadata_name: str


class AuthenticationConfig(ConfigResource):
    spec: AuthenticationSpec
    status: AuthenticationStatus

    @property
    def integrated(self) -> bool:
        return self.spec.type in ("", AUTHENTICATION_TYPE_INTEGRATED)


class IdentityProvider(BaseModel):
    name: str
    mapping_method: str
    type: str
    provider: Dict[str, Any]


class TokenConfig(BaseModel):
    access_token_max_age_seconds: int
    access_token_inactivity_timeout: Optional[str]


class OAuthTemplates(BaseModel):
    login: str
    provider_selection: str
    error: str


class OAuthSpec(BaseModel):
    identity_providers: List[IdentityProvider]
    token_config: TokenConfig
    templates: OAuthTemplates


class OAuthConfig(ConfigResource):
    spec: OAuthSpec


class ConsoleConfig(ConfigResource):
    console_url: str


class InfrastructureConfig(ConfigResource):
    api_server_url: str
    api_server_internal_url: str


class APIServerConfig(ConfigResource):
    tls_security_profile: Dict[str, Any]
    additional_cors_allowed_origins: List[str]


class ProxyConfig(ConfigResource):
    http_proxy: str
    https_proxy: str
    no_proxy: str
