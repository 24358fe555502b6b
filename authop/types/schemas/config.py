from typing import Any
from marshmallow import fields, pre_load
from authop.types.base import JSON, BaseSchema, BaseObjectSchema, ObjectMetaSchema
from authop.types.models.config import (
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

#: Identity provider type -> key holding its provider specific configuration
IDENTITY_PROVIDER_KEYS = {
    "BasicAuth": "basicAuth",
    "GitHub": "github",
    "GitLab": "gitlab",
    "Google": "google",
    "HTPasswd": "htpasswd",
    "Keystone": "keystone",
    "LDAP": "ldap",
    "OpenID": "openID",
    "RequestHeader": "requestHeader",
}


def _ref_name(value) -> str:
    return (value or {}).get("name", "") or ""


class IngressSpecSchema(BaseSchema):
    __model__ = IngressSpec

    domain = fields.Str(load_default="")


class IngressConfigSchema(BaseObjectSchema):
    __model__ = IngressConfig
    __sections__ = ("metadata", "spec")

    metadata = fields.Nested(ObjectMetaSchema)
    spec = fields.Nested(IngressSpecSchema)


class AuthenticationSpecSchema(BaseSchema):
    __model__ = AuthenticationSpec

    type = fields.Str(load_default="")
    oauth_metadata_name = fields.Function(
        deserialize=_ref_name, data_key="oauthMetadata", load_default=""
    )


class AuthenticationStatusSchema(BaseSchema):
    __model__ = AuthenticationStatus

    integrated_oauth_metadata_name = fields.Function(
        deserialize=_ref_name, data_key="integratedOAuthMetadata", load_default=""
    )


class AuthenticationConfigSchema(BaseObjectSchema):
    __model__ = AuthenticationConfig

    metadata = fields.Nested(ObjectMetaSchema)
    spec = fields.Nested(AuthenticationSpecSchema)
    status = fields.Nested(AuthenticationStatusSchema)


class IdentityProviderSchema(BaseSchema):
    __model__ = IdentityProvider

    name = fields.Str(required=True)
    mapping_method = fields.Str(data_key="mappingMethod", load_default="claim")
    type = fields.Str(required=True)
    provider = fields.Dict(load_default=dict)

    @pre_load
    def extract_provider(self, data: JSON, **kwargs: Any) -> JSON:
        data = dict(data)
        key = IDENTITY_PROVIDER_KEYS.get(data.get("type"))
        data["provider"] = (data.get(key) if key else None) or {}
        return {
            k: v
            for k, v in data.items()
            if k in ("name", "mappingMethod", "type", "provider")
        }


class TokenConfigSchema(BaseSchema):
    __model__ = TokenConfig

    access_token_max_age_seconds = fields.Int(
        data_key="accessTokenMaxAgeSeconds", load_default=86400
    )
    access_token_inactivity_timeout = fields.Str(
        data_key="accessTokenInactivityTimeout", load_default=None, allow_none=True
    )

    @pre_load
    def default_max_age(self, data: JSON, **kwargs: Any) -> JSON:
        data = dict(data or {})
        if not data.get("accessTokenMaxAgeSeconds"):
            data.pop("accessTokenMaxAgeSeconds", None)
        return data


class OAuthTemplatesSchema(BaseSchema):
    __model__ = OAuthTemplates

    login = fields.Function(deserialize=_ref_name, load_default="")
    provider_selection = fields.Function(
        deserialize=_ref_name, data_key="providerSelection", load_default=""
    )
    error = fields.Function(deserialize=_ref_name, load_default="")


class OAuthSpecSchema(BaseSchema):
    __model__ = OAuthSpec

    identity_providers = fields.List(
        fields.Nested(IdentityProviderSchema),
        data_key="identityProviders",
        load_default=list,
    )
    token_config = fields.Nested(TokenConfigSchema, data_key="tokenConfig")
    templates = fields.Nested(OAuthTemplatesSchema)

    @pre_load
    def fill_nested(self, data: JSON, **kwargs: Any) -> JSON:
        data = dict(data or {})
        for key in ("tokenConfig", "templates"):
            if data.get(key) is None:
                data[key] = {}
        if data.get("identityProviders") is None:
            data.pop("identityProviders", None)
        return data


class OAuthConfigSchema(BaseObjectSchema):
    __model__ = OAuthConfig
    __sections__ = ("metadata", "spec")

    metadata = fields.Nested(ObjectMetaSchema)
    spec = fields.Nested(OAuthSpecSchema)


class ConsoleConfigSchema(BaseSchema):
    __model__ = ConsoleConfig

    metadata = fields.Nested(ObjectMetaSchema)
    console_url = fields.Str(data_key="consoleURL", load_default="")

    @pre_load
    def flatten(self, data: JSON, **kwargs: Any) -> JSON:
        data = data or {}
        status = data.get("status") or {}
        return {
            "metadata": data.get("metadata") or {},
            "consoleURL": status.get("consoleURL") or "",
        }


class InfrastructureConfigSchema(BaseSchema):
    __model__ = InfrastructureConfig

    metadata = fields.Nested(ObjectMetaSchema)
    api_server_url = fields.Str(data_key="apiServerURL", load_default="")
    api_server_internal_url = fields.Str(
        data_key="apiServerInternalURI", load_default=""
    )

    @pre_load
    def flatten(self, data: JSON, **kwargs: Any) -> JSON:
        data = data or {}
        status = data.get("status") or {}
        return {
            "metadata": data.get("metadata") or {},
            "apiServerURL": status.get("apiServerURL") or "",
            "apiServerInternalURI": status.get("apiServerInternalURI") or "",
        }


class APIServerConfigSchema(BaseSchema):
    __model__ = APIServerConfig

    metadata = fields.Nested(ObjectMetaSchema)
    tls_security_profile = fields.Dict(data_key="tlsSecurityProfile", load_default=dict)
    additional_cors_allowed_origins = fields.List(
        fields.Str(), data_key="additionalCORSAllowedOrigins", load_default=list
    )

    @pre_load
    def flatten(self, data: JSON, **kwargs: Any) -> JSON:
        data = data or {}
        spec = data.get("spec") or {}
        return {
            "metadata": data.get("metadata") or {},
            "tlsSecurityProfile": spec.get("tlsSecurityProfile") or {},
            "additionalCORSAllowedOrigins": spec.get("additionalCORSAllowedOrigins") or [],
        }


class ProxyConfigSchema(BaseSchema):
    __model__ = ProxyConfig

    metadata = fields.Nested(ObjectMetaSchema)
    http_proxy = fields.Str(data_key="httpProxy", load_default="")
    https_proxy = fields.Str(data_key="httpsProxy", load_default="")
    no_proxy = fields.Str(data_key="noProxy", load_default="")

    @pre_load
    def flatten(self, data: JSON, **kwargs: Any) -> JSON:
        data = data or {}
        status = data.get("status") or {}
        return {
            "metadata": data.get("metadata") or {},
            "httpProxy": status.get("httpProxy") or "",
            "httpsProxy": status.get("httpsProxy") or "",
            "noProxy": status.get("noProxy") or "",
        }
