"""Assembly of the OAuth server configuration.

Identity providers and templates reference secrets and configmaps in the
user config namespace. Each reference becomes a sync item mirrored into the
operand namespace and mounted into the OAuth server, and the provider entry
points at the mounted file.
"""
import json
import logging
from typing import Any, Dict, List, NamedTuple, Optional, Tuple
from kubernetes_asyncio.client import ApiException, V1ConfigMap, V1Secret
from marshmallow import ValidationError
from authop.resources.base import BaseResource, decode_secret_data
from authop.resources.service import (
    CONTAINER_PORT,
    SERVICE_CA_KEY,
    default_meta,
)
from authop.types.models import (
    APIServerConfig,
    ConsoleConfig,
    IdentityProvider,
    InfrastructureConfig,
    OAuthConfig,
    OAuthServerResources,
    OperatorSpec,
    ProxyConfig,
)
from authop.types.schemas import (
    APIServerConfigSchema,
    ConsoleConfigSchema,
    InfrastructureConfigSchema,
    OAuthConfigSchema,
    ProxyConfigSchema,
)
from authop.utils.errors import SyncError
from authop.utils.helpers import merge_json

logger = logging.getLogger(__name__)

CLI_CONFIG_KEY = "v4-0-config-system-cliconfig"

KAS_INTERNAL_URL = "https://kubernetes.default.svc"

SYSTEM_MOUNT_ROOT = "/var/config/system"
USER_MOUNT_ROOT = "/var/config/user"

SECRET = "secret"
CONFIG_MAP = "configmap"

# Keys of the referenced resources holding the provider data
HTPASSWD_KEY = "htpasswd"
CLIENT_SECRET_KEY = "clientSecret"
BIND_PASSWORD_KEY = "bindPassword"
CA_KEY = "ca.crt"
TLS_CERT_KEY = "tls.crt"
TLS_KEY_KEY = "tls.key"

LOGIN_TEMPLATE_KEY = "login.html"
PROVIDER_SELECTION_TEMPLATE_KEY = "providers.html"
ERROR_TEMPLATE_KEY = "errors.html"

TLS_PROFILES = {
    "Old": {
        "minTLSVersion": "VersionTLS10",
        "cipherSuites": [
            "TLS_ECDHE_ECDSA_WITH_AES_128_GCM_SHA256",
            "TLS_ECDHE_RSA_WITH_AES_128_GCM_SHA256",
            "TLS_ECDHE_ECDSA_WITH_AES_256_GCM_SHA384",
            "TLS_ECDHE_RSA_WITH_AES_256_GCM_SHA384",
            "TLS_ECDHE_ECDSA_WITH_CHACHA20_POLY1305_SHA256",
            "TLS_ECDHE_RSA_WITH_CHACHA20_POLY1305_SHA256",
            "TLS_ECDHE_ECDSA_WITH_AES_128_CBC_SHA",
            "TLS_ECDHE_RSA_WITH_AES_128_CBC_SHA",
            "TLS_ECDHE_ECDSA_WITH_AES_256_CBC_SHA",
            "TLS_ECDHE_RSA_WITH_AES_256_CBC_SHA",
            "TLS_RSA_WITH_AES_128_GCM_SHA256",
            "TLS_RSA_WITH_AES_256_GCM_SHA384",
            "TLS_RSA_WITH_AES_128_CBC_SHA",
            "TLS_RSA_WITH_AES_256_CBC_SHA",
        ],
    },
    "Intermediate": {
        "minTLSVersion": "VersionTLS12",
        "cipherSuites": [
            "TLS_ECDHE_ECDSA_WITH_AES_128_GCM_SHA256",
            "TLS_ECDHE_RSA_WITH_AES_128_GCM_SHA256",
            "TLS_ECDHE_ECDSA_WITH_AES_256_GCM_SHA384",
            "TLS_ECDHE_RSA_WITH_AES_256_GCM_SHA384",
            "TLS_ECDHE_ECDSA_WITH_CHACHA20_POLY1305_SHA256",
            "TLS_ECDHE_RSA_WITH_CHACHA20_POLY1305_SHA256",
        ],
    },
    "Modern": {
        "minTLSVersion": "VersionTLS13",
        "cipherSuites": [],
    },
}
DEFAULT_TLS_PROFILE = "Intermediate"


class SyncItem(NamedTuple):
    """A user resource mirrored into the operand namespace."""

    kind: str
    source: str
    dest: str
    key: str

    @property
    def mount_path(self) -> str:
        return f"{USER_MOUNT_ROOT}/{self.dest}"

    @property
    def path(self) -> str:
        return f"{self.mount_path}/{self.key}"


class ConfigSyncData:
    """Resources the OAuth server needs mirrored before it can start."""

    def __init__(self) -> None:
        self._items: Dict[str, SyncItem] = {}

    def _add(self, kind: str, source: str, dest: str, key: str) -> str:
        if not source:
            return ""
        item = SyncItem(kind, source, OAuthServerResources.user_config_name(kind, dest), key)
        self._items[item.dest] = item
        return item.path

    def add_idp_secret(self, index: int, field: str, source: str, key: str) -> str:
        return self._add(SECRET, source, f"idp-{index}-{field}", key)

    def add_idp_config_map(self, index: int, field: str, source: str, key: str) -> str:
        return self._add(CONFIG_MAP, source, f"idp-{index}-{field}", key)

    def add_template_secret(self, field: str, source: str, key: str) -> str:
        return self._add(SECRET, source, f"template-{field}", key)

    @property
    def items(self) -> List[SyncItem]:
        return list(self._items.values())

    @property
    def secrets(self) -> List[SyncItem]:
        return [item for item in self._items.values() if item.kind == SECRET]

    def __len__(self) -> int:
        return len(self._items)


def _ref(provider: Dict[str, Any], field: str) -> str:
    return (provider.get(field) or {}).get("name") or ""


def _provider_kind(kind: str, **fields: Any) -> Dict[str, Any]:
    provider = {"apiVersion": "v1", "kind": kind}
    provider.update({k: v for k, v in fields.items() if v not in (None, "", [], {})})
    return provider


def _file_ref(path: str) -> Optional[Dict[str, str]]:
    return {"file": path} if path else None


def convert_identity_provider(
    index: int, idp: IdentityProvider, sync: ConfigSyncData
) -> Dict[str, Any]:
    """Translate a cluster identity provider into an OAuth server provider entry."""
    p = idp.provider
    challenge, login = True, True

    if idp.type == "HTPasswd":
        provider = _provider_kind(
            "HTPasswdPasswordIdentityProvider",
            file=sync.add_idp_secret(index, "file-data", _ref(p, "fileData"), HTPASSWD_KEY),
        )
    elif idp.type == "LDAP":
        provider = _provider_kind(
            "LDAPPasswordIdentityProvider",
            url=p.get("url"),
            bindDN=p.get("bindDN"),
            bindPassword=_file_ref(
                sync.add_idp_secret(index, "bind-password", _ref(p, "bindPassword"), BIND_PASSWORD_KEY)
            ),
            insecure=p.get("insecure", False),
            ca=sync.add_idp_config_map(index, "ca", _ref(p, "ca"), CA_KEY),
            attributes=p.get("attributes"),
        )
    elif idp.type == "GitHub":
        challenge = False
        provider = _provider_kind(
            "GitHubIdentityProvider",
            clientID=p.get("clientID"),
            clientSecret=_file_ref(
                sync.add_idp_secret(index, "client-secret", _ref(p, "clientSecret"), CLIENT_SECRET_KEY)
            ),
            organizations=p.get("organizations"),
            teams=p.get("teams"),
            hostname=p.get("hostname"),
            ca=sync.add_idp_config_map(index, "ca", _ref(p, "ca"), CA_KEY),
        )
    elif idp.type == "GitLab":
        provider = _provider_kind(
            "GitLabIdentityProvider",
            url=p.get("url"),
            clientID=p.get("clientID"),
            clientSecret=_file_ref(
                sync.add_idp_secret(index, "client-secret", _ref(p, "clientSecret"), CLIENT_SECRET_KEY)
            ),
            ca=sync.add_idp_config_map(index, "ca", _ref(p, "ca"), CA_KEY),
        )
    elif idp.type == "Google":
        challenge = False
        provider = _provider_kind(
            "GoogleIdentityProvider",
            clientID=p.get("clientID"),
            clientSecret=_file_ref(
                sync.add_idp_secret(index, "client-secret", _ref(p, "clientSecret"), CLIENT_SECRET_KEY)
            ),
            hostedDomain=p.get("hostedDomain"),
        )
    elif idp.type == "OpenID":
        challenge = False
        provider = _provider_kind(
            "OpenIDIdentityProvider",
            issuer=p.get("issuer"),
            clientID=p.get("clientID"),
            clientSecret=_file_ref(
                sync.add_idp_secret(index, "client-secret", _ref(p, "clientSecret"), CLIENT_SECRET_KEY)
            ),
            ca=sync.add_idp_config_map(index, "ca", _ref(p, "ca"), CA_KEY),
            extraScopes=p.get("extraScopes"),
            extraAuthorizeParameters=p.get("extraAuthorizeParameters"),
            claims=p.get("claims"),
        )
    elif idp.type in ("BasicAuth", "Keystone"):
        kind = (
            "BasicAuthPasswordIdentityProvider"
            if idp.type == "BasicAuth"
            else "KeystonePasswordIdentityProvider"
        )
        provider = _provider_kind(
            kind,
            url=p.get("url"),
            domainName=p.get("domainName"),
            ca=sync.add_idp_config_map(index, "ca", _ref(p, "ca"), CA_KEY),
            certFile=sync.add_idp_secret(index, "tls-client-cert", _ref(p, "tlsClientCert"), TLS_CERT_KEY),
            keyFile=sync.add_idp_secret(index, "tls-client-key", _ref(p, "tlsClientKey"), TLS_KEY_KEY),
        )
    elif idp.type == "RequestHeader":
        challenge = bool(p.get("challengeURL"))
        login = bool(p.get("loginURL"))
        provider = _provider_kind(
            "RequestHeaderIdentityProvider",
            loginURL=p.get("loginURL"),
            challengeURL=p.get("challengeURL"),
            clientCA=sync.add_idp_config_map(index, "ca", _ref(p, "ca"), CA_KEY),
            clientCommonNames=p.get("clientCommonNames"),
            headers=p.get("headers"),
            preferredUsernameHeaders=p.get("preferredUsernameHeaders"),
            nameHeaders=p.get("nameHeaders"),
            emailHeaders=p.get("emailHeaders"),
        )
    else:
        raise SyncError(f"the identity provider type '{idp.type}' is not supported")

    return {
        "name": idp.name,
        "challenge": challenge,
        "login": login,
        "mappingMethod": idp.mapping_method or "claim",
        "provider": provider,
    }


def convert_templates(oauth: OAuthConfig, sync: ConfigSyncData) -> Optional[Dict[str, str]]:
    templates = {
        "login": sync.add_template_secret(
            "login", oauth.spec.templates.login, LOGIN_TEMPLATE_KEY
        ),
        "providerSelection": sync.add_template_secret(
            "provider-selection",
            oauth.spec.templates.provider_selection,
            PROVIDER_SELECTION_TEMPLATE_KEY,
        ),
        "error": sync.add_template_secret("error", oauth.spec.templates.error, ERROR_TEMPLATE_KEY),
    }
    templates = {k: v for k, v in templates.items() if v}
    return templates or None


def tls_profile(api_server: APIServerConfig) -> Dict[str, Any]:
    profile = api_server.tls_security_profile or {}
    profile_type = profile.get("type") or DEFAULT_TLS_PROFILE
    if profile_type == "Custom":
        custom = profile.get("custom") or {}
        return {
            "minTLSVersion": custom.get("minTLSVersion")
            or TLS_PROFILES[DEFAULT_TLS_PROFILE]["minTLSVersion"],
            "cipherSuites": list(custom.get("ciphers") or []),
        }
    return dict(TLS_PROFILES.get(profile_type, TLS_PROFILES[DEFAULT_TLS_PROFILE]))


def system_secret_path(name: str, key: str) -> str:
    return f"{SYSTEM_MOUNT_ROOT}/secrets/{name}/{key}"


def system_config_map_path(name: str, key: str) -> str:
    return f"{SYSTEM_MOUNT_ROOT}/configmaps/{name}/{key}"


def named_certificates(router_secret: Optional[V1Secret]) -> List[Dict[str, Any]]:
    """Serve each router certificate for its own wildcard domain."""
    name = OAuthServerResources.router_certs_name()
    return [
        {
            "names": [f"*.{domain}"],
            "certFile": system_secret_path(name, domain),
            "keyFile": system_secret_path(name, domain),
        }
        for domain in sorted(decode_secret_data(router_secret))
    ]


def prepare_cli_config(
    operator_spec: OperatorSpec,
    oauth: OAuthConfig,
    host: str,
    router_secret: Optional[V1Secret],
    console: ConsoleConfig,
    infrastructure: InfrastructureConfig,
    api_server: APIServerConfig,
) -> Tuple[Dict[str, Any], ConfigSyncData]:
    """Build the OAuth server config document and the resources it needs synced."""
    sync = ConfigSyncData()
    identity_providers = [
        convert_identity_provider(i, idp, sync)
        for i, idp in enumerate(oauth.spec.identity_providers)
    ]
    token_config = {
        "authorizeTokenMaxAgeSeconds": 300,
        "accessTokenMaxAgeSeconds": oauth.spec.token_config.access_token_max_age_seconds,
    }
    if oauth.spec.token_config.access_token_inactivity_timeout:
        token_config["accessTokenInactivityTimeout"] = (
            oauth.spec.token_config.access_token_inactivity_timeout
        )

    serving_cert = OAuthServerResources.serving_cert_name()
    session = OAuthServerResources.session_secret_name()
    public_url = OAuthServerResources.public_url(host)
    config = {
        "apiVersion": "osin.config.openshift.io/v1",
        "kind": "OsinServerConfig",
        "servingInfo": {
            "bindAddress": f"0.0.0.0:{CONTAINER_PORT}",
            "bindNetwork": "tcp",
            "certFile": system_secret_path(serving_cert, "tls.crt"),
            "keyFile": system_secret_path(serving_cert, "tls.key"),
            "maxRequestsInFlight": 1000,
            "requestTimeoutSeconds": 300,
            "namedCertificates": named_certificates(router_secret),
            **tls_profile(api_server),
        },
        "corsAllowedOrigins": list(api_server.additional_cors_allowed_origins),
        "oauthConfig": {
            "masterCA": system_config_map_path(
                OAuthServerResources.service_ca_name(), SERVICE_CA_KEY
            ),
            "masterURL": infrastructure.api_server_internal_url or KAS_INTERNAL_URL,
            "masterPublicURL": public_url,
            "loginURL": infrastructure.api_server_url,
            "assetPublicURL": console.console_url,
            "alwaysShowProviderSelection": False,
            "identityProviders": identity_providers,
            "grantConfig": {"method": "deny", "serviceAccountMethod": "prompt"},
            "sessionConfig": {
                "sessionSecretsFile": system_secret_path(session, session),
                "sessionMaxAgeSeconds": 300,
                "sessionName": "ssn",
            },
            "tokenConfig": token_config,
            "templates": convert_templates(oauth, sync),
        },
    }
    if operator_spec.observed_config:
        config = merge_json(config, operator_spec.observed_config)
    if operator_spec.unsupported_config_overrides:
        config = merge_json(config, operator_spec.unsupported_config_overrides)
    return config, sync


def prepare_cli_config_map(config: Dict[str, Any]) -> V1ConfigMap:
    return V1ConfigMap(
        api_version="v1",
        kind="ConfigMap",
        metadata=default_meta(OAuthServerResources.cli_config_name()),
        data={CLI_CONFIG_KEY: json.dumps(config, sort_keys=True)},
    )


async def _load_config(res: BaseResource, plural: str, schema) -> Any:
    """Read a cluster config, falling back to an empty one on any error."""
    try:
        body = await res.fetch_config(plural)
        return schema().load(body or {})
    except (ApiException, ValidationError) as ex:
        logger.warning(f"error getting {plural}.config.openshift.io/cluster: {ex}")
        return schema().load({})


async def handle_console_config(res: BaseResource) -> ConsoleConfig:
    return await _load_config(res, "consoles", ConsoleConfigSchema)


async def handle_infrastructure_config(res: BaseResource) -> InfrastructureConfig:
    return await _load_config(res, "infrastructures", InfrastructureConfigSchema)


async def handle_api_server_config(res: BaseResource) -> APIServerConfig:
    return await _load_config(res, "apiservers", APIServerConfigSchema)


async def handle_proxy_config(res: BaseResource) -> ProxyConfig:
    return await _load_config(res, "proxies", ProxyConfigSchema)


async def handle_oauth_config(res: BaseResource) -> OAuthConfig:
    """Read the cluster OAuth config; an absent one means no identity providers."""
    body = await res.fetch_config("oauths")
    return OAuthConfigSchema().load(body or {})
