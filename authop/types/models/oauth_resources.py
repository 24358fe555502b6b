class OAuthServerResources:
    """Encapsulates the naming scheme used for the resources which the authentication
    operator manages for the integrated OAuth server."""

    #: Namespace the OAuth server runs in
    NAMESPACE = "openshift-authentication"

    #: Namespace holding user supplied configuration (secrets, configmaps)
    USER_CONFIG_NAMESPACE = "openshift-config"

    #: Namespace holding configuration published for other components
    MANAGED_CONFIG_NAMESPACE = "openshift-config-managed"

    OPERATOR_NAMESPACE = "openshift-authentication-operator"
    OPERATOR_DEPLOYMENT_NAME = "authentication-operator"

    #: Name shared by the deployment, service and route
    NAME = "oauth-openshift"

    #: Name of all cluster-scoped configuration singletons
    GLOBAL_CONFIG_NAME = "cluster"

    CONFIG_PREFIX = "v4-0-config-"
    SYSTEM_CONFIG_PREFIX = "v4-0-config-system-"
    USER_CONFIG_PREFIX = "v4-0-config-user-"

    @classmethod
    def system_config_name(cls, name: str) -> str:
        return f"{cls.SYSTEM_CONFIG_PREFIX}{name}"

    @classmethod
    def user_config_name(cls, kind: str, name: str) -> str:
        """Returns the name under which a user resource is mirrored into the operand namespace."""
        return f"{cls.USER_CONFIG_PREFIX}{kind}-{name}"

    @classmethod
    def cli_config_name(cls) -> str:
        return cls.system_config_name("cliconfig")

    @classmethod
    def session_secret_name(cls) -> str:
        return cls.system_config_name("session")

    @classmethod
    def router_certs_name(cls) -> str:
        return cls.system_config_name("router-certs")

    @classmethod
    def service_ca_name(cls) -> str:
        return cls.system_config_name("service-ca")

    @classmethod
    def serving_cert_name(cls) -> str:
        return cls.system_config_name("serving-cert")

    @classmethod
    def route_host(cls, domain: str) -> str:
        """Returns the external host of the OAuth server route for an ingress domain."""
        return f"{cls.NAME}.{domain}"

    @classmethod
    def public_url(cls, host: str) -> str:
        return f"https://{host}"

    @classmethod
    def service_hostname(cls) -> str:
        return f"{cls.NAME}.{cls.NAMESPACE}.svc"
