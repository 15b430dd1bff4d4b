"""Configuration management for GitHub Actions private networking on Azure."""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Mapping, NamedTuple, Optional, Sequence

from netutils.ip import is_ip_within, is_network

TEMPLATES_DIRECTORY: Final[Path] = Path(__file__).parent / "templates"

# Defaults used when the matching environment variable is not set
DEFAULT_API_VERSION: Final[str] = "2024-04-02"
DEFAULT_CUSTOM_ROLE_NAME: Final[str] = "GitHubActionsNetworkRole"
DEFAULT_ADDRESS_PREFIX: Final[str] = "10.0.0.0/16"
DEFAULT_SUBNET_PREFIX: Final[str] = "10.0.0.0/24"
DEFAULT_NSG_TEMPLATE_FILE: Final[Path] = TEMPLATES_DIRECTORY / "actions-nsg-deployment.bicep"
DEFAULT_CLI_TIMEOUT: Final[int] = 600

PROVIDER_NAMESPACE: Final[str] = "GitHub.Network"
NETWORK_SETTINGS_RESOURCE_TYPE: Final[str] = "GitHub.Network/networkSettings"


class ServicePrincipal(NamedTuple):
    """A GitHub-owned service principal that receives the custom role."""

    name: str
    app_id: str


# GitHub Actions service principal IDs
GITHUB_CPS_NETWORK_SERVICE: Final[ServicePrincipal] = ServicePrincipal(
    "GitHub CPS Network Service", "85c49807-809d-4249-86e7-192762525474"
)
GITHUB_ACTIONS_API: Final[ServicePrincipal] = ServicePrincipal(
    "GitHub Actions API", "4435c199-c3da-46b9-a61d-76de3f2c9f82"
)
SERVICE_PRINCIPALS: Final[tuple[ServicePrincipal, ...]] = (
    GITHUB_CPS_NETWORK_SERVICE,
    GITHUB_ACTIONS_API,
)

# Environment variable name -> NetworkConfig field
ENVIRONMENT_FIELDS: Final[dict[str, str]] = {
    "AZURE_LOCATION": "location",
    "SUBSCRIPTION_ID": "subscription_id",
    "RESOURCE_GROUP_NAME": "resource_group_name",
    "VNET_NAME": "vnet_name",
    "SUBNET_NAME": "subnet_name",
    "NSG_NAME": "nsg_name",
    "NETWORK_SETTINGS_RESOURCE_NAME": "network_settings_resource_name",
    "DATABASE_ID": "database_id",
    "API_VERSION": "api_version",
    "CUSTOM_ROLE_NAME": "custom_role_name",
    "ADDRESS_PREFIX": "address_prefix",
    "SUBNET_PREFIX": "subnet_prefix",
}

PROVISIONING_VARIABLES: Final[tuple[str, ...]] = (
    "AZURE_LOCATION",
    "SUBSCRIPTION_ID",
    "RESOURCE_GROUP_NAME",
    "VNET_NAME",
    "SUBNET_NAME",
    "NSG_NAME",
    "NETWORK_SETTINGS_RESOURCE_NAME",
    "DATABASE_ID",
)
CLEANUP_VARIABLES: Final[tuple[str, ...]] = ("SUBSCRIPTION_ID",)

# Values shipped in the sample environment that were never edited
UNSET_VALUE_PREFIX: Final[str] = "YOUR_"


class ConfigurationError(ValueError):
    """Raised when the environment does not describe a usable configuration."""

    pass


@dataclass(frozen=True)
class NetworkConfig:
    """Settings for one provisioning or cleanup run.

    Populated once at startup and passed explicitly to the client, the
    provisioner and the cleanup runner.
    """

    subscription_id: str
    location: str = ""
    resource_group_name: str = ""
    vnet_name: str = ""
    subnet_name: str = ""
    nsg_name: str = ""
    network_settings_resource_name: str = ""
    database_id: str = ""
    api_version: str = DEFAULT_API_VERSION
    custom_role_name: str = DEFAULT_CUSTOM_ROLE_NAME
    address_prefix: str = DEFAULT_ADDRESS_PREFIX
    subnet_prefix: str = DEFAULT_SUBNET_PREFIX
    nsg_template_file: Path = DEFAULT_NSG_TEMPLATE_FILE
    skip_login: bool = False
    cli_timeout: int = DEFAULT_CLI_TIMEOUT

    @property
    def subscription_scope(self) -> str:
        """Scope used for the role definition and both role assignments."""
        return f"/subscriptions/{self.subscription_id}"

    @property
    def subnet_id(self) -> str:
        """Fully qualified ARM id of the delegated subnet."""
        return (
            f"{self.subscription_scope}/resourceGroups/{self.resource_group_name}"
            f"/providers/Microsoft.Network/virtualNetworks/{self.vnet_name}"
            f"/subnets/{self.subnet_name}"
        )


def _parse_bool(value: Optional[str]) -> bool:
    return (value or "false").strip().lower() in ("1", "true", "yes", "on")


def read_config(environ: Optional[Mapping[str, str]] = None) -> NetworkConfig:
    """Build a NetworkConfig from environment variables without validating it.

    Args:
        environ: Mapping to read from (default: os.environ)

    Returns:
        NetworkConfig with unset optional values falling back to defaults

    Raises:
        ConfigurationError: If AZURE_CLI_TIMEOUT is not an integer
    """
    env = os.environ if environ is None else environ

    values: dict[str, object] = {}
    for variable, field_name in ENVIRONMENT_FIELDS.items():
        raw = env.get(variable, "").strip()
        if raw:
            values[field_name] = raw
    values.setdefault("subscription_id", "")

    template_file = env.get("NSG_TEMPLATE_FILE", "").strip()
    if template_file:
        values["nsg_template_file"] = Path(template_file)

    values["skip_login"] = _parse_bool(env.get("AZURE_SKIP_LOGIN"))

    timeout = env.get("AZURE_CLI_TIMEOUT", "").strip()
    if timeout:
        try:
            values["cli_timeout"] = int(timeout)
        except ValueError:
            raise ConfigurationError(f"AZURE_CLI_TIMEOUT must be an integer, got {timeout!r}") from None

    return NetworkConfig(**values)  # type: ignore[arg-type]


def validate_config(config: NetworkConfig, required: Sequence[str] = PROVISIONING_VARIABLES) -> None:
    """Validate configuration values.

    Args:
        config: Configuration to check
        required: Environment variable names that must carry a real value

    Raises:
        ConfigurationError: If any configuration value is invalid.
    """
    missing = []
    for variable in required:
        value = getattr(config, ENVIRONMENT_FIELDS[variable])
        if not value or value.startswith(UNSET_VALUE_PREFIX):
            missing.append(variable)
    if missing:
        raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")

    if config.database_id and not re.fullmatch(r"[0-9]+", config.database_id):
        raise ConfigurationError(f"DATABASE_ID must be numeric, got {config.database_id!r}")

    if not is_network(config.address_prefix):
        raise ConfigurationError(f"ADDRESS_PREFIX must be a CIDR network, got {config.address_prefix!r}")

    if not is_network(config.subnet_prefix):
        raise ConfigurationError(f"SUBNET_PREFIX must be a CIDR network, got {config.subnet_prefix!r}")

    if not is_ip_within(config.subnet_prefix, config.address_prefix):
        raise ConfigurationError(
            f"SUBNET_PREFIX {config.subnet_prefix} is not inside ADDRESS_PREFIX {config.address_prefix}"
        )

    if config.cli_timeout <= 0:
        raise ConfigurationError(f"AZURE_CLI_TIMEOUT must be positive, got {config.cli_timeout}")

    if "NSG_NAME" in required and not config.nsg_template_file.is_file():
        raise ConfigurationError(f"NSG template not found: {config.nsg_template_file}")


def load_provisioning_config(environ: Optional[Mapping[str, str]] = None) -> NetworkConfig:
    """Read and validate everything the provisioning run needs."""
    config = read_config(environ)
    validate_config(config, PROVISIONING_VARIABLES)
    return config


def load_cleanup_config(
    environ: Optional[Mapping[str, str]] = None, delete_resource_group: bool = False
) -> NetworkConfig:
    """Read and validate the subset of settings used by the cleanup path."""
    required = CLEANUP_VARIABLES + (("RESOURCE_GROUP_NAME",) if delete_resource_group else ())
    config = read_config(environ)
    validate_config(config, required)
    return config
