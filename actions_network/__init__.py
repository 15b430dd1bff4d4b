"""Provision Azure private networking and RBAC for GitHub-hosted Actions runners."""

from .azure_cli import (
    AzCmd,
    AzureAuthError,
    AzureCLI,
    AzureCLIError,
    AzureCLINotFoundError,
    AzureCommandError,
    AzureNotFoundError,
)
from .cleanup import CleanupResult, RbacCleanup, render_cleanup_commands
from .config import ConfigurationError, NetworkConfig, load_cleanup_config, load_provisioning_config
from .guards import GuardOutcome
from .provisioner import NetworkProvisioner, ProvisioningError, ProvisioningResult

__version__ = "0.1.0"

__all__ = [
    "AzCmd",
    "AzureAuthError",
    "AzureCLI",
    "AzureCLIError",
    "AzureCLINotFoundError",
    "AzureCommandError",
    "AzureNotFoundError",
    "CleanupResult",
    "ConfigurationError",
    "GuardOutcome",
    "NetworkConfig",
    "NetworkProvisioner",
    "ProvisioningError",
    "ProvisioningResult",
    "RbacCleanup",
    "load_cleanup_config",
    "load_provisioning_config",
    "render_cleanup_commands",
]
