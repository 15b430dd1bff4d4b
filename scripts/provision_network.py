#!/usr/bin/env python3
"""
Provision Azure private networking for GitHub-hosted Actions runners.

This script creates the following resources in the configured subscription:
- Custom Azure RBAC role for the GitHub Actions service with the required
  network permissions
- Role assignments for the two GitHub Actions service principals
- Resource group
- Network Security Group rules
- Virtual network (vnet) and subnet
- Network Settings resource linking the subnet to your GitHub Enterprise
  database ID

It also registers the `GitHub.Network` resource provider with the subscription,
delegates the subnet to `GitHub.Network/networkSettings` and applies the NSG
rules to it.

Error Handling:
===============
- Stops at the first failing step; earlier resources are left in place
- Re-running with the same configuration updates the custom role and skips
  role assignments that already exist
- Prints the manual cleanup commands on success

Usage:
======
    python scripts/provision_network.py
    python scripts/provision_network.py --verbose   # log every az command
    uv run invoke setup                             # Via invoke task

Environment Variables:
======================
    AZURE_LOCATION, SUBSCRIPTION_ID, RESOURCE_GROUP_NAME, VNET_NAME,
    SUBNET_NAME, NSG_NAME, NETWORK_SETTINGS_RESOURCE_NAME, DATABASE_ID
        Required.
    API_VERSION, CUSTOM_ROLE_NAME, ADDRESS_PREFIX, SUBNET_PREFIX,
    NSG_TEMPLATE_FILE, AZURE_SKIP_LOGIN, AZURE_CLI_TIMEOUT
        Optional (see actions_network/config.py for defaults).

Exit Codes:
===========
    0: All resources provisioned
    1: Invalid configuration or a provisioning step failed
"""

import argparse
import logging
import sys

from rich.logging import RichHandler

from actions_network.azure_cli import AzureCLI
from actions_network.config import ConfigurationError, load_provisioning_config
from actions_network.provisioner import NetworkProvisioner, ProvisioningError
from actions_network.ui import console, print_error_panel


def main(verbose: bool = False) -> int:
    """
    Load configuration from the environment and run the provisioning sequence.

    Returns:
        0 if provisioning completed successfully
        1 if the configuration is invalid or a step failed
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    try:
        config = load_provisioning_config()
    except ConfigurationError as e:
        print_error_panel(
            console,
            "Configuration Error",
            str(e),
            "Set the required environment variables and run again.",
        )
        return 1

    client = AzureCLI(timeout=config.cli_timeout)
    try:
        NetworkProvisioner(client, config, console).run()
    except ProvisioningError as e:
        print_error_panel(
            console,
            "Provisioning Failed",
            f"Failed at step: {e.step}",
            "Resources created before this step were left in place. "
            "Fix the problem and re-run, or remove them with the cleanup commands.",
        )
        return 1

    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Provision Azure private networking for GitHub Actions")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log every Azure CLI command",
    )
    args = parser.parse_args()

    sys.exit(main(verbose=args.verbose))
