#!/usr/bin/env python3
"""
Cleanup script for GitHub Actions RBAC permissions.

Removes the custom role assignments and the custom role definition created by
scripts/provision_network.py. With --delete-resource-group it also deletes the
configured resource group and every resource in it.

Anything that is already gone is reported as "not found" instead of failing,
so the script can be run repeatedly.

Usage:
======
    python scripts/cleanup_rbac.py
    python scripts/cleanup_rbac.py --delete-resource-group
    uv run invoke cleanup

Environment Variables:
======================
    SUBSCRIPTION_ID      Required.
    RESOURCE_GROUP_NAME  Required with --delete-resource-group.
    CUSTOM_ROLE_NAME     Optional (default: GitHubActionsNetworkRole).

Exit Codes:
===========
    0: Cleanup completed (including "not found" removals)
    1: Invalid configuration or an unexpected Azure error
"""

import argparse
import logging
import sys

from rich.logging import RichHandler

from actions_network.azure_cli import AzureCLI, AzureCLIError
from actions_network.cleanup import RbacCleanup
from actions_network.config import ConfigurationError, load_cleanup_config
from actions_network.ui import console, print_error_panel


def main(delete_resource_group: bool = False, verbose: bool = False) -> int:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    try:
        config = load_cleanup_config(delete_resource_group=delete_resource_group)
    except ConfigurationError as e:
        print_error_panel(console, "Configuration Error", str(e))
        return 1

    client = AzureCLI(timeout=config.cli_timeout)
    try:
        RbacCleanup(client, config, console).run(delete_resource_group=delete_resource_group)
    except AzureCLIError as e:
        print_error_panel(console, "Cleanup Failed", str(e))
        return 1

    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Remove GitHub Actions RBAC permissions from the subscription")
    parser.add_argument(
        "--delete-resource-group",
        action="store_true",
        help="Also delete RESOURCE_GROUP_NAME and all resources in it",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log every Azure CLI command",
    )
    args = parser.parse_args()

    sys.exit(main(delete_resource_group=args.delete_resource_group, verbose=args.verbose))
