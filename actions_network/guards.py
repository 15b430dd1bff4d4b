"""
Idempotency guards for resources that may already exist.

Creation path:
==============
Before creating a named resource the guard asks the control plane whether it
is already there:

- Custom role definition: updated in place when found, created otherwise
- Role assignment: skipped when the (principal, role, scope) triple exists,
  created otherwise

A failure of the existence query itself is NOT tolerated here. It propagates
and aborts the provisioning run.

Deletion path:
==============
Removals are best-effort, but only for the "not found" error kind
(AzureNotFoundError). A missing resource is reported as NOT_FOUND; any other
error (authentication, throttling, malformed command) still propagates.

The guards are advisory: two processes running concurrently can both observe
"absent" and both try to create.
"""

import logging
from enum import Enum
from pathlib import Path

from .azure_cli import AzureCLI, AzureNotFoundError

log = logging.getLogger(__name__)


class GuardOutcome(str, Enum):
    """What a guard did with the resource it was protecting."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    REMOVED = "removed"
    NOT_FOUND = "not found"


# ============================================================================
# CREATION GUARDS
# ============================================================================


def ensure_role_definition(client: AzureCLI, name: str, subscription_id: str, definition_file: Path) -> GuardOutcome:
    """
    Create the custom role definition, or update it if a role with the same
    name already exists in the subscription.

    Args:
        client: Azure control-plane client
        name: Role definition name
        subscription_id: Subscription searched for an existing role
        definition_file: Materialized role definition JSON

    Returns:
        GuardOutcome.UPDATED or GuardOutcome.CREATED

    Raises:
        AzureCLIError: If the lookup or the create/update call fails
    """
    existing_id = client.find_role_definition(name, subscription_id)
    if existing_id:
        log.info("Custom role %s already exists (%s), updating", name, existing_id)
        client.update_role_definition(definition_file)
        return GuardOutcome.UPDATED

    log.info("Creating new custom role %s", name)
    client.create_role_definition(definition_file)
    return GuardOutcome.CREATED


def ensure_role_assignment(client: AzureCLI, principal_id: str, role: str, scope: str) -> GuardOutcome:
    """Assign a role to a principal unless that exact assignment already exists."""
    if client.role_assignment_exists(principal_id, role, scope):
        log.info("Role assignment %s -> %s on %s already exists, skipping", principal_id, role, scope)
        return GuardOutcome.SKIPPED

    client.create_role_assignment(principal_id, role, scope)
    return GuardOutcome.CREATED


# ============================================================================
# BEST-EFFORT DELETION
# ============================================================================


def remove_role_assignment(client: AzureCLI, principal_id: str, role: str, scope: str) -> GuardOutcome:
    """Delete a role assignment, treating a missing assignment or role as already removed."""
    try:
        if not client.role_assignment_exists(principal_id, role, scope):
            return GuardOutcome.NOT_FOUND
        client.delete_role_assignment(principal_id, role, scope)
    except AzureNotFoundError as e:
        log.info("Role assignment %s -> %s not found: %s", principal_id, role, e)
        return GuardOutcome.NOT_FOUND
    return GuardOutcome.REMOVED


def remove_role_definition(client: AzureCLI, name: str, subscription_id: str) -> GuardOutcome:
    """Delete the custom role definition if it exists."""
    try:
        if not client.find_role_definition(name, subscription_id):
            return GuardOutcome.NOT_FOUND
        client.delete_role_definition(name, f"/subscriptions/{subscription_id}")
    except AzureNotFoundError as e:
        log.info("Custom role %s not found: %s", name, e)
        return GuardOutcome.NOT_FOUND
    return GuardOutcome.REMOVED


def remove_resource_group(client: AzureCLI, name: str) -> GuardOutcome:
    """Delete a resource group and everything in it if it exists."""
    try:
        if not client.resource_group_exists(name):
            return GuardOutcome.NOT_FOUND
        client.delete_resource_group(name)
    except AzureNotFoundError as e:
        log.info("Resource group %s not found: %s", name, e)
        return GuardOutcome.NOT_FOUND
    return GuardOutcome.REMOVED
