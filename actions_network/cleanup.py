"""
Remove the GitHub Actions RBAC permissions (and optionally the network).

Cleanup Process:
================
1. Log in to Azure (skipped when AZURE_SKIP_LOGIN=true)
2. Set the subscription context
3. Remove the custom role assignment for each GitHub service principal
4. Remove the custom role definition
5. Optionally delete the resource group and everything in it

Login and subscription errors abort the run. Removals are best-effort: a
resource that does not exist is reported as "not found" and the run carries
on. Any other error still aborts.
"""

import logging
import shlex
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, List, Optional, Tuple

from jinja2 import Environment, FileSystemLoader
from rich import box
from rich.console import Console
from rich.panel import Panel

from . import ui
from .azure_cli import AzureCLI
from .config import SERVICE_PRINCIPALS, TEMPLATES_DIRECTORY, NetworkConfig
from .guards import GuardOutcome, remove_resource_group, remove_role_assignment, remove_role_definition

log = logging.getLogger(__name__)

CLEANUP_TEMPLATE = "cleanup_commands.j2"


def render_cleanup_commands(config: NetworkConfig) -> str:
    """Render the manual commands that reverse every provisioning step."""
    env = Environment(
        loader=FileSystemLoader(TEMPLATES_DIRECTORY),
        autoescape=False,  # shell commands, not HTML
        keep_trailing_newline=True,
    )
    env.filters["shell_quote"] = shlex.quote
    template = env.get_template(CLEANUP_TEMPLATE)
    return template.render(
        resource_group_name=config.resource_group_name,
        principals=SERVICE_PRINCIPALS,
        role_name=config.custom_role_name,
        scope=config.subscription_scope,
    )


@dataclass
class CleanupResult:
    """Outcome of each removal, in execution order."""

    removals: List[Tuple[str, GuardOutcome]] = field(default_factory=list)

    @property
    def removed(self) -> List[str]:
        return [name for name, outcome in self.removals if outcome is GuardOutcome.REMOVED]

    @property
    def not_found(self) -> List[str]:
        return [name for name, outcome in self.removals if outcome is GuardOutcome.NOT_FOUND]


class RbacCleanup:
    """Best-effort removal of what the provisioning run created."""

    def __init__(self, client: AzureCLI, config: NetworkConfig, console: Optional[Console] = None):
        self.client = client
        self.config = config
        self.console = console or ui.console

    def _remove(self, result: CleanupResult, description: str, action: Callable[[], GuardOutcome]) -> None:
        self.console.print(f"[cyan]→[/cyan] Removing {description}...")
        outcome = action()
        if outcome is GuardOutcome.REMOVED:
            self.console.print(f"  [green]✓[/green] Removed {description}")
        else:
            self.console.print(f"  [yellow]⚠[/yellow] {description} not found or already removed")
        result.removals.append((description, outcome))

    def run(self, delete_resource_group: bool = False) -> CleanupResult:
        """
        Remove the role assignments and role definition.

        Args:
            delete_resource_group: Also delete the configured resource group

        Returns:
            CleanupResult with one entry per removal

        Raises:
            AzureCLIError: On login/subscription failure, or any removal error
                other than "not found"
        """
        config = self.config
        result = CleanupResult()

        self.console.print()
        self.console.print(
            Panel(
                "[bold]=== GitHub Actions RBAC Cleanup ===[/bold]\n"
                f"[bright_cyan]Subscription ID:[/bright_cyan] {config.subscription_id}\n"
                f"[bright_cyan]Custom Role Name:[/bright_cyan] {config.custom_role_name}",
                border_style="yellow",
                box=box.SIMPLE,
            )
        )

        if not config.skip_login:
            self.console.print("[cyan]→[/cyan] Logging into Azure...")
            self.client.login()
        self.console.print(f"[cyan]→[/cyan] Setting account context to subscription {config.subscription_id}")
        self.client.set_subscription(config.subscription_id)

        for principal in SERVICE_PRINCIPALS:
            self._remove(
                result,
                f"role assignment for {principal.name}",
                partial(
                    remove_role_assignment,
                    self.client,
                    principal.app_id,
                    config.custom_role_name,
                    config.subscription_scope,
                ),
            )

        self._remove(
            result,
            f"custom role definition {config.custom_role_name}",
            partial(remove_role_definition, self.client, config.custom_role_name, config.subscription_id),
        )

        if delete_resource_group:
            self._remove(
                result,
                f"resource group {config.resource_group_name}",
                partial(remove_resource_group, self.client, config.resource_group_name),
            )

        self.console.print()
        self.console.print("[bold green]RBAC permissions cleanup completed successfully![/bold green]")
        self.console.print(
            "[dim]The GitHub Actions service principals no longer have the custom network permissions.[/dim]"
        )
        return result
