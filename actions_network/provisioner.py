"""
Provision Azure private networking for GitHub-hosted Actions runners.

Provisioning Process (11 steps):
================================
1. Log in to Azure (skipped when AZURE_SKIP_LOGIN=true)
2. Set the subscription context
3. Register the GitHub.Network resource provider
4. Create or update the custom role (GitHubActionsNetworkRole)
5. Assign the custom role to the GitHub CPS Network Service principal
6. Assign the custom role to the GitHub Actions API principal
7. Create the resource group
8. Deploy the NSG rules (actions-nsg-deployment.bicep)
9. Create the virtual network and subnet
10. Delegate the subnet to GitHub.Network/networkSettings and attach the NSG
11. Create the GitHub.Network/networkSettings resource

After the last step the manual cleanup commands are printed (not executed).

Error Handling:
===============
- Fail-fast: the first failing step raises ProvisioningError and no later
  step runs
- Resources created before the failure are left in place for inspection;
  there is no automatic rollback and no retry
- Re-runs are safe: the role is updated instead of duplicated and existing
  role assignments are skipped
"""

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule

from . import ui
from .azure_cli import AzureCLI, AzureCLIError
from .cleanup import render_cleanup_commands
from .config import (
    NETWORK_SETTINGS_RESOURCE_TYPE,
    PROVIDER_NAMESPACE,
    SERVICE_PRINCIPALS,
    NetworkConfig,
    ServicePrincipal,
)
from .guards import GuardOutcome, ensure_role_assignment, ensure_role_definition
from .role_definition import materialized_role_definition

log = logging.getLogger(__name__)

NETWORK_SETTINGS_QUERY = "{GitHubId:tags.GitHubId, name:name}"


@dataclass
class ProvisioningStep:
    """One external call in the provisioning sequence."""

    description: str
    action: Callable[[], Any]
    color: str = "cyan"
    icon: str = ""


@dataclass
class ProvisioningResult:
    """What a completed run did."""

    completed_steps: List[str] = field(default_factory=list)
    outcomes: Dict[str, GuardOutcome] = field(default_factory=dict)
    network_settings: Optional[Dict[str, Any]] = None


class ProvisioningError(Exception):
    """Raised when a provisioning step fails; later steps were not executed."""

    def __init__(self, step: str, error: AzureCLIError):
        super().__init__(f"{step}: {error}")
        self.step = step
        self.error = error


class NetworkProvisioner:
    """Runs the provisioning sequence against the Azure control plane."""

    def __init__(self, client: AzureCLI, config: NetworkConfig, console: Optional[Console] = None):
        self.client = client
        self.config = config
        self.console = console or ui.console

    # ------------------------------------------------------------------
    # Step actions
    # ------------------------------------------------------------------

    def login(self) -> None:
        self.client.login()

    def set_subscription(self) -> None:
        self.client.set_subscription(self.config.subscription_id)

    def register_provider(self) -> None:
        self.client.register_provider(PROVIDER_NAMESPACE)

    def create_custom_role(self) -> GuardOutcome:
        with materialized_role_definition(self.config) as definition_file:
            return ensure_role_definition(
                self.client,
                self.config.custom_role_name,
                self.config.subscription_id,
                definition_file,
            )

    def assign_custom_role(self, principal: ServicePrincipal) -> GuardOutcome:
        return ensure_role_assignment(
            self.client,
            principal.app_id,
            self.config.custom_role_name,
            self.config.subscription_scope,
        )

    def create_resource_group(self) -> None:
        self.client.create_resource_group(self.config.resource_group_name, self.config.location)

    def deploy_nsg_rules(self) -> None:
        self.client.deploy_group_template(
            self.config.resource_group_name,
            self.config.nsg_template_file,
            {"location": self.config.location, "nsgName": self.config.nsg_name},
        )

    def create_vnet(self) -> None:
        self.client.create_vnet(
            self.config.resource_group_name,
            self.config.vnet_name,
            self.config.address_prefix,
            self.config.subnet_name,
            self.config.subnet_prefix,
        )

    def delegate_subnet(self) -> None:
        self.client.update_subnet(
            self.config.resource_group_name,
            self.config.vnet_name,
            self.config.subnet_name,
            NETWORK_SETTINGS_RESOURCE_TYPE,
            self.config.nsg_name,
        )

    def create_network_settings(self) -> Any:
        body = {
            "location": self.config.location,
            "properties": {
                "subnetId": self.config.subnet_id,
                "businessId": self.config.database_id,
            },
        }
        return self.client.create_resource(
            self.config.resource_group_name,
            self.config.network_settings_resource_name,
            NETWORK_SETTINGS_RESOURCE_TYPE,
            body,
            self.config.api_version,
            query=NETWORK_SETTINGS_QUERY,
        )

    # ------------------------------------------------------------------
    # Sequencing
    # ------------------------------------------------------------------

    def steps(self) -> List[ProvisioningStep]:
        """Build the ordered step list for this configuration."""
        config = self.config
        steps: List[ProvisioningStep] = []
        if not config.skip_login:
            steps.append(ProvisioningStep("Logging in to Azure", self.login, "blue", "🔑"))
        steps += [
            ProvisioningStep(
                f"Setting account context {config.subscription_id}", self.set_subscription, "blue", "🧭"
            ),
            ProvisioningStep(
                f"Registering resource provider {PROVIDER_NAMESPACE}", self.register_provider, "magenta", "📦"
            ),
            ProvisioningStep(
                f"Creating custom role {config.custom_role_name}", self.create_custom_role, "yellow", "📋"
            ),
        ]
        for principal in SERVICE_PRINCIPALS:
            steps.append(
                ProvisioningStep(
                    f"Assigning custom role to {principal.name}",
                    partial(self.assign_custom_role, principal),
                    "yellow",
                    "👥",
                )
            )
        steps += [
            ProvisioningStep(
                f"Creating resource group {config.resource_group_name} at {config.location}",
                self.create_resource_group,
                "green",
                "🗂️",
            ),
            ProvisioningStep(
                f"Deploying NSG rules {config.nsg_name} from {config.nsg_template_file.name}",
                self.deploy_nsg_rules,
                "green",
                "🔒",
            ),
            ProvisioningStep(
                f"Creating vnet {config.vnet_name} and subnet {config.subnet_name}", self.create_vnet, "cyan", "🌐"
            ),
            ProvisioningStep(
                f"Delegating subnet to {NETWORK_SETTINGS_RESOURCE_TYPE} and applying NSG rules",
                self.delegate_subnet,
                "cyan",
                "🔗",
            ),
            ProvisioningStep(
                f"Creating network settings resource {config.network_settings_resource_name}",
                self.create_network_settings,
                "bright_magenta",
                "⚡",
            ),
        ]
        return steps

    def run(self) -> ProvisioningResult:
        """
        Execute every step in order, stopping at the first failure.

        Returns:
            ProvisioningResult describing the completed steps

        Raises:
            ProvisioningError: If any step fails. Steps after the failing one
                are never executed and nothing is rolled back.
        """
        steps = self.steps()
        result = ProvisioningResult()

        self.console.print()
        self.console.print(
            Panel(
                "[bold bright_blue]🚀 GitHub Actions Azure Private Networking[/bold bright_blue]\n"
                f"[bright_cyan]Subscription:[/bright_cyan] [bold yellow]{self.config.subscription_id}[/bold yellow]\n"
                f"[bright_cyan]Resource group:[/bright_cyan] [bold yellow]{self.config.resource_group_name}[/bold yellow]",
                border_style="bright_blue",
                box=box.SIMPLE,
                title="[bold bright_blue]Provisioning[/bold bright_blue]",
            )
        )

        for i, step in enumerate(steps, start=1):
            ui.print_step_header(self.console, f"[{i}/{len(steps)}]", step.description, step.color, step.icon)
            try:
                outcome = step.action()
            except AzureCLIError as e:
                log.debug("Step failed: %s", step.description, exc_info=True)
                ui.print_step_failure(self.console, step.description, e, step.icon)
                raise ProvisioningError(step.description, e) from e

            detail = ""
            if isinstance(outcome, GuardOutcome):
                result.outcomes[step.description] = outcome
                detail = outcome.value
            elif isinstance(outcome, dict):
                result.network_settings = outcome

            ui.print_step_success(self.console, step.description, step.color, step.icon, detail)
            result.completed_steps.append(step.description)

            if i < len(steps):
                self.console.print(Rule(style=f"dim {step.color}"))

        if result.network_settings:
            self.console.print(ui.build_network_settings_table(result.network_settings))

        self.console.print()
        self.console.print("[bold]To clean up and delete resources run the following commands:[/bold]")
        self.console.print(render_cleanup_commands(self.config), markup=False, highlight=False)

        self.console.print(
            Panel(
                "[bold bright_green]🎉 Provisioning Complete![/bold bright_green]\n\n"
                "[bold bright_magenta]Next steps:[/bold bright_magenta]\n"
                "  [green]•[/green] Add the GitHubId above as an Azure private network configuration in GitHub",
                title="[bold bright_green]✓ Success[/bold bright_green]",
                border_style="bright_green",
                box=box.SIMPLE,
            )
        )
        return result
