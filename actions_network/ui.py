"""Terminal output helpers shared by the provisioning and cleanup runs."""

from typing import Any, Dict, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .config import NetworkConfig

console = Console()


def print_step_header(console: Console, step: str, description: str, color: str = "cyan", icon: str = "") -> None:
    """Display a color-coded step header, e.g. "[3/11] 📦 Registering provider"."""
    icon_display = f"{icon} " if icon else ""
    console.print(
        f"\n[bold {color} on black]{step}[/bold {color} on black] {icon_display}[bold white]{description}[/bold white]"
    )


def print_step_success(console: Console, description: str, color: str = "cyan", icon: str = "", detail: str = "") -> None:
    icon_display = f"{icon} " if icon else ""
    msg = "[bold bright_green on black]✓[/bold bright_green on black] "
    msg += f"{icon_display}[bold {color}]{description} completed[/bold {color}]"
    if detail:
        msg += f" [dim]({detail})[/dim]"
    console.print(msg)


def print_step_failure(console: Console, description: str, error: Exception, icon: str = "") -> None:
    icon_display = f"{icon} " if icon else ""
    console.print(f"[bold red]✗[/bold red] {icon_display}[red]Failed: {description}[/red]")
    console.print(f"[dim]Error: {escape(str(error))}[/dim]")


def print_error_panel(console: Console, title: str, message: str, hint: Optional[str] = None) -> None:
    body = f"[red]✗ {escape(message)}[/red]"
    if hint:
        body += f"\n\n[dim]{hint}[/dim]"
    console.print()
    console.print(Panel(body, title=title, border_style="red", box=box.SIMPLE))


def build_config_table(config: NetworkConfig) -> Table:
    """Render the effective configuration as a two-column table."""
    table = Table(
        title="GitHub Actions Network Configuration",
        box=box.SIMPLE,
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("Setting", style="green", no_wrap=True)
    table.add_column("Value", style="white")

    rows: Dict[str, Any] = {
        "Subscription": config.subscription_id,
        "Location": config.location,
        "Resource group": config.resource_group_name,
        "Virtual network": f"{config.vnet_name} ({config.address_prefix})",
        "Subnet": f"{config.subnet_name} ({config.subnet_prefix})",
        "Network security group": config.nsg_name,
        "Network settings": config.network_settings_resource_name,
        "Database ID": config.database_id,
        "Custom role": config.custom_role_name,
        "API version": config.api_version,
        "NSG template": config.nsg_template_file,
    }
    for name, value in rows.items():
        table.add_row(name, str(value) if value else "[dim]not set[/dim]")
    return table


def build_network_settings_table(result: Dict[str, Any]) -> Table:
    """Render the queried output of the network settings resource."""
    table = Table(box=box.SIMPLE, show_header=True, header_style="bold cyan")
    table.add_column("GitHubId", style="bold yellow")
    table.add_column("name", style="white")
    table.add_row(str(result.get("GitHubId") or ""), str(result.get("name") or ""))
    return table
