"""Tasks for the actions-network-bootstrap project."""

from pathlib import Path

from invoke import Context, task  # type: ignore[import-not-found]
from rich import box  # type: ignore[import-not-found]
from rich.console import Console  # type: ignore[import-not-found]
from rich.panel import Panel  # type: ignore[import-not-found]
from rich.table import Table  # type: ignore[import-not-found]

from actions_network.config import read_config
from actions_network.ui import build_config_table

console = Console()

MAIN_DIRECTORY_PATH = Path(__file__).parent


@task(name="list")
def list_tasks(context: Context) -> None:
    """List all available invoke tasks with descriptions."""
    import inspect

    current_module = inspect.getmodule(inspect.currentframe())

    tasks_info = []

    # Get all task objects from the current module
    for name, obj in inspect.getmembers(current_module):
        if hasattr(obj, "__class__") and "Task" in obj.__class__.__name__:
            display_name = getattr(obj, "name", name)
            if display_name.startswith("_"):
                continue
            if obj.__doc__:
                description = obj.__doc__.strip().split("\n")[0]
            else:
                description = "No description available"
            tasks_info.append((display_name, description))

    tasks_info.sort(key=lambda x: x[0])

    table = Table(
        title="Available Invoke Tasks",
        box=box.SIMPLE,
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("Task", style="green", no_wrap=True)
    table.add_column("Description", style="white")

    for name, desc in tasks_info:
        table.add_row(name, desc)

    console.print()
    console.print(table)
    console.print()


@task
def info(context: Context) -> None:
    """Show the configuration read from the environment."""
    config = read_config()
    console.print()
    console.print(build_config_table(config))
    console.print(f"[cyan]Azure login:[/cyan] {'Skipped' if config.skip_login else 'Interactive'}")
    console.print()


@task(optional=["verbose"])
def setup(context: Context, verbose: bool = False) -> None:
    """Provision the custom role, role assignments and private network."""
    verbose_flag = "--verbose" if verbose else ""
    with context.cd(MAIN_DIRECTORY_PATH):
        context.run(f"uv run python scripts/provision_network.py {verbose_flag}", pty=True)


@task(optional=["delete_resource_group"])
def cleanup(context: Context, delete_resource_group: bool = False) -> None:
    """Remove the role assignments and custom role (use --delete-resource-group for the network)."""
    console.print()
    console.print(
        Panel(
            "[bold yellow]GitHub Actions RBAC Cleanup[/bold yellow]\n"
            f"[dim]Delete resource group:[/dim] {'Yes' if delete_resource_group else 'No'}",
            border_style="yellow",
            box=box.SIMPLE,
        )
    )
    flag = "--delete-resource-group" if delete_resource_group else ""
    with context.cd(MAIN_DIRECTORY_PATH):
        context.run(f"uv run python scripts/cleanup_rbac.py {flag}", pty=True)


@task(name="run-tests")
def run_tests(context: Context) -> None:
    """Run all tests."""
    console.print()
    console.print(
        Panel(
            "[bold cyan]Running Tests[/bold cyan]", border_style="cyan", box=box.SIMPLE
        )
    )
    with context.cd(MAIN_DIRECTORY_PATH):
        context.run("pytest -vv tests")
    console.print("[green]✓[/green] Tests completed")


@task(name="_lint-mypy")
def lint_mypy(context: Context) -> None:
    """Run mypy to check all Python files."""
    print(" - Check code with mypy")
    exec_cmd = "mypy --show-error-codes ."
    with context.cd(MAIN_DIRECTORY_PATH):
        context.run(exec_cmd)


@task(name="_lint-ruff")
def lint_ruff(context: Context) -> None:
    """Run ruff to check all Python files."""
    print(" - Check code with ruff")
    exec_cmd = "ruff check ."
    with context.cd(MAIN_DIRECTORY_PATH):
        context.run(exec_cmd)


@task(name="lint")
def lint_all(context: Context) -> None:
    """Run all linters."""
    console.print()
    console.print(
        Panel(
            "[bold yellow]Running All Linters[/bold yellow]\n"
            "[dim]Ruff → Mypy[/dim]",
            border_style="yellow",
            box=box.SIMPLE,
        )
    )

    console.print("\n[yellow]→[/yellow] Running ruff...")
    lint_ruff(context)

    console.print("\n[yellow]→[/yellow] Running mypy...")
    lint_mypy(context)

    console.print("\n[green]✓[/green] All linters completed!")
    console.print()
