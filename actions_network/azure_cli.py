"""Azure control-plane client built on the Azure CLI (``az``)."""

import json
import logging
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import DEFAULT_CLI_TIMEOUT

log = logging.getLogger(__name__)

AZ_EXECUTABLE = "az"

# Fragments of az stderr that identify a missing resource, role or assignment
NOT_FOUND_MARKERS = (
    "ResourceNotFound",
    "ResourceGroupNotFound",
    "RoleDefinitionDoesNotExist",
    "RoleAssignmentNotFound",
    "doesn't exist",
    "does not exist",
    "could not be found",
    "No matched assignments",
)

# Fragments of az stderr that identify an authentication or authorization failure
AUTH_MARKERS = (
    "AuthorizationFailed",
    "AuthenticationFailed",
    "InvalidAuthenticationToken",
    "AADSTS",
    "az login",
)


class AzureCLIError(Exception):
    """Base exception for Azure control-plane errors."""

    pass


class AzureCLINotFoundError(AzureCLIError):
    """Exception raised when the az executable cannot be started."""

    pass


class AzureCommandError(AzureCLIError):
    """Exception raised when an az command exits non-zero or times out."""

    def __init__(self, message: str, command: List[str], returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class AzureAuthError(AzureCommandError):
    """Exception raised when the signed-in identity cannot authenticate or lacks access."""

    pass


class AzureNotFoundError(AzureCommandError):
    """Exception raised when the target resource does not exist."""

    pass


def classify_error(command: List[str], returncode: Optional[int], stderr: str) -> AzureCommandError:
    """Map a failed az invocation to the matching exception type.

    The exception message is the CLI's own error text so operators see the
    same diagnostic they would get from running the command by hand.
    """
    message = stderr.strip() or f"Command failed: az {' '.join(command)}"
    if any(marker in stderr for marker in AUTH_MARKERS):
        return AzureAuthError(message, command, returncode, stderr)
    if any(marker in stderr for marker in NOT_FOUND_MARKERS):
        return AzureNotFoundError(message, command, returncode, stderr)
    return AzureCommandError(message, command, returncode, stderr)


class AzCmd:
    """Builder for Azure CLI commands."""

    def __init__(self, service: str, action: str):
        """Initialize with service and action (e.g., 'role', 'assignment create')."""
        self.cmd = [service] + action.split()

    def param(self, key: str, value: str) -> "AzCmd":
        """Adds a key-value pair parameter"""
        self.cmd.extend([key, value])
        return self

    def param_list(self, key: str, values: List[str]) -> "AzCmd":
        """Adds a list of parameters with the same key"""
        self.cmd.append(key)
        self.cmd.extend(values)
        return self

    def flag(self, flag: str) -> "AzCmd":
        """Adds a flag to the command"""
        self.cmd.append(flag)
        return self

    def __str__(self) -> str:
        return f"az {' '.join(self.cmd)}"


class AzureCLI:
    """Client for the Azure control plane that shells out to the Azure CLI.

    Every method is a single synchronous ``az`` invocation. Nothing is
    retried and nothing is cached: existence checks are live lookups.
    """

    def __init__(self, executable: str = AZ_EXECUTABLE, timeout: int = DEFAULT_CLI_TIMEOUT):
        """Initialize the Azure CLI client.

        Args:
            executable: Name or path of the az executable (default: "az")
            timeout: Per-command timeout in seconds (default: 600)
        """
        self.executable = executable
        self.timeout = timeout

    def execute(self, az_cmd: AzCmd, capture: bool = True) -> str:
        """Run an Azure CLI command and return its stdout.

        Args:
            az_cmd: Command to run (without the leading "az")
            capture: Capture stdout/stderr. Disabled for interactive commands
                     such as ``az login`` so prompts reach the terminal.

        Returns:
            Captured stdout ("" when capture is disabled)

        Raises:
            AzureCLINotFoundError: If the az executable is not installed
            AzureCommandError: If the command exits non-zero or times out
                (AzureAuthError / AzureNotFoundError for recognised failures)
        """
        command = az_cmd.cmd
        log.debug("Running: %s", az_cmd)
        try:
            result = subprocess.run(
                [self.executable] + command,
                capture_output=capture,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise AzureCLINotFoundError(
                f"Azure CLI executable '{self.executable}' not found. Install it from https://aka.ms/azure-cli"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise AzureCommandError(
                f"Command timed out after {self.timeout}s: {az_cmd}", command
            ) from e

        if result.returncode != 0:
            stderr = result.stderr or ""
            log.debug("Command failed (exit %s): %s\n%s", result.returncode, az_cmd, stderr)
            raise classify_error(command, result.returncode, stderr)

        return result.stdout or ""

    # ------------------------------------------------------------------
    # Authentication and subscription context
    # ------------------------------------------------------------------

    def login(self) -> None:
        """Authenticate interactively against Azure."""
        self.execute(AzCmd("login", "").param("--output", "none"), capture=False)

    def set_subscription(self, subscription_id: str) -> None:
        self.execute(AzCmd("account", "set").param("--subscription", subscription_id))

    def register_provider(self, namespace: str) -> None:
        self.execute(AzCmd("provider", "register").param("--namespace", namespace))

    # ------------------------------------------------------------------
    # Role definitions
    # ------------------------------------------------------------------

    def find_role_definition(self, name: str, subscription_id: str) -> Optional[str]:
        """Look up a role definition by name.

        Returns:
            The role definition id if found, None if not found
        """
        output = self.execute(
            AzCmd("role", "definition list")
            .param("--name", name)
            .param("--subscription", subscription_id)
            .param("--query", "[0].id")
            .param("--output", "tsv")
        ).strip()
        return output or None

    def create_role_definition(self, definition_file: Path) -> None:
        self.execute(
            AzCmd("role", "definition create")
            .param("--role-definition", str(definition_file))
            .param("--output", "none")
        )

    def update_role_definition(self, definition_file: Path) -> None:
        self.execute(
            AzCmd("role", "definition update")
            .param("--role-definition", str(definition_file))
            .param("--output", "none")
        )

    def delete_role_definition(self, name: str, scope: str) -> None:
        self.execute(AzCmd("role", "definition delete").param("--name", name).param("--scope", scope))

    # ------------------------------------------------------------------
    # Role assignments
    # ------------------------------------------------------------------

    def role_assignment_exists(self, assignee: str, role: str, scope: str) -> bool:
        """Check whether the (assignee, role, scope) assignment already exists."""
        output = self.execute(
            AzCmd("role", "assignment list")
            .param("--assignee", assignee)
            .param("--role", role)
            .param("--scope", scope)
            .param("--query", "length([])")
            .param("--output", "tsv")
        ).strip()
        try:
            return int(output or "0") > 0
        except ValueError as e:
            raise AzureCommandError(f"Unexpected role assignment count: {output!r}", []) from e

    def create_role_assignment(self, assignee: str, role: str, scope: str) -> None:
        self.execute(
            AzCmd("role", "assignment create")
            .param("--assignee", assignee)
            .param("--role", role)
            .param("--scope", scope)
            .param("--output", "none")
        )

    def delete_role_assignment(self, assignee: str, role: str, scope: str) -> None:
        self.execute(
            AzCmd("role", "assignment delete")
            .param("--assignee", assignee)
            .param("--role", role)
            .param("--scope", scope)
        )

    # ------------------------------------------------------------------
    # Resource groups and deployments
    # ------------------------------------------------------------------

    def create_resource_group(self, name: str, location: str) -> None:
        self.execute(
            AzCmd("group", "create").param("--name", name).param("--location", location).param("--output", "none")
        )

    def resource_group_exists(self, name: str) -> bool:
        output = self.execute(AzCmd("group", "exists").param("--name", name)).strip()
        return output.lower() == "true"

    def delete_resource_group(self, name: str) -> None:
        self.execute(AzCmd("group", "delete").param("--name", name).flag("--yes"))

    def deploy_group_template(self, resource_group: str, template_file: Path, parameters: Dict[str, str]) -> None:
        """Run a declarative template deployment against a resource group."""
        self.execute(
            AzCmd("deployment", "group create")
            .param("--resource-group", resource_group)
            .param("--template-file", str(template_file))
            .param_list("--parameters", [f"{key}={value}" for key, value in parameters.items()])
            .param("--output", "none")
        )

    # ------------------------------------------------------------------
    # Networking
    # ------------------------------------------------------------------

    def create_vnet(
        self, resource_group: str, name: str, address_prefix: str, subnet_name: str, subnet_prefix: str
    ) -> None:
        self.execute(
            AzCmd("network", "vnet create")
            .param("--resource-group", resource_group)
            .param("--name", name)
            .param("--address-prefix", address_prefix)
            .param("--subnet-name", subnet_name)
            .param("--subnet-prefixes", subnet_prefix)
            .param("--output", "none")
        )

    def update_subnet(
        self, resource_group: str, vnet_name: str, subnet_name: str, delegation: str, network_security_group: str
    ) -> None:
        """Delegate a subnet to a service and attach a network security group."""
        self.execute(
            AzCmd("network", "vnet subnet update")
            .param("--resource-group", resource_group)
            .param("--name", subnet_name)
            .param("--vnet-name", vnet_name)
            .param("--delegations", delegation)
            .param("--network-security-group", network_security_group)
            .param("--output", "none")
        )

    # ------------------------------------------------------------------
    # Generic resources
    # ------------------------------------------------------------------

    def create_resource(
        self,
        resource_group: str,
        name: str,
        resource_type: str,
        properties: Dict[str, Any],
        api_version: str,
        query: Optional[str] = None,
    ) -> Any:
        """Create an arbitrary-typed resource from a full JSON object.

        Args:
            resource_group: Target resource group
            name: Resource name
            resource_type: Namespaced type (e.g., "GitHub.Network/networkSettings")
            properties: Full resource body, serialized to JSON
            api_version: Provider API version
            query: Optional JMESPath query applied to the created resource

        Returns:
            Parsed JSON output of the (queried) resource, None if empty
        """
        az_cmd = (
            AzCmd("resource", "create")
            .param("--resource-group", resource_group)
            .param("--name", name)
            .param("--resource-type", resource_type)
            .param("--properties", json.dumps(properties))
            .flag("--is-full-object")
            .param("--api-version", api_version)
        )
        if query:
            az_cmd.param("--query", query)
        output = self.execute(az_cmd.param("--output", "json")).strip()
        if not output:
            return None
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise AzureCommandError(f"Failed to parse output of {az_cmd}: {e}", az_cmd.cmd) from e
