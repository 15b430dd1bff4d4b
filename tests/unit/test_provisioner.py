"""Unit tests for the provisioning sequencer."""

import json
from dataclasses import replace
from pathlib import Path
from typing import Any
from unittest.mock import Mock

import pytest
from rich.console import Console

from actions_network.azure_cli import AzureCommandError
from actions_network.config import GITHUB_ACTIONS_API, GITHUB_CPS_NETWORK_SERVICE, NetworkConfig
from actions_network.guards import GuardOutcome
from actions_network.provisioner import NETWORK_SETTINGS_QUERY, NetworkProvisioner, ProvisioningError

EXPECTED_CALLS = [
    "login",
    "set_subscription",
    "register_provider",
    "find_role_definition",
    "create_role_definition",
    "role_assignment_exists",
    "create_role_assignment",
    "role_assignment_exists",
    "create_role_assignment",
    "create_resource_group",
    "deploy_group_template",
    "create_vnet",
    "update_subnet",
    "create_resource",
]


def called_methods(mock_client: Mock) -> list[str]:
    return [name for name, _, _ in mock_client.method_calls]


class TestSteps:
    """Test the step list."""

    def test_step_descriptions(self, mock_client: Mock, config: NetworkConfig) -> None:
        descriptions = [step.description for step in NetworkProvisioner(mock_client, config).steps()]

        assert descriptions == [
            "Logging in to Azure",
            f"Setting account context {config.subscription_id}",
            "Registering resource provider GitHub.Network",
            "Creating custom role GitHubActionsNetworkRole",
            "Assigning custom role to GitHub CPS Network Service",
            "Assigning custom role to GitHub Actions API",
            "Creating resource group actions-rg at eastus",
            "Deploying NSG rules actions-nsg from actions-nsg-deployment.bicep",
            "Creating vnet actions-vnet and subnet actions-subnet",
            "Delegating subnet to GitHub.Network/networkSettings and applying NSG rules",
            "Creating network settings resource actions-network-settings",
        ]

    def test_skip_login_drops_first_step(self, mock_client: Mock, config: NetworkConfig) -> None:
        steps = NetworkProvisioner(mock_client, replace(config, skip_login=True)).steps()

        assert len(steps) == 10
        assert steps[0].description.startswith("Setting account context")


class TestRun:
    """Test executing the provisioning sequence."""

    def test_calls_in_order(self, mock_client: Mock, config: NetworkConfig, console: Console) -> None:
        result = NetworkProvisioner(mock_client, config, console).run()

        assert called_methods(mock_client) == EXPECTED_CALLS
        assert len(result.completed_steps) == 11

    def test_step_arguments(self, mock_client: Mock, config: NetworkConfig, console: Console) -> None:
        NetworkProvisioner(mock_client, config, console).run()

        mock_client.set_subscription.assert_called_once_with(config.subscription_id)
        mock_client.register_provider.assert_called_once_with("GitHub.Network")
        assert [c.args[0] for c in mock_client.create_role_assignment.call_args_list] == [
            GITHUB_CPS_NETWORK_SERVICE.app_id,
            GITHUB_ACTIONS_API.app_id,
        ]
        for c in mock_client.create_role_assignment.call_args_list:
            assert c.args[1:] == ("GitHubActionsNetworkRole", config.subscription_scope)
        mock_client.create_resource_group.assert_called_once_with("actions-rg", "eastus")
        mock_client.deploy_group_template.assert_called_once_with(
            "actions-rg", config.nsg_template_file, {"location": "eastus", "nsgName": "actions-nsg"}
        )
        mock_client.create_vnet.assert_called_once_with(
            "actions-rg", "actions-vnet", "10.0.0.0/16", "actions-subnet", "10.0.0.0/24"
        )
        mock_client.update_subnet.assert_called_once_with(
            "actions-rg", "actions-vnet", "actions-subnet", "GitHub.Network/networkSettings", "actions-nsg"
        )

    def test_network_settings_body(self, mock_client: Mock, config: NetworkConfig, console: Console) -> None:
        result = NetworkProvisioner(mock_client, config, console).run()

        mock_client.create_resource.assert_called_once_with(
            "actions-rg",
            "actions-network-settings",
            "GitHub.Network/networkSettings",
            {
                "location": "eastus",
                "properties": {"subnetId": config.subnet_id, "businessId": "123456"},
            },
            "2024-04-02",
            query=NETWORK_SETTINGS_QUERY,
        )
        assert result.network_settings == {"GitHubId": "E1A2B3C4", "name": "actions-network-settings"}
        assert "E1A2B3C4" in console.file.getvalue()  # type: ignore[attr-defined]

    def test_records_guard_outcomes(self, mock_client: Mock, config: NetworkConfig, console: Console) -> None:
        mock_client.find_role_definition.return_value = "/subscriptions/x/roleDefinitions/r1"
        mock_client.role_assignment_exists.side_effect = [True, False]

        result = NetworkProvisioner(mock_client, config, console).run()

        assert result.outcomes == {
            "Creating custom role GitHubActionsNetworkRole": GuardOutcome.UPDATED,
            "Assigning custom role to GitHub CPS Network Service": GuardOutcome.SKIPPED,
            "Assigning custom role to GitHub Actions API": GuardOutcome.CREATED,
        }
        mock_client.create_role_definition.assert_not_called()
        mock_client.update_role_definition.assert_called_once()
        mock_client.create_role_assignment.assert_called_once()

    def test_skip_login(self, mock_client: Mock, config: NetworkConfig, console: Console) -> None:
        NetworkProvisioner(mock_client, replace(config, skip_login=True), console).run()

        assert called_methods(mock_client) == EXPECTED_CALLS[1:]

    def test_prints_cleanup_commands(self, mock_client: Mock, config: NetworkConfig, console: Console) -> None:
        NetworkProvisioner(mock_client, config, console).run()
        output = console.file.getvalue()  # type: ignore[attr-defined]

        assert "To clean up and delete resources run the following commands:" in output
        assert "az group delete --resource-group actions-rg" in output
        assert "az role definition delete --name GitHubActionsNetworkRole" in output
        assert "Provisioning Complete!" in output

    def test_role_definition_file_lifecycle(
        self, mock_client: Mock, config: NetworkConfig, console: Console
    ) -> None:
        """Test the rendered role file exists while az reads it and is removed afterwards."""
        seen: dict[str, Any] = {}

        def capture(path: Path) -> None:
            seen["path"] = path
            seen["definition"] = json.loads(path.read_text())

        mock_client.create_role_definition.side_effect = capture

        NetworkProvisioner(mock_client, config, console).run()

        assert seen["definition"]["AssignableScopes"] == [config.subscription_scope]
        assert seen["definition"]["Name"] == "GitHubActionsNetworkRole"
        assert not seen["path"].exists()


class TestFailFast:
    """Test the sequence stops at the first failure."""

    def test_stops_at_failing_step(self, mock_client: Mock, config: NetworkConfig, console: Console) -> None:
        mock_client.create_vnet.side_effect = AzureCommandError(
            "ERROR: (InUseSubnetCannotBeUpdated) subnet in use", ["network", "vnet", "create"], 1
        )

        with pytest.raises(ProvisioningError) as exc_info:
            NetworkProvisioner(mock_client, config, console).run()

        assert exc_info.value.step == "Creating vnet actions-vnet and subnet actions-subnet"
        assert "InUseSubnetCannotBeUpdated" in str(exc_info.value)
        assert isinstance(exc_info.value.error, AzureCommandError)
        mock_client.update_subnet.assert_not_called()
        mock_client.create_resource.assert_not_called()
        assert called_methods(mock_client)[-1] == "create_vnet"

        output = console.file.getvalue()  # type: ignore[attr-defined]
        assert "Failed: Creating vnet actions-vnet and subnet actions-subnet" in output
        assert "Provisioning Complete!" not in output

    def test_role_file_removed_on_failure(self, mock_client: Mock, config: NetworkConfig, console: Console) -> None:
        seen: list[Path] = []

        def fail(path: Path) -> None:
            seen.append(path)
            raise AzureCommandError("ERROR: invalid role definition", ["role", "definition", "create"], 1)

        mock_client.create_role_definition.side_effect = fail

        with pytest.raises(ProvisioningError) as exc_info:
            NetworkProvisioner(mock_client, config, console).run()

        assert exc_info.value.step == "Creating custom role GitHubActionsNetworkRole"
        assert not seen[0].exists()
        mock_client.role_assignment_exists.assert_not_called()

    def test_first_step_failure(self, mock_client: Mock, config: NetworkConfig, console: Console) -> None:
        mock_client.login.side_effect = AzureCommandError("login cancelled", ["login"], 1)

        with pytest.raises(ProvisioningError):
            NetworkProvisioner(mock_client, config, console).run()

        assert called_methods(mock_client) == ["login"]

    @pytest.mark.parametrize(
        "stderr",
        [
            "ERROR: (InvalidTemplate) The template resource '[parameters('nsgName')]' is not valid",
            "ERROR: invalid scope [/subscriptions/abc]",
        ],
    )
    def test_bracketed_error_text_shown_verbatim(
        self, mock_client: Mock, config: NetworkConfig, console: Console, stderr: str
    ) -> None:
        mock_client.deploy_group_template.side_effect = AzureCommandError(stderr, ["deployment", "group", "create"], 1)

        with pytest.raises(ProvisioningError) as exc_info:
            NetworkProvisioner(mock_client, config, console).run()

        assert str(exc_info.value.error) == stderr
        assert stderr in console.file.getvalue()  # type: ignore[attr-defined]
        mock_client.create_vnet.assert_not_called()
