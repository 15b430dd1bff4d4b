"""Shared fixtures for the actions-network tests."""

import io
from unittest.mock import Mock

import pytest
from rich.console import Console

from actions_network.azure_cli import AzureCLI
from actions_network.config import NetworkConfig

SUBSCRIPTION_ID = "00000000-1111-2222-3333-444444444444"


@pytest.fixture
def config() -> NetworkConfig:
    return NetworkConfig(
        subscription_id=SUBSCRIPTION_ID,
        location="eastus",
        resource_group_name="actions-rg",
        vnet_name="actions-vnet",
        subnet_name="actions-subnet",
        nsg_name="actions-nsg",
        network_settings_resource_name="actions-network-settings",
        database_id="123456",
    )


@pytest.fixture
def mock_client() -> Mock:
    client = Mock(spec=AzureCLI)
    client.find_role_definition.return_value = None
    client.role_assignment_exists.return_value = False
    client.resource_group_exists.return_value = False
    client.create_resource.return_value = {"GitHubId": "E1A2B3C4", "name": "actions-network-settings"}
    return client


@pytest.fixture
def console() -> Console:
    return Console(file=io.StringIO(), width=200, force_terminal=False)
