"""Pytest fixtures for testing the OLM installer."""

import io

import pytest
from rich.console import Console

from olm_installer.kube_config import ClusterConfig
from tests.mocks import CountingConfigProvider, MockRemoteClient


@pytest.fixture
def cluster_config() -> ClusterConfig:
    """Create an in-memory cluster configuration.

    Returns:
        ClusterConfig pointing at a fake kubeconfig
    """
    return ClusterConfig(
        server="https://127.0.0.1:6443",
        kubeconfig_path=None,
        context=None,
    )


@pytest.fixture
def config_provider(cluster_config: ClusterConfig) -> CountingConfigProvider:
    """Create a config provider that counts lookups."""
    return CountingConfigProvider(cluster_config)


@pytest.fixture
def mock_client() -> MockRemoteClient:
    """Create a mock remote client reporting OLM 1.2.0 as installed."""
    return MockRemoteClient(installed_version="1.2.0", status_text="packageserver  olm  Succeeded")


@pytest.fixture
def output() -> io.StringIO:
    """Buffer capturing console output."""
    return io.StringIO()


@pytest.fixture
def console(output: io.StringIO) -> Console:
    """Console writing plain text into the output buffer."""
    return Console(file=output, width=120, color_system=None, highlight=False)
