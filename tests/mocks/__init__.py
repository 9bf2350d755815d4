"""Test doubles for the OLM installer."""

from tests.mocks.mock_client import CountingConfigProvider, MockRemoteClient

__all__ = ["CountingConfigProvider", "MockRemoteClient"]
