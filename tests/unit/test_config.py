"""Unit tests for configuration management."""

import os
from unittest.mock import patch

import pytest

from olm_installer.config import InstallerConfig


@pytest.fixture(autouse=True)
def no_dotenv():
    """Keep a developer's .env file out of the tests."""
    with patch("olm_installer.config.load_dotenv"):
        yield


class TestInstallerConfig:
    """Test InstallerConfig class."""

    def test_default_configuration(self):
        """Test default configuration values."""
        with patch.dict(os.environ, {}, clear=True):
            config = InstallerConfig()

            assert config.olm_version == ""
            assert config.olm_namespace == ""
            assert config.timeout == ""
            assert config.timeout_seconds == 0.0
            assert config.kube_context is None
            assert config.log_level == "info"

    def test_environment_variable_loading(self):
        """Test loading configuration from environment."""
        env = {
            "OLM_VERSION": "0.28.0",
            "OLM_NAMESPACE": "operators",
            "OLM_TIMEOUT": "5m",
            "KUBE_CONTEXT": "kind-dev",
            "LOG_LEVEL": "DEBUG",
        }

        with patch.dict(os.environ, env, clear=True):
            config = InstallerConfig()

            assert config.olm_version == "0.28.0"
            assert config.olm_namespace == "operators"
            assert config.timeout_seconds == 300.0
            assert config.kube_context == "kind-dev"
            assert config.log_level == "debug"

    def test_validation_success(self):
        """Test validation passes with valid values."""
        env = {"OLM_VERSION": "v0.28.0", "OLM_NAMESPACE": "olm", "OLM_TIMEOUT": "90s"}

        with patch.dict(os.environ, env, clear=True):
            InstallerConfig().validate()

    def test_validation_empty_values(self):
        """Test unset values are valid."""
        with patch.dict(os.environ, {}, clear=True):
            InstallerConfig().validate()

    def test_validation_bad_version(self):
        """Test validation rejects malformed versions."""
        with patch.dict(os.environ, {"OLM_VERSION": "latest"}, clear=True):
            with pytest.raises(ValueError, match="Invalid OLM version"):
                InstallerConfig().validate()

    def test_validation_bad_namespace(self):
        """Test validation rejects invalid namespaces."""
        with patch.dict(os.environ, {"OLM_NAMESPACE": "Not_Valid"}, clear=True):
            with pytest.raises(ValueError, match="Namespace"):
                InstallerConfig().validate()

    def test_validation_bad_timeout(self):
        """Test validation rejects unparseable and non-positive timeouts."""
        with patch.dict(os.environ, {"OLM_TIMEOUT": "soon"}, clear=True):
            with pytest.raises(ValueError, match="Invalid duration"):
                InstallerConfig().validate()

        with patch.dict(os.environ, {"OLM_TIMEOUT": "0s"}, clear=True):
            with pytest.raises(ValueError, match="positive duration"):
                InstallerConfig().validate()

    def test_validation_bad_log_level(self):
        """Test validation rejects unknown log levels."""
        with patch.dict(os.environ, {"LOG_LEVEL": "verbose"}, clear=True):
            with pytest.raises(ValueError, match="Invalid log level"):
                InstallerConfig().validate()
