"""Configuration management for the OLM installer.

This module handles configuration loading from environment variables and .env files.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from olm_installer.utils.validation import (
    parse_duration,
    validate_namespace,
    validate_olm_version,
)


@dataclass
class InstallerConfig:
    """OLM installer configuration.

    Loads configuration from environment variables. Empty values mean "use
    the Manager's default" (or, for the version, "derive it from the cluster").
    """

    # OLM Configuration
    olm_version: str = ""
    olm_namespace: str = ""
    timeout: str = ""

    # Cluster Configuration
    kubeconfig: str | None = None
    kube_context: str | None = None

    log_level: str = "info"

    def __post_init__(self):
        """Load configuration from environment variables after initialization."""
        # Load .env file if present
        load_dotenv()

        self.olm_version = os.getenv("OLM_VERSION", self.olm_version).strip()
        self.olm_namespace = os.getenv("OLM_NAMESPACE", self.olm_namespace).strip()
        self.timeout = os.getenv("OLM_TIMEOUT", self.timeout).strip()

        # KUBECONFIG may hold a path list; it is resolved during cluster discovery
        self.kube_context = os.getenv("KUBE_CONTEXT", self.kube_context)

        self.log_level = os.getenv("LOG_LEVEL", self.log_level).lower()

    @property
    def timeout_seconds(self) -> float:
        """Get the configured timeout in seconds (0 when unset).

        Raises:
            ValueError: If the timeout cannot be parsed
        """
        return parse_duration(self.timeout) if self.timeout else 0.0

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ValueError: If a configured value is malformed.
        """
        if self.olm_version:
            validate_olm_version(self.olm_version)

        if self.olm_namespace:
            validate_namespace(self.olm_namespace)

        if self.timeout and self.timeout_seconds <= 0:
            raise ValueError(f"OLM_TIMEOUT must be a positive duration, got {self.timeout!r}")

        if self.log_level not in ("debug", "info", "warning", "error", "critical"):
            raise ValueError(
                f"Invalid log level: {self.log_level}. "
                "Must be one of: debug, info, warning, error, critical"
            )
