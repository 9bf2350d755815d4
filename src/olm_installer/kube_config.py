"""Cluster configuration discovery.

Resolves which cluster the installer talks to, from (in order) an explicit
kubeconfig path, the KUBECONFIG environment variable, in-cluster service
account credentials, or the default ~/.kube/config.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import yaml

from olm_installer.utils.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_KUBECONFIG = Path.home() / ".kube" / "config"
SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")


@dataclass(frozen=True)
class ClusterConfig:
    """Connection settings for a single cluster."""

    server: str
    kubeconfig_path: Path | None = None
    context: str | None = None
    token_file: Path | None = None
    ca_file: Path | None = None

    @property
    def in_cluster(self) -> bool:
        return self.kubeconfig_path is None


class ConfigProvider(Protocol):
    """Source of cluster configuration."""

    def get_config(self) -> ClusterConfig: ...


class StaticConfigProvider:
    """Config provider returning a fixed, in-memory configuration."""

    def __init__(self, config: ClusterConfig):
        self.config = config

    def get_config(self) -> ClusterConfig:
        return self.config


class KubeconfigProvider:
    """Config provider reading kubeconfig files or in-cluster credentials."""

    def __init__(
        self,
        kubeconfig: str | Path | None = None,
        context: str | None = None,
        environ: dict[str, str] | None = None,
        service_account_dir: Path = SERVICE_ACCOUNT_DIR,
        default_kubeconfig: Path = DEFAULT_KUBECONFIG,
    ):
        """Initialize kubeconfig provider.

        Args:
            kubeconfig: Explicit kubeconfig path (takes precedence over everything)
            context: Context name overriding the kubeconfig's current-context
            environ: Environment to read from (defaults to os.environ)
            service_account_dir: Directory holding in-cluster credentials
            default_kubeconfig: Fallback kubeconfig path
        """
        self.kubeconfig = Path(kubeconfig) if kubeconfig else None
        self.context = context
        self.environ = os.environ if environ is None else environ
        self.service_account_dir = service_account_dir
        self.default_kubeconfig = default_kubeconfig

    def get_config(self) -> ClusterConfig:
        """Discover the cluster configuration.

        Returns:
            Resolved ClusterConfig

        Raises:
            ConfigurationError: If no usable configuration can be found
        """
        if self.kubeconfig:
            return self._load_kubeconfig(self.kubeconfig)

        env_paths = self.environ.get("KUBECONFIG", "")
        if env_paths:
            for entry in env_paths.split(os.pathsep):
                if entry and Path(entry).expanduser().exists():
                    return self._load_kubeconfig(Path(entry).expanduser())
            logger.debug(f"No existing file in KUBECONFIG={env_paths}")

        in_cluster = self._load_in_cluster()
        if in_cluster is not None:
            return in_cluster

        if self.default_kubeconfig.exists():
            return self._load_kubeconfig(self.default_kubeconfig)

        raise ConfigurationError(
            "no kubeconfig found: set KUBECONFIG, pass --kubeconfig, "
            f"or create {self.default_kubeconfig}"
        )

    def _load_in_cluster(self) -> ClusterConfig | None:
        host = self.environ.get("KUBERNETES_SERVICE_HOST")
        port = self.environ.get("KUBERNETES_SERVICE_PORT")
        token_file = self.service_account_dir / "token"
        if not host or not port or not token_file.exists():
            return None

        if ":" in host and not host.startswith("["):
            host = f"[{host}]"

        ca_file = self.service_account_dir / "ca.crt"
        logger.debug(f"Using in-cluster configuration for https://{host}:{port}")
        return ClusterConfig(
            server=f"https://{host}:{port}",
            token_file=token_file,
            ca_file=ca_file if ca_file.exists() else None,
        )

    def _load_kubeconfig(self, path: Path) -> ClusterConfig:
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except FileNotFoundError as e:
            raise ConfigurationError(f"kubeconfig not found: {path}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"invalid kubeconfig {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"invalid kubeconfig {path}: expected a mapping")

        context_name = self.context or data.get("current-context")
        if not context_name:
            raise ConfigurationError(f"kubeconfig {path} has no current-context set")

        context = _find_named(data.get("contexts"), context_name, "context")
        if context is None:
            raise ConfigurationError(f"context {context_name!r} not found in kubeconfig {path}")

        cluster_name = context.get("cluster")
        cluster = _find_named(data.get("clusters"), cluster_name, "cluster")
        if cluster is None or not cluster.get("server"):
            raise ConfigurationError(
                f"cluster {cluster_name!r} for context {context_name!r} "
                f"not found in kubeconfig {path}"
            )

        logger.debug(f"Using kubeconfig {path} (context {context_name!r})")
        return ClusterConfig(
            server=cluster["server"],
            kubeconfig_path=path,
            context=context_name,
        )


def _find_named(entries: Any, name: str | None, key: str) -> dict[str, Any] | None:
    """Find the body of a named kubeconfig entry (e.g. a context or cluster)."""
    if not name or not isinstance(entries, list):
        return None
    for entry in entries:
        if isinstance(entry, dict) and entry.get("name") == name:
            body = entry.get(key)
            return body if isinstance(body, dict) else None
    return None
