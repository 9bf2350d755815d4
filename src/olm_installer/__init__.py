"""Operator Lifecycle Manager (OLM) installer.

Installs, uninstalls and reports on a single OLM release in a Kubernetes
cluster.
"""

from importlib.metadata import PackageNotFoundError, version

from olm_installer.manager import Manager

# Read version from package metadata with fallback
try:
    __version__ = version("olm-installer")
except PackageNotFoundError:
    # Fallback for development/testing environments
    __version__ = "0.1.0"

__all__ = [
    "Manager",
    "__version__",
]
