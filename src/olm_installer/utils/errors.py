"""Custom exception classes for the OLM installer."""


class InstallerError(Exception):
    """Base exception for OLM installer errors."""

    pass


class ConfigurationError(InstallerError):
    """Raised when cluster configuration cannot be discovered."""

    pass


class ClientConstructionError(InstallerError):
    """Raised when a remote client cannot be built from cluster configuration."""

    pass


class UnresolvableVersionError(InstallerError):
    """Raised when no installed version was found and none was supplied."""

    pass


class VersionMismatchError(InstallerError):
    """Raised when the supplied version conflicts with the installed version."""

    def __init__(self, installed: str, requested: str):
        self.installed = installed
        self.requested = requested
        super().__init__(
            f"mismatched installed version {installed!r} vs. supplied version {requested!r}"
        )


class RemoteOperationError(InstallerError):
    """Raised when an install, uninstall or status call against the cluster fails."""

    pass


class OperationTimeoutError(RemoteOperationError):
    """Raised when a remote operation does not complete within its timeout."""

    pass


class KubectlCommandError(RemoteOperationError):
    """Raised when a kubectl command fails."""

    pass


class AlreadyInstalledError(RemoteOperationError):
    """Raised when installing over an existing OLM installation."""

    pass


class NotInstalledError(RemoteOperationError):
    """Raised when no OLM installation can be found."""

    pass
