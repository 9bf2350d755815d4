"""OLM lifecycle manager.

The Manager runs one of install, uninstall or status against a remote client.
Its shared dependencies (client, timeout, namespace) are finalized lazily, once
per instance, on the first operation. Uninstall and status reconcile the
requested version against the version found on the cluster before touching it.
"""

import argparse
import asyncio
import enum
import logging
import threading
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from rich.console import Console

from olm_installer.client import RemoteClient, client_for_config
from olm_installer.kube_config import ClusterConfig, ConfigProvider, KubeconfigProvider
from olm_installer.utils.errors import (
    ClientConstructionError,
    ConfigurationError,
    InstallerError,
    OperationTimeoutError,
    RemoteOperationError,
    UnresolvableVersionError,
    VersionMismatchError,
)
from olm_installer.utils.validation import parse_duration

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120.0
DEFAULT_OLM_NAMESPACE = "olm"

T = TypeVar("T")


class InitState(enum.Enum):
    """Lifecycle of the Manager's one-shot initialization."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


def resolve_version(
    requested: str, installed: str | None, query_error: Exception | None = None
) -> str:
    """Decide the effective version from the requested and installed versions.

    Exactly one of `installed` and `query_error` describes the outcome of the
    installed-version query: a failed query passes its error and no version.

    Args:
        requested: Version supplied by the caller (empty means unspecified)
        installed: Version found on the cluster, if the query succeeded
        query_error: Error raised by the query, if it failed

    Returns:
        The version to operate on

    Raises:
        VersionMismatchError: If the requested version differs from the installed one
        UnresolvableVersionError: If the query failed and no version was requested
    """
    if query_error is None and installed is not None:
        if not requested:
            return installed
        if requested != installed:
            raise VersionMismatchError(installed, requested)
        return requested

    if not requested:
        raise UnresolvableVersionError(
            "error getting installed OLM version (set --version to override the default "
            f"version): {query_error}"
        ) from query_error

    logger.debug(f"Ignoring installed version lookup failure, using {requested!r}: {query_error}")
    return requested


class Manager:
    """Manages the install, uninstall and status lifecycle of OLM.

    A Manager is meant for a single top-level operation. Fields left unset at
    construction are defaulted on first use; `version` is never defaulted and is
    resolved per operation instead.
    """

    def __init__(
        self,
        client: RemoteClient | None = None,
        version: str = "",
        timeout: float = 0,
        namespace: str = "",
        config_provider: ConfigProvider | None = None,
        client_factory: Callable[[ClusterConfig], RemoteClient] | None = None,
        console: Console | None = None,
    ):
        """Initialize manager.

        Args:
            client: Pre-built remote client (owned by the caller)
            version: OLM version to operate on (empty derives it from the cluster)
            timeout: Seconds allowed per remote call (non-positive uses DEFAULT_TIMEOUT)
            namespace: OLM namespace (empty uses DEFAULT_OLM_NAMESPACE)
            config_provider: Source of cluster configuration when no client is given
            client_factory: Builds a client from cluster configuration
            console: Console receiving status output
        """
        self.client = client
        self.version = version
        self.timeout = timeout
        self.namespace = namespace
        self.config_provider = config_provider or KubeconfigProvider()
        self.client_factory = client_factory or client_for_config
        self.console = console or Console(highlight=False)

        self._state = InitState.UNINITIALIZED
        self._init_error: InstallerError | None = None
        self._init_lock = threading.Lock()

    @property
    def state(self) -> InitState:
        return self._state

    def ensure_initialized(self) -> None:
        """Finalize the manager's configuration, once.

        The first call discovers cluster configuration and builds a client (if
        none was supplied) and applies default timeout and namespace. Concurrent
        callers block until the first one finishes. A failure is kept and raised
        again on every later call.

        Raises:
            ConfigurationError: If cluster configuration cannot be discovered
            ClientConstructionError: If the client cannot be built
        """
        with self._init_lock:
            if self._state is InitState.READY:
                return
            if self._init_error is not None:
                raise self._init_error

            self._state = InitState.INITIALIZING
            try:
                self._initialize()
            except InstallerError as e:
                self._init_error = e
                self._state = InitState.FAILED
                raise
            self._state = InitState.READY

    def _initialize(self) -> None:
        if self.client is None:
            try:
                cfg = self.config_provider.get_config()
            except Exception as e:
                raise ConfigurationError(f"failed to get Kubernetes config: {e}") from e

            try:
                self.client = self.client_factory(cfg)
            except Exception as e:
                raise ClientConstructionError(f"failed to create manager client: {e}") from e

        if self.timeout <= 0:
            self.timeout = DEFAULT_TIMEOUT
        if not self.namespace:
            self.namespace = DEFAULT_OLM_NAMESPACE

        logger.debug(
            f"Manager initialized (namespace={self.namespace!r}, timeout={self.timeout}s)"
        )

    async def _initialized(self) -> None:
        # Client construction runs blocking subprocesses; keep it off the event loop
        if self._state is not InitState.READY:
            await asyncio.to_thread(self.ensure_initialized)

    @asynccontextmanager
    async def _bounded(self, operation: str) -> AsyncIterator[None]:
        """Bound the enclosed remote calls by the configured timeout."""
        try:
            async with asyncio.timeout(self.timeout):
                yield
        except TimeoutError as e:
            raise OperationTimeoutError(
                f"{operation} did not complete within {self.timeout:g}s"
            ) from e

    async def _remote(self, step: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except InstallerError:
            raise
        except Exception as e:
            raise RemoteOperationError(f"{step} failed: {e}") from e

    async def reconcile_version(self) -> str:
        """Determine the version Uninstall and Status operate on.

        Queries the installed version and reconciles it with `self.version`.
        When no version was requested, the installed one is adopted and stored.

        Returns:
            The effective version

        Raises:
            VersionMismatchError: If the requested version differs from the installed one
            UnresolvableVersionError: If no version can be determined
        """
        await self._initialized()
        try:
            installed = await self.client.get_installed_version(self.namespace)
        except Exception as e:
            effective = resolve_version(self.version, None, e)
        else:
            effective = resolve_version(self.version, installed, None)

        self.version = effective
        return effective

    def _print_status(self, status: str) -> None:
        self.console.print()
        self.console.print(status, markup=False, highlight=False, soft_wrap=True)

    async def install(self) -> None:
        """Install OLM at the configured version (empty lets the client pick its default)."""
        await self._initialized()

        async with self._bounded("install"):
            status = await self._remote(
                "install", self.client.install_version(self.namespace, self.version)
            )

        logger.info(f'Successfully installed OLM version "{self.version}"')
        self._print_status(status)

    async def uninstall(self) -> None:
        """Uninstall the OLM version found on (or supplied for) the cluster."""
        await self._initialized()

        async with self._bounded("uninstall"):
            version = await self.reconcile_version()
            await self._remote("uninstall", self.client.uninstall_version(version))

        logger.info(f'Successfully uninstalled OLM version "{version}"')

    async def status(self) -> None:
        """Print the status of the OLM version found on (or supplied for) the cluster."""
        await self._initialized()

        async with self._bounded("status"):
            version = await self.reconcile_version()
            status = await self._remote("status", self.client.get_status(version))

        logger.info(f'Successfully got OLM status for version "{version}"')
        self._print_status(status)

    def add_to_parser(self, parser: argparse.ArgumentParser) -> None:
        """Bind the --timeout option to this manager's timeout.

        The option defaults to the current timeout, or DEFAULT_TIMEOUT when it
        is unset; parsing --timeout overwrites it.

        Args:
            parser: Parser receiving the option
        """
        if self.timeout <= 0:
            self.timeout = DEFAULT_TIMEOUT
        parser.add_argument(
            "--timeout",
            type=parse_duration,
            default=self.timeout,
            metavar="DURATION",
            action=_BindAction,
            target=self,
            help="time to wait for the command to complete before failing (e.g. 90s, 2m)",
        )


class _BindAction(argparse.Action):
    """Store an option both on the namespace and on a target object."""

    def __init__(self, option_strings: list[str], dest: str, target: Any, **kwargs: Any):
        super().__init__(option_strings, dest, **kwargs)
        self.target = target

    def __call__(
        self,
        parser: argparse.ArgumentParser,
        namespace: argparse.Namespace,
        values: Any,
        option_string: str | None = None,
    ) -> None:
        setattr(namespace, self.dest, values)
        setattr(self.target, self.dest, values)
