"""Remote client for OLM lifecycle operations.

`RemoteClient` is the capability set the Manager consumes. `KubectlClient` is
the production implementation: it applies and inspects the OLM release
manifests with the kubectl CLI.
"""

import asyncio
import json
import logging
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Protocol

import httpx
import yaml

from olm_installer.display import create_status_table, render_table
from olm_installer.kube_config import ClusterConfig
from olm_installer.utils.async_subprocess import AsyncCompletedProcess, run_async
from olm_installer.utils.errors import (
    AlreadyInstalledError,
    ClientConstructionError,
    KubectlCommandError,
    NotInstalledError,
    RemoteOperationError,
)

logger = logging.getLogger(__name__)

# TODO: switch back to resolving the latest release once upstream OLM release assets
# are published consistently again
DEFAULT_VERSION = "0.28.0"
OLM_RELEASE_URL = "https://github.com/operator-framework/operator-lifecycle-manager/releases/download"
CRDS_MANIFEST = "crds.yaml"
OLM_MANIFEST = "olm.yaml"

PACKAGESERVER_CSV = "packageserver"
PACKAGES_APISERVICE = "v1.packages.operators.coreos.com"
OLM_DEPLOYMENTS = ("olm-operator", "catalog-operator")

# kubectl-side wait bound; the caller's operation timeout is the real limit
KUBECTL_WAIT_TIMEOUT = "24h"
CSV_POLL_INTERVAL = 2.0


class RemoteClient(Protocol):
    """Operations the Manager performs against the cluster."""

    async def install_version(self, namespace: str, version: str) -> str: ...

    async def get_installed_version(self, namespace: str) -> str: ...

    async def uninstall_version(self, version: str) -> None: ...

    async def get_status(self, version: str) -> str: ...


def manifest_url(version: str, manifest: str) -> str:
    """Get the release asset URL of an OLM manifest.

    Args:
        version: OLM version, with or without a leading "v" (empty means default)
        manifest: Manifest file name (crds.yaml or olm.yaml)

    Returns:
        Manifest URL
    """
    version = version or DEFAULT_VERSION
    if not version.startswith("v"):
        version = f"v{version}"
    return f"{OLM_RELEASE_URL}/{version}/{manifest}"


def client_for_config(config: ClusterConfig, kubectl: str = "kubectl") -> "KubectlClient":
    """Build a kubectl-backed client for a cluster.

    Args:
        config: Cluster configuration
        kubectl: kubectl executable

    Returns:
        KubectlClient bound to the cluster

    Raises:
        ClientConstructionError: If kubectl is unavailable or the config is unusable
    """
    if not config.server:
        raise ClientConstructionError("cluster configuration has no API server address")

    try:
        result = subprocess.run(
            [kubectl, "version", "--client"],
            capture_output=True,
            text=True,
            timeout=10,
        )
    except FileNotFoundError as e:
        raise ClientConstructionError(
            "kubectl CLI not found. Please install kubectl: "
            "https://kubernetes.io/docs/tasks/tools/install-kubectl/"
        ) from e
    except subprocess.TimeoutExpired as e:
        raise ClientConstructionError("kubectl version check timed out") from e

    if result.returncode != 0:
        raise ClientConstructionError(
            f"kubectl CLI is not working correctly: {result.stderr or result.stdout}"
        )
    logger.debug(f"kubectl version: {result.stdout.strip()}")

    return KubectlClient(config, kubectl=kubectl)


class KubectlClient:
    """Remote client that manages OLM through the kubectl CLI."""

    def __init__(
        self,
        config: ClusterConfig,
        kubectl: str = "kubectl",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize kubectl client.

        Args:
            config: Cluster configuration
            kubectl: kubectl executable
            transport: Optional HTTP transport used to fetch release manifests
        """
        self.config = config
        self.kubectl = kubectl
        self.transport = transport

    def _base_args(self, kubeconfig_path: str | Path) -> list[str]:
        args = [self.kubectl, "--kubeconfig", str(kubeconfig_path)]
        if self.config.context:
            args.extend(["--context", self.config.context])
        return args

    def _in_cluster_kubeconfig(self) -> dict[str, Any]:
        """Build a kubeconfig for service account credentials.

        The token is referenced by path so it never appears on a command line.
        """
        cluster: dict[str, Any] = {"server": self.config.server}
        if self.config.ca_file:
            cluster["certificate-authority"] = str(self.config.ca_file)
        user: dict[str, Any] = {}
        if self.config.token_file:
            user["tokenFile"] = str(self.config.token_file)
        return {
            "apiVersion": "v1",
            "kind": "Config",
            "clusters": [{"name": "in-cluster", "cluster": cluster}],
            "users": [{"name": "in-cluster", "user": user}],
            "contexts": [
                {"name": "in-cluster", "context": {"cluster": "in-cluster", "user": "in-cluster"}}
            ],
            "current-context": "in-cluster",
        }

    async def _run_kubectl(
        self, args: list[str], check: bool = True, stdin: str | None = None
    ) -> AsyncCompletedProcess:
        """Run kubectl against the configured cluster.

        Args:
            args: Command arguments
            check: Whether a non-zero exit raises
            stdin: Optional text fed to kubectl (e.g. a manifest for "-f -")

        Returns:
            Completed process

        Raises:
            KubectlCommandError: If kubectl is missing, or the command fails and check=True
        """
        if not self.config.in_cluster:
            result = await self._exec(self._base_args(self.config.kubeconfig_path) + args, stdin)
        else:
            with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
                yaml.safe_dump(self._in_cluster_kubeconfig(), f)
                kubeconfig_path = f.name
            try:
                result = await self._exec(self._base_args(kubeconfig_path) + args, stdin)
            finally:
                Path(kubeconfig_path).unlink(missing_ok=True)

        if check and result.returncode != 0:
            error_msg = (result.stderr or result.stdout).strip()
            raise KubectlCommandError(f"kubectl {' '.join(args[:2])} failed: {error_msg}")
        return result

    async def _exec(self, cmd: list[str], stdin: str | None) -> AsyncCompletedProcess:
        try:
            return await run_async(cmd, stdin=stdin)
        except FileNotFoundError as e:
            raise KubectlCommandError("kubectl CLI not found in PATH") from e

    async def get_installed_version(self, namespace: str) -> str:
        """Get the OLM version installed in a namespace.

        The version is read from the packageserver ClusterServiceVersion,
        which OLM ships with its own release version.

        Raises:
            NotInstalledError: If no installation is found
            KubectlCommandError: If the lookup fails
        """
        result = await self._run_kubectl(
            ["get", "clusterserviceversion", PACKAGESERVER_CSV, "-n", namespace, "-o", "json"],
            check=False,
        )
        if result.returncode != 0:
            stderr = result.stderr
            if "NotFound" in stderr or "doesn't have a resource type" in stderr:
                raise NotInstalledError(
                    f"no existing OLM installation found in namespace {namespace!r}"
                )
            raise KubectlCommandError(
                f"failed to get installed OLM version: {(stderr or result.stdout).strip()}"
            )

        try:
            csv = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise KubectlCommandError(f"failed to parse kubectl output as JSON: {e}") from e

        version = (csv.get("spec") or {}).get("version")
        if not version:
            raise RemoteOperationError(
                f"{PACKAGESERVER_CSV} ClusterServiceVersion in namespace {namespace!r} "
                "does not report a version"
            )
        return version

    async def install_version(self, namespace: str, version: str) -> str:
        """Install an OLM release and wait for it to become ready.

        Args:
            namespace: Namespace OLM is installed into
            version: OLM version (empty installs DEFAULT_VERSION)

        Returns:
            Status text of the new installation

        Raises:
            AlreadyInstalledError: If OLM is already installed
            KubectlCommandError: If any step fails
        """
        try:
            installed = await self.get_installed_version(namespace)
        except NotInstalledError:
            pass
        else:
            raise AlreadyInstalledError(
                f"OLM version {installed!r} is already installed in namespace {namespace!r}"
            )

        version = version or DEFAULT_VERSION
        crds_url = manifest_url(version, CRDS_MANIFEST)
        olm_url = manifest_url(version, OLM_MANIFEST)

        logger.info(f"Creating OLM CRDs from {crds_url}")
        await self._run_kubectl(["create", "-f", crds_url])
        await self._run_kubectl(
            [
                "wait",
                "--for=condition=Established",
                "-f",
                crds_url,
                f"--timeout={KUBECTL_WAIT_TIMEOUT}",
            ]
        )

        logger.info(f"Creating OLM resources from {olm_url}")
        await self._run_kubectl(["create", "-f", olm_url])

        for deployment in OLM_DEPLOYMENTS:
            logger.info(f"Waiting for deployment {deployment!r} rollout")
            await self._run_kubectl(
                ["rollout", "status", f"deployment/{deployment}", "-n", namespace]
            )

        await self._wait_for_csv(namespace, PACKAGESERVER_CSV)

        return await self.get_status(version)

    async def _wait_for_csv(self, namespace: str, name: str) -> None:
        """Poll a ClusterServiceVersion until it reaches the Succeeded phase."""
        logger.info(f"Waiting for ClusterServiceVersion {name!r} to succeed")
        while True:
            result = await self._run_kubectl(
                ["get", "csv", name, "-n", namespace, "-o", "jsonpath={.status.phase}"],
                check=False,
            )
            phase = result.stdout.strip()
            if phase == "Succeeded":
                return
            if phase == "Failed":
                raise RemoteOperationError(
                    f"ClusterServiceVersion {name!r} in namespace {namespace!r} failed"
                )
            logger.debug(f"ClusterServiceVersion {name!r} phase: {phase or 'not found'}")
            await asyncio.sleep(CSV_POLL_INTERVAL)

    async def uninstall_version(self, version: str) -> None:
        """Remove an OLM release from the cluster.

        Raises:
            KubectlCommandError: If any deletion fails
        """
        await self._run_kubectl(
            ["delete", "apiservices.apiregistration.k8s.io", PACKAGES_APISERVICE, "--ignore-not-found"]
        )
        for manifest in (OLM_MANIFEST, CRDS_MANIFEST):
            url = manifest_url(version, manifest)
            logger.info(f"Deleting OLM resources from {url}")
            await self._run_kubectl(["delete", "-f", url, "--ignore-not-found", "--wait"])

    async def get_status(self, version: str) -> str:
        """Describe the status of every resource of an OLM release.

        Returns:
            Table of resources and their status

        Raises:
            NotInstalledError: If none of the release's resources exist
            RemoteOperationError: If the release manifests cannot be fetched or parsed
        """
        rows = []
        found = 0
        for manifest in (CRDS_MANIFEST, OLM_MANIFEST):
            url = manifest_url(version, manifest)
            text = await self._fetch_manifest(url)
            expected = _manifest_objects(text, url)
            live = await self._live_resources(text)
            for obj in expected:
                key = _resource_key(obj)
                current = live.get(key)
                if current is not None:
                    found += 1
                rows.append(
                    {
                        "name": key[2],
                        "namespace": key[1],
                        "kind": key[0],
                        "status": _resource_status(current),
                    }
                )

        if found == 0:
            raise NotInstalledError(f"no existing installation found for OLM version {version!r}")

        return render_table(create_status_table(rows))

    async def _fetch_manifest(self, url: str) -> str:
        """Download a release manifest.

        Raises:
            RemoteOperationError: If the manifest cannot be downloaded
        """
        logger.debug(f"Fetching manifest {url}")
        try:
            async with httpx.AsyncClient(
                transport=self.transport, follow_redirects=True
            ) as http:
                response = await http.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise RemoteOperationError(f"failed to fetch OLM manifest {url}: {e}") from e
        return response.text

    async def _live_resources(self, manifest: str) -> dict[tuple[str, str, str], dict[str, Any]]:
        # Partial results are expected when CRDs are missing
        result = await self._run_kubectl(
            ["get", "-f", "-", "--ignore-not-found", "-o", "json"], check=False, stdin=manifest
        )
        if result.returncode != 0:
            logger.debug(f"kubectl get reported errors: {result.stderr.strip()}")
        return {_resource_key(obj): obj for obj in _json_objects(result.stdout)}


def _manifest_objects(manifest: str, url: str) -> list[dict[str, Any]]:
    """Parse the objects of a multi-document YAML manifest."""
    try:
        documents = list(yaml.safe_load_all(manifest))
    except yaml.YAMLError as e:
        raise RemoteOperationError(f"invalid OLM manifest {url}: {e}") from e
    objects = []
    for doc in documents:
        if not isinstance(doc, dict):
            continue
        if doc.get("kind") == "List":
            objects.extend(item for item in doc.get("items") or [] if isinstance(item, dict))
        else:
            objects.append(doc)
    return objects


def _json_objects(output: str) -> list[dict[str, Any]]:
    """Decode kubectl JSON output into a flat list of objects.

    kubectl prints either a single object, a List, or several objects back
    to back, depending on the command and the number of results.
    """
    decoder = json.JSONDecoder()
    objects: list[dict[str, Any]] = []
    pos = 0
    while True:
        while pos < len(output) and output[pos].isspace():
            pos += 1
        if pos >= len(output):
            return objects
        try:
            data, pos = decoder.raw_decode(output, pos)
        except json.JSONDecodeError as e:
            raise KubectlCommandError(f"failed to parse kubectl output as JSON: {e}") from e
        if not isinstance(data, dict):
            continue
        if data.get("kind") == "List" or "items" in data:
            objects.extend(data.get("items") or [])
        else:
            objects.append(data)


def _resource_key(obj: dict[str, Any]) -> tuple[str, str, str]:
    metadata = obj.get("metadata") or {}
    return (obj.get("kind", ""), metadata.get("namespace") or "", metadata.get("name", ""))


def _condition_true(obj: dict[str, Any], condition: str) -> bool:
    for cond in (obj.get("status") or {}).get("conditions") or []:
        if cond.get("type") == condition:
            return cond.get("status") == "True"
    return False


def _resource_status(obj: dict[str, Any] | None) -> str:
    """Summarize a live resource's status."""
    if obj is None:
        return "Resource not found"

    kind = obj.get("kind")
    if kind == "Deployment":
        return "Available" if _condition_true(obj, "Available") else "Unavailable"
    if kind == "CustomResourceDefinition":
        return "Established" if _condition_true(obj, "Established") else "Not established"
    if kind == "ClusterServiceVersion":
        return (obj.get("status") or {}).get("phase") or "Pending"
    return "Installed"
