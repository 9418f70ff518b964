"""
Deploy and manage releases with Helm.

Helm itself owns chart lookup, templating and release state; the [Helm] class merely prepares the environment
for the `helm` binary, makes sure the chart repository is known, and maps failures to [HelmError]s.
"""

from dataclasses import dataclass, field
import json
import os
import shlex
import shutil
import subprocess
from typing import Any

from loguru import logger

from pbdeploy.cluster import ClusterAccess
from pbdeploy.errors import HelmConfigurationError, HelmError
from pbdeploy.repo.file import RepositoryEntry
from pbdeploy.repo.sync import sync_repository
from pbdeploy.settings import HelmSettings

WAIT_TIMEOUT = 300
""" Seconds to wait for the resources of an installed or upgraded release to become ready. """

UNINSTALL_TIMEOUT = 5 * 60
""" Seconds to wait for the resources of an uninstalled release to be deleted. """


@dataclass
class ReleaseConfig:
    """
    Describes a release to install or upgrade.
    """

    release_name: str
    namespace: str
    repo_name: str
    chart_name: str
    repo_url: str
    values: list[str] = field(default_factory=list)
    """ Value overrides in `key=value` form, as with `helm --set`. """

    version: str | None = None
    """ The chart version. If not set, the latest version is used. """

    @property
    def chart_ref(self) -> str:
        return f"{self.repo_name}/{self.chart_name}"

    @property
    def repository(self) -> RepositoryEntry:
        return RepositoryEntry(name=self.repo_name, url=self.repo_url)


@dataclass
class ReleaseInfo:
    name: str
    namespace: str
    revision: int
    status: str
    chart: str
    app_version: str = ""
    updated: str = ""

    @staticmethod
    def from_list_item(item: dict[str, Any]) -> "ReleaseInfo":
        """
        Create from an item of `helm list --output json`.
        """

        return ReleaseInfo(
            name=item["name"],
            namespace=item["namespace"],
            revision=int(item["revision"]),
            status=item["status"],
            chart=item["chart"],
            app_version=item.get("app_version", ""),
            updated=item.get("updated", ""),
        )

    @staticmethod
    def from_release(release: dict[str, Any]) -> "ReleaseInfo":
        """
        Create from the release object printed by `helm install|upgrade --output json`.
        """

        metadata = release.get("chart", {}).get("metadata", {})
        info = release.get("info", {})
        return ReleaseInfo(
            name=release["name"],
            namespace=release["namespace"],
            revision=int(release["version"]),
            status=info.get("status", ""),
            chart=f"{metadata.get('name', '')}-{metadata.get('version', '')}",
            app_version=metadata.get("appVersion", ""),
            updated=info.get("last_deployed", ""),
        )


class Helm:
    """
    Wrapper for interfacing with `helm`.

    Args:
        settings: The Helm environment to operate in.
        verbose: Run Helm with `--debug` and forward its diagnostic output to the debug log.
    """

    def __init__(self, settings: HelmSettings, verbose: bool = False) -> None:
        self.settings = settings
        self.verbose = verbose

    def _init(self, namespace: str) -> None:
        """
        Ensure that Helm can be run against the cluster in *namespace*.
        """

        if shutil.which(self.settings.helm_binary) is None:
            raise HelmConfigurationError(f"'{self.settings.helm_binary}' executable not found")
        context = ClusterAccess(self.settings).verify()
        logger.debug("Operating in namespace '{}' of context '{}'", namespace, context)

    def _run(self, args: list[str], namespace: str) -> str:
        command = [self.settings.helm_binary, *args, "--namespace", namespace]
        if self.verbose:
            command.append("--debug")

        logger.debug("Running Helm: $ {}", " ".join(map(shlex.quote, command)))
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            env={**os.environ, **self.settings.with_namespace(namespace).env()},
        )
        if self.verbose and result.stderr:
            logger.debug("Helm output:\n{}", result.stderr.rstrip())
        if result.returncode != 0:
            raise HelmError(command, result.returncode, result.stderr)
        return result.stdout

    @staticmethod
    def _chart_args(config: ReleaseConfig) -> list[str]:
        args: list[str] = []
        if config.version:
            args.extend(["--version", config.version])
        for value in config.values:
            args.extend(["--set", value])
        return args

    def install(self, config: ReleaseConfig) -> ReleaseInfo:
        """
        Install a release, creating its namespace if needed, and wait for it to become ready.
        """

        self._init(config.namespace)
        sync_repository(config.repository, self.settings)

        logger.info("Installing {} as release '{}' in '{}'", config.chart_ref, config.release_name, config.namespace)
        output = self._run(
            [
                "install",
                config.release_name,
                config.chart_ref,
                "--create-namespace",
                "--wait",
                "--wait-for-jobs",
                "--timeout",
                f"{WAIT_TIMEOUT}s",
                "--output",
                "json",
                *self._chart_args(config),
            ],
            config.namespace,
        )
        return ReleaseInfo.from_release(json.loads(output))

    def upgrade(self, config: ReleaseConfig) -> ReleaseInfo:
        """
        Upgrade an existing release and wait for it to become ready.
        """

        self._init(config.namespace)
        sync_repository(config.repository, self.settings)

        logger.info("Upgrading release '{}' in '{}' to {}", config.release_name, config.namespace, config.chart_ref)
        output = self._run(
            [
                "upgrade",
                config.release_name,
                config.chart_ref,
                "--wait",
                "--wait-for-jobs",
                "--timeout",
                f"{WAIT_TIMEOUT}s",
                "--output",
                "json",
                *self._chart_args(config),
            ],
            config.namespace,
        )
        return ReleaseInfo.from_release(json.loads(output))

    def uninstall(
        self, release_name: str, namespace: str, *, wait: bool = True, timeout: int = UNINSTALL_TIMEOUT
    ) -> str:
        """
        Uninstall a release. Returns the message printed by Helm.
        """

        self._init(namespace)

        args = ["uninstall", release_name]
        if wait:
            args.extend(["--wait", "--timeout", f"{timeout}s"])
        logger.info("Uninstalling release '{}' from '{}'", release_name, namespace)
        return self._run(args, namespace).strip()

    def list_releases(self, namespace: str) -> list[ReleaseInfo]:
        self._init(namespace)
        output = self._run(["list", "--output", "json"], namespace)
        return [ReleaseInfo.from_list_item(item) for item in json.loads(output or "[]")]

    def release_exists(self, release_name: str, namespace: str) -> bool:
        releases = self.list_releases(namespace)
        if not releases:
            logger.info("No release exists in namespace '{}', install {}", namespace, release_name)
            return False
        return any(release.name == release_name for release in releases)

    def get_release_values(self, release_name: str, namespace: str) -> dict[str, Any]:
        """
        Return the user-supplied values of a release.
        """

        self._init(namespace)
        output = self._run(["get", "values", release_name, "--output", "json"], namespace)
        return json.loads(output) or {}
