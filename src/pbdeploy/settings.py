from dataclasses import dataclass, replace
import os
from pathlib import Path
from typing import Mapping


@dataclass(frozen=True)
class HelmSettings:
    """
    The Helm environment that all operations work against. Resolved once from the environment (the same way the
    `helm` binary resolves it) and then passed explicitly to every operation that needs it.
    """

    repository_config: Path
    """ Path to the `repositories.yaml` file that lists the known chart repositories. """

    repository_cache: Path
    """ Directory where downloaded repository indexes are cached. """

    namespace: str = "default"
    """ The namespace that operations are scoped to. """

    driver: str | None = None
    """ Storage driver for release state (`HELM_DRIVER`). Passed through to Helm unmodified. """

    kubeconfig: Path | None = None
    """ Path to the Kubeconfig file. If not set, the default location (`~/.kube/config`) is used. """

    kube_context: str | None = None
    """ The Kubeconfig context to use. If not set, the current context is used. """

    helm_binary: str = "helm"
    """ Name or path of the `helm` executable. """

    @staticmethod
    def from_env(environ: Mapping[str, str] | None = None) -> "HelmSettings":
        if environ is None:
            environ = os.environ

        home = Path(environ.get("HOME") or Path.home())
        config_home = Path(environ["XDG_CONFIG_HOME"]) if environ.get("XDG_CONFIG_HOME") else home / ".config"
        cache_home = Path(environ["XDG_CACHE_HOME"]) if environ.get("XDG_CACHE_HOME") else home / ".cache"

        kubeconfig = environ.get("KUBECONFIG")

        return HelmSettings(
            repository_config=Path(
                environ.get("HELM_REPOSITORY_CONFIG") or config_home / "helm" / "repositories.yaml"
            ),
            repository_cache=Path(environ.get("HELM_REPOSITORY_CACHE") or cache_home / "helm" / "repository"),
            namespace=environ.get("HELM_NAMESPACE") or "default",
            driver=environ.get("HELM_DRIVER") or None,
            kubeconfig=Path(kubeconfig) if kubeconfig else None,
            kube_context=environ.get("HELM_KUBECONTEXT") or None,
            helm_binary=environ.get("PBDEPLOY_HELM") or "helm",
        )

    @property
    def lock_file(self) -> Path:
        """
        The file that guards the repository config against concurrent writers. It sits next to the repository config
        and carries the same name with a `.lock` extension.
        """

        return self.repository_config.with_suffix(".lock")

    def with_namespace(self, namespace: str) -> "HelmSettings":
        return replace(self, namespace=namespace)

    def env(self) -> dict[str, str]:
        """
        Return the environment variables that make a `helm` subprocess see the same configuration.
        """

        env = {
            "HELM_REPOSITORY_CONFIG": str(self.repository_config),
            "HELM_REPOSITORY_CACHE": str(self.repository_cache),
            "HELM_NAMESPACE": self.namespace,
        }
        if self.driver is not None:
            env["HELM_DRIVER"] = self.driver
        if self.kubeconfig is not None:
            env["KUBECONFIG"] = str(self.kubeconfig)
        if self.kube_context is not None:
            env["HELM_KUBECONTEXT"] = self.kube_context
        return env
