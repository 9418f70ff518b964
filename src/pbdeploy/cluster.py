import os
from pathlib import Path
from typing import Mapping

from kubernetes.config import ConfigException, list_kube_config_contexts, load_incluster_config, load_kube_config
from loguru import logger

from pbdeploy.errors import HelmConfigurationError
from pbdeploy.settings import HelmSettings

DEFAULT_KUBECONFIG = Path("~/.kube/config")
IN_CLUSTER = "in-cluster"


class ClusterAccess:
    """
    Resolves the credentials for reaching the cluster that releases are deployed to.

    Args:
        settings: The settings that name the Kubeconfig file and context.
        environ: The environment to check for in-cluster configuration.
    """

    def __init__(self, settings: HelmSettings, environ: Mapping[str, str] | None = None) -> None:
        self._settings = settings
        self._environ = os.environ if environ is None else environ

    def kubeconfig_paths(self) -> list[Path]:
        """
        The Kubeconfig files to merge. Like `KUBECONFIG`, the configured path may list multiple files.
        """

        if self._settings.kubeconfig is None:
            return [DEFAULT_KUBECONFIG.expanduser()]
        return [Path(p).expanduser() for p in str(self._settings.kubeconfig).split(os.pathsep) if p]

    def verify(self) -> str:
        """
        Load the cluster configuration to ensure that the cluster can be addressed.

        Returns:
            The name of the Kubeconfig context in use, or `in-cluster` for the in-cluster configuration.
        Raises:
            HelmConfigurationError: If no usable configuration is found.
        """

        paths = self.kubeconfig_paths()

        if not any(path.is_file() for path in paths):
            if self._environ.get("KUBERNETES_SERVICE_HOST"):
                logger.debug("No Kubeconfig found, using in-cluster configuration.")
                try:
                    load_incluster_config()
                except ConfigException as exc:
                    raise HelmConfigurationError(str(exc)) from exc
                return IN_CLUSTER
            raise HelmConfigurationError(f"Kubeconfig file '{os.pathsep.join(map(str, paths))}' does not exist.")

        config_file = os.pathsep.join(str(path) for path in paths if path.is_file())
        context = self._settings.kube_context
        try:
            load_kube_config(config_file=config_file, context=context)
            if context is None:
                _contexts, active = list_kube_config_contexts(config_file=config_file)
                context = active["name"]
        except ConfigException as exc:
            raise HelmConfigurationError(str(exc)) from exc

        logger.debug("Using Kubeconfig context '{}' from '{}'.", context, config_file)
        return context
