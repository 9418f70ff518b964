"""
Install, upgrade and inspect Helm releases.
"""

from typing import Optional

from rich.console import Console
from rich.table import Table
from typer import Argument, Exit, Option
import yaml

from pbdeploy.helm import Helm, ReleaseConfig, ReleaseInfo
from pbdeploy.settings import HelmSettings
from pbdeploy.tools.typer import new_typer

app = new_typer(name="release", help=__doc__)

NAMESPACE_HELP = "The namespace of the release. Defaults to $HELM_NAMESPACE or 'default'."


def _helm(namespace: str | None, verbose: bool = False) -> tuple[Helm, str]:
    settings = HelmSettings.from_env()
    namespace = namespace or settings.namespace
    return Helm(settings.with_namespace(namespace), verbose=verbose), namespace


def _print_release(info: ReleaseInfo) -> None:
    print(f"NAME: {info.name}")
    print(f"NAMESPACE: {info.namespace}")
    print(f"STATUS: {info.status}")
    print(f"REVISION: {info.revision}")
    print(f"CHART: {info.chart}")


@app.command()
def install(
    release_name: str = Argument(..., help="The name of the release."),
    chart: str = Option(..., help="The name of the chart in the repository."),
    repo_name: str = Option(..., help="The name to register the chart repository under."),
    repo_url: str = Option(..., help="The URL of the chart repository."),
    version: Optional[str] = Option(None, help="The chart version. Defaults to the latest version."),
    set_values: Optional[list[str]] = Option(None, "--set", help="Set a value (key=value). Can be repeated."),
    namespace: Optional[str] = Option(None, "--namespace", "-n", help=NAMESPACE_HELP),
    verbose: bool = Option(False, "--verbose", "-v", help="Show Helm's debug output."),
) -> None:
    """
    Install a chart as a new release and wait until it is ready.
    """

    helm, namespace = _helm(namespace, verbose)
    config = ReleaseConfig(release_name, namespace, repo_name, chart, repo_url, set_values or [], version)
    _print_release(helm.install(config))


@app.command()
def upgrade(
    release_name: str = Argument(..., help="The name of the release."),
    chart: str = Option(..., help="The name of the chart in the repository."),
    repo_name: str = Option(..., help="The name to register the chart repository under."),
    repo_url: str = Option(..., help="The URL of the chart repository."),
    version: Optional[str] = Option(None, help="The chart version. Defaults to the latest version."),
    set_values: Optional[list[str]] = Option(None, "--set", help="Set a value (key=value). Can be repeated."),
    namespace: Optional[str] = Option(None, "--namespace", "-n", help=NAMESPACE_HELP),
    verbose: bool = Option(False, "--verbose", "-v", help="Show Helm's debug output."),
) -> None:
    """
    Upgrade a release to a new chart version or new values and wait until it is ready.
    """

    helm, namespace = _helm(namespace, verbose)
    config = ReleaseConfig(release_name, namespace, repo_name, chart, repo_url, set_values or [], version)
    _print_release(helm.upgrade(config))


@app.command()
def uninstall(
    release_name: str = Argument(..., help="The name of the release."),
    namespace: Optional[str] = Option(None, "--namespace", "-n", help=NAMESPACE_HELP),
    wait: bool = Option(True, help="Wait until the resources of the release are deleted."),
    verbose: bool = Option(False, "--verbose", "-v", help="Show Helm's debug output."),
) -> None:
    """
    Uninstall a release.
    """

    helm, namespace = _helm(namespace, verbose)
    print(helm.uninstall(release_name, namespace, wait=wait))


@app.command("list")
def list_releases(namespace: Optional[str] = Option(None, "--namespace", "-n", help=NAMESPACE_HELP)) -> None:
    """
    List the releases in a namespace.
    """

    helm, namespace = _helm(namespace)

    table = Table()
    table.add_column("Name", style="cyan")
    table.add_column("Namespace")
    table.add_column("Revision", justify="right")
    table.add_column("Status")
    table.add_column("Chart")
    table.add_column("App Version")
    for info in helm.list_releases(namespace):
        table.add_row(info.name, info.namespace, str(info.revision), info.status, info.chart, info.app_version)

    Console().print(table)


@app.command()
def values(
    release_name: str = Argument(..., help="The name of the release."),
    namespace: Optional[str] = Option(None, "--namespace", "-n", help=NAMESPACE_HELP),
) -> None:
    """
    Print the user-supplied values of a release as YAML.
    """

    helm, namespace = _helm(namespace)
    print(yaml.safe_dump(helm.get_release_values(release_name, namespace), sort_keys=False), end="")


@app.command()
def exists(
    release_name: str = Argument(..., help="The name of the release."),
    namespace: Optional[str] = Option(None, "--namespace", "-n", help=NAMESPACE_HELP),
) -> None:
    """
    Check if a release exists. Exits with status code 1 if it does not.
    """

    helm, namespace = _helm(namespace)
    if not helm.release_exists(release_name, namespace):
        raise Exit(1)
