"""
Manage the chart repositories known to Helm.
"""

from loguru import logger
from rich.console import Console
from rich.table import Table
from typer import Argument, Option

from pbdeploy.repo.file import RepositoryEntry
from pbdeploy.repo.sync import LOCK_TIMEOUT, read_repository_file, sync_repository
from pbdeploy.settings import HelmSettings
from pbdeploy.tools.typer import new_typer

app = new_typer(name="repo", help=__doc__)


@app.command()
def add(
    name: str = Argument(..., help="The name to register the repository under."),
    url: str = Argument(..., help="The URL of the chart repository."),
    lock_timeout: float = Option(LOCK_TIMEOUT, help="Seconds to wait for other processes to release the lock."),
) -> None:
    """
    Add a chart repository, or check that an existing repository of the same name is reachable.
    """

    settings = HelmSettings.from_env()
    entry = sync_repository(RepositoryEntry(name=name, url=url), settings, lock_timeout=lock_timeout)
    print(f"{entry.name}\t{entry.url}")


@app.command("list")
def list_repositories() -> None:
    """
    List the configured chart repositories.
    """

    settings = HelmSettings.from_env()
    config = read_repository_file(settings.repository_config)
    if not config.repositories:
        logger.info("No repositories configured in '{}'.", settings.repository_config)
        return

    table = Table()
    table.add_column("Name", style="cyan")
    table.add_column("URL")
    for entry in config.repositories:
        table.add_row(entry.name, entry.url)

    Console().print(table)
