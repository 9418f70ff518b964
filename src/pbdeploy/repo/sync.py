from pathlib import Path
from typing import Callable

from databind.core import ConversionError
from filelock import FileLock, Timeout
from loguru import logger
import requests
import yaml

from pbdeploy.errors import (
    DirectoryCreateError,
    IndexParseError,
    IndexReadError,
    IndexWriteError,
    InvalidIndexError,
    LockError,
    LockTimeout,
    RepositoryUnreachableError,
    RepositoryUpdateError,
)
from pbdeploy.repo.file import RepositoryEntry, RepositoryFile
from pbdeploy.repo.index import ChartRepository
from pbdeploy.settings import HelmSettings

LOCK_TIMEOUT = 30.0
LOCK_POLL_INTERVAL = 1.0
INDEX_FILE_MODE = 0o644

RepositoryFactory = Callable[[RepositoryEntry, Path], ChartRepository]


def sync_repository(
    entry: RepositoryEntry,
    settings: HelmSettings,
    *,
    lock_timeout: float = LOCK_TIMEOUT,
    poll_interval: float = LOCK_POLL_INTERVAL,
    repository_factory: RepositoryFactory = ChartRepository,
) -> RepositoryEntry:
    """
    Ensure that the chart repository *entry* is present in the Helm repository config and that its index is
    reachable. Must be called before looking up a chart from the repository.

    If a repository of the same name is already configured, its index is re-downloaded from the URL of *entry*, but
    the configured URL is kept. Otherwise the index is downloaded and the entry is added to the repository config.
    The repository config is only read and written while holding the lock file next to it.

    Returns:
        The repository entry as it is stored in the repository config.
    Raises:
        SyncError: If any step fails. See the subclasses in [pbdeploy.errors].
    """

    repo_file = settings.repository_config

    try:
        repo_file.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise DirectoryCreateError(f"could not create directory '{repo_file.parent}': {exc}") from exc

    lock = FileLock(settings.lock_file)
    logger.debug("Acquiring lock '{}'", lock.lock_file)
    try:
        lock.acquire(timeout=lock_timeout, poll_interval=poll_interval)
    except Timeout as exc:
        raise LockTimeout(f"timed out after {lock_timeout}s waiting for lock '{lock.lock_file}'") from exc
    except OSError as exc:
        raise LockError(f"could not acquire lock '{lock.lock_file}': {exc}") from exc

    try:
        return _sync_locked(entry, settings, repository_factory)
    finally:
        lock.release()


def read_repository_file(path: Path) -> RepositoryFile:
    """
    Read and parse the repository config at *path*. A missing file is an empty repository config.

    Raises:
        IndexReadError: If the file exists but cannot be read.
        IndexParseError: If the file is not a valid repository config.
    """

    try:
        content = path.read_text()
    except FileNotFoundError:
        content = ""
    except OSError as exc:
        raise IndexReadError(f"could not read '{path}': {exc}") from exc

    try:
        return RepositoryFile.loads(content, filename=str(path))
    except (yaml.YAMLError, ConversionError, ValueError) as exc:
        raise IndexParseError(f"could not parse '{path}': {exc}") from exc


def _sync_locked(
    entry: RepositoryEntry, settings: HelmSettings, repository_factory: RepositoryFactory
) -> RepositoryEntry:
    repo_file = settings.repository_config
    config = read_repository_file(repo_file)

    stored = config.get(entry.name)
    repository = repository_factory(entry, settings.repository_cache)

    if stored is not None:
        try:
            repository.download_index_file()
        except (requests.RequestException, InvalidIndexError, OSError) as exc:
            raise RepositoryUpdateError(f'looks like we are unable to update helm repo "{entry.url}": {exc}') from exc

        if stored.url != entry.url:
            logger.warning(
                "Repository '{}' is already configured with URL {}, keeping it instead of {}",
                entry.name,
                stored.url,
                entry.url,
            )
        else:
            logger.debug("Repository {} is up to date", stored)
        return stored

    try:
        repository.download_index_file()
    except (requests.RequestException, InvalidIndexError, OSError) as exc:
        raise RepositoryUnreachableError(
            f'looks like "{entry.url}" is not a valid chart repository or cannot be reached: {exc}'
        ) from exc

    config.update(entry)
    try:
        config.write(repo_file, INDEX_FILE_MODE)
    except OSError as exc:
        raise IndexWriteError(f"could not write '{repo_file}': {exc}") from exc

    logger.info("Added chart repository {}", entry)
    return entry
