from pathlib import Path
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from loguru import logger
import requests
import yaml

from pbdeploy.errors import InvalidIndexError
from pbdeploy.repo.file import RepositoryEntry
from pbdeploy.tools.fs import atomic_write_text

DEFAULT_TIMEOUT = 120


class ChartRepository:
    """
    Access to a remote (HTTP) chart repository.

    Args:
        entry: The repository to access.
        cache_dir: The directory that downloaded indexes are stored in. Usually the Helm repository cache.
        session: The session to issue requests with.
        timeout: Timeout for downloading the index, in seconds.
    """

    def __init__(
        self,
        entry: RepositoryEntry,
        cache_dir: Path,
        *,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.entry = entry
        self.cache_dir = cache_dir
        self._session = session or requests.Session()
        self._timeout = timeout

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.entry.name!r}, {self.entry.url!r})"

    @property
    def index_url(self) -> str:
        parts = urlsplit(self.entry.url)
        return urlunsplit(parts._replace(path=parts.path.rstrip("/") + "/index.yaml"))

    @property
    def index_file(self) -> Path:
        return self.cache_dir / f"{self.entry.name}-index.yaml"

    @property
    def charts_file(self) -> Path:
        return self.cache_dir / f"{self.entry.name}-charts.txt"

    def _request_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"timeout": self._timeout}
        if self.entry.username or self.entry.password:
            kwargs["auth"] = (self.entry.username, self.entry.password)
        if self.entry.insecure_skip_tls_verify:
            kwargs["verify"] = False
        elif self.entry.ca_file:
            kwargs["verify"] = self.entry.ca_file
        if self.entry.cert_file and self.entry.key_file:
            kwargs["cert"] = (self.entry.cert_file, self.entry.key_file)
        return kwargs

    def download_index_file(self) -> Path:
        """
        Download the repository index, validate it and store it in the cache directory, along with a file that lists
        the names of the charts in the repository.

        Returns:
            The path to the cached index file.
        Raises:
            requests.RequestException: If the index could not be downloaded.
            InvalidIndexError: If the downloaded document is not a chart repository index.
        """

        logger.debug("Downloading repository index from {}", self.index_url)
        response = self._session.get(self.index_url, **self._request_kwargs())
        response.raise_for_status()

        charts = load_index(response.text, self.index_url)

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        atomic_write_text(self.charts_file, "".join(f"{name}\n" for name in sorted(charts)))
        atomic_write_text(self.index_file, response.text)
        logger.debug("Stored index of {} ({} charts) in {}", self.entry.name, len(charts), self.index_file)

        return self.index_file


def load_index(content: str, source: str) -> dict[str, Any]:
    """
    Parse a chart repository index and return its chart entries, keyed by chart name.
    """

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise InvalidIndexError(f"{source}: index is not valid YAML: {exc}") from exc

    if not isinstance(data, dict):
        raise InvalidIndexError(f"{source}: index is not a mapping")
    if not data.get("apiVersion"):
        raise InvalidIndexError(f"{source}: no API version specified")

    entries = data.get("entries") or {}
    if not isinstance(entries, dict):
        raise InvalidIndexError(f"{source}: index entries must be a mapping")

    return entries
