from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Annotated, Any

from databind.core.settings import Alias, ExtraKeys
from databind.json import dump as ser, load as deser
import yaml

from pbdeploy.tools.fs import atomic_write_text

API_VERSION = "v1"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@ExtraKeys()
@dataclass
class RepositoryEntry:
    """
    A chart repository as it is stored in the Helm `repositories.yaml`. The name is the unique key of the entry.
    """

    name: str
    url: str
    username: str = ""
    password: str = ""
    cert_file: Annotated[str, Alias("certFile")] = ""
    key_file: Annotated[str, Alias("keyFile")] = ""
    ca_file: Annotated[str, Alias("caFile")] = ""
    insecure_skip_tls_verify: bool = False
    pass_credentials_all: bool = False

    def __str__(self) -> str:
        return f"{self.name} ({self.url})"


@ExtraKeys()
@dataclass
class RepositoryFile:
    """
    The Helm repository config, i.e. the list of chart repositories known to Helm.
    """

    api_version: Annotated[str, Alias("apiVersion")] = API_VERSION
    generated: str = field(default_factory=_now)
    repositories: list[RepositoryEntry] = field(default_factory=list)

    def has(self, name: str) -> bool:
        return any(entry.name == name for entry in self.repositories)

    def get(self, name: str) -> RepositoryEntry | None:
        for entry in self.repositories:
            if entry.name == name:
                return entry
        return None

    def update(self, *entries: RepositoryEntry) -> None:
        """
        Add the given entries, replacing any existing entries of the same name in place.
        """

        for entry in entries:
            for idx, existing in enumerate(self.repositories):
                if existing.name == entry.name:
                    self.repositories[idx] = entry
                    break
            else:
                self.repositories.append(entry)

    def remove(self, name: str) -> bool:
        count = len(self.repositories)
        self.repositories = [entry for entry in self.repositories if entry.name != name]
        return len(self.repositories) != count

    @staticmethod
    def loads(content: str, filename: str | None = None) -> "RepositoryFile":
        """
        Parse the YAML *content* of a repository config. Empty content is an empty repository config.

        Raises:
            yaml.YAMLError: If the content is not valid YAML.
            databind.core.ConversionError: If the content does not match the repository config schema.
            ValueError: If the document or its `repositories` key has the wrong shape.
        """

        data = yaml.safe_load(content)
        if data is None:
            return RepositoryFile()

        if not isinstance(data, dict):
            raise ValueError(f"expected a mapping at the top level, got {type(data).__name__}")
        if data.get("repositories") is not None and not isinstance(data["repositories"], list):
            raise ValueError(f"expected a list for \"repositories\", got {type(data['repositories']).__name__}")

        # Timestamps and dates are loaded as date objects by PyYAML unless they are quoted.
        if isinstance(data.get("generated"), date):
            data["generated"] = data["generated"].isoformat()
        # Helm writes empty values for unset fields, hand-edited files may contain nulls instead.
        if data.get("repositories") is not None:
            data["repositories"] = [
                {k: v for k, v in entry.items() if v is not None} if isinstance(entry, dict) else entry
                for entry in data["repositories"]
            ]
        data = {k: v for k, v in data.items() if v is not None}

        return deser(data, RepositoryFile, filename=filename)

    @staticmethod
    def load(path: Path) -> "RepositoryFile":
        return RepositoryFile.loads(path.read_text(), filename=str(path))

    def dump(self) -> dict[str, Any]:
        return ser(self, RepositoryFile)

    def dumps(self) -> str:
        return yaml.safe_dump(self.dump(), sort_keys=False)

    def write(self, path: Path, mode: int = 0o644) -> None:
        """
        Atomically replace the file at *path* with this repository config.
        """

        atomic_write_text(path, self.dumps(), mode)
