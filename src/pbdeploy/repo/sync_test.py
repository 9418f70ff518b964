from pathlib import Path
import threading
import time

from filelock import FileLock
import pytest
import requests

from pbdeploy.errors import (
    DirectoryCreateError,
    IndexParseError,
    IndexReadError,
    IndexWriteError,
    LockError,
    LockTimeout,
    RepositoryUnreachableError,
    RepositoryUpdateError,
)
from pbdeploy.repo.file import RepositoryEntry, RepositoryFile
from pbdeploy.repo.sync import sync_repository
from pbdeploy.settings import HelmSettings


class FakeRepository:
    """
    Stands in for a [ChartRepository]; URLs listed in *unreachable* fail to download.
    """

    def __init__(self, entry: RepositoryEntry, cache_dir: Path, unreachable: set[str], delay: float = 0) -> None:
        self.entry = entry
        self.cache_dir = cache_dir
        self.unreachable = unreachable
        self.delay = delay

    def download_index_file(self) -> Path:
        time.sleep(self.delay)
        if self.entry.url in self.unreachable:
            raise requests.ConnectionError(f"cannot reach {self.entry.url}")
        return self.cache_dir / f"{self.entry.name}-index.yaml"


class FakeRemotes:
    def __init__(self, unreachable: set[str] | None = None, delay: float = 0) -> None:
        self.unreachable = unreachable or set()
        self.delay = delay
        self.downloads: list[str] = []

    def __call__(self, entry: RepositoryEntry, cache_dir: Path) -> FakeRepository:
        self.downloads.append(entry.url)
        return FakeRepository(entry, cache_dir, self.unreachable, self.delay)


@pytest.fixture
def settings(tmp_path: Path) -> HelmSettings:
    return HelmSettings(
        repository_config=tmp_path / "config" / "helm" / "repositories.yaml",
        repository_cache=tmp_path / "cache",
    )


def stored_urls(settings: HelmSettings) -> dict[str, str]:
    return {entry.name: entry.url for entry in RepositoryFile.load(settings.repository_config).repositories}


def test__sync_repository__creates_directory_and_index_file(settings: HelmSettings) -> None:
    assert not settings.repository_config.parent.exists()

    entry = RepositoryEntry("stable", "https://charts.example.com")
    assert sync_repository(entry, settings, repository_factory=FakeRemotes()) == entry

    assert stored_urls(settings) == {"stable": "https://charts.example.com"}
    assert settings.repository_config.stat().st_mode & 0o777 == 0o644


def test__sync_repository__existing_name_keeps_stored_url(settings: HelmSettings) -> None:
    remotes = FakeRemotes()
    sync_repository(RepositoryEntry("stable", "https://charts.example.com"), settings, repository_factory=remotes)
    content = settings.repository_config.read_text()

    stored = sync_repository(
        RepositoryEntry("stable", "https://other.example.com"), settings, repository_factory=remotes
    )

    assert stored.url == "https://charts.example.com"
    assert remotes.downloads == ["https://charts.example.com", "https://other.example.com"]
    assert settings.repository_config.read_text() == content
    assert stored_urls(settings) == {"stable": "https://charts.example.com"}


def test__sync_repository__is_idempotent(settings: HelmSettings) -> None:
    entry = RepositoryEntry("stable", "https://charts.example.com")
    sync_repository(entry, settings, repository_factory=FakeRemotes())
    content = settings.repository_config.read_text()

    sync_repository(entry, settings, repository_factory=FakeRemotes())

    assert settings.repository_config.read_text() == content
    assert len(RepositoryFile.load(settings.repository_config).repositories) == 1


def test__sync_repository__preserves_other_entries(settings: HelmSettings) -> None:
    settings.repository_config.parent.mkdir(parents=True)
    settings.repository_config.write_text(
        "apiVersion: v1\n"
        "generated: '2024-01-01T00:00:00Z'\n"
        "repositories:\n"
        "- name: bitnami\n"
        "  url: https://charts.bitnami.com/bitnami\n"
        "  caFile: /etc/ssl/ca.pem\n"
    )

    sync_repository(RepositoryEntry("stable", "https://charts.example.com"), settings, repository_factory=FakeRemotes())

    config = RepositoryFile.load(settings.repository_config)
    assert [entry.name for entry in config.repositories] == ["bitnami", "stable"]
    assert config.repositories[0].ca_file == "/etc/ssl/ca.pem"
    assert config.generated == "2024-01-01T00:00:00Z"


def test__sync_repository__unreachable_new_repository_leaves_file_untouched(settings: HelmSettings) -> None:
    remotes = FakeRemotes(unreachable={"https://down.example.com"})
    sync_repository(RepositoryEntry("stable", "https://charts.example.com"), settings, repository_factory=remotes)
    content = settings.repository_config.read_text()

    with pytest.raises(RepositoryUnreachableError, match="https://down.example.com") as excinfo:
        sync_repository(RepositoryEntry("down", "https://down.example.com"), settings, repository_factory=remotes)

    assert isinstance(excinfo.value.__cause__, requests.ConnectionError)
    assert settings.repository_config.read_text() == content


def test__sync_repository__unreachable_new_repository_does_not_create_file(settings: HelmSettings) -> None:
    remotes = FakeRemotes(unreachable={"https://down.example.com"})

    with pytest.raises(RepositoryUnreachableError):
        sync_repository(RepositoryEntry("down", "https://down.example.com"), settings, repository_factory=remotes)

    assert not settings.repository_config.exists()


def test__sync_repository__unreachable_known_repository_is_an_update_error(settings: HelmSettings) -> None:
    sync_repository(RepositoryEntry("stable", "https://charts.example.com"), settings, repository_factory=FakeRemotes())

    remotes = FakeRemotes(unreachable={"https://charts.example.com"})
    with pytest.raises(RepositoryUpdateError, match="unable to update helm repo \"https://charts.example.com\""):
        sync_repository(RepositoryEntry("stable", "https://charts.example.com"), settings, repository_factory=remotes)


def test__sync_repository__parse_error(settings: HelmSettings) -> None:
    settings.repository_config.parent.mkdir(parents=True)
    settings.repository_config.write_text("repositories: [")

    with pytest.raises(IndexParseError):
        sync_repository(RepositoryEntry("a", "https://a.example.com"), settings, repository_factory=FakeRemotes())

    for content in ("repositories: 42\n", "repositories: true\n", "- name: a\n", "just a string\n"):
        settings.repository_config.write_text(content)
        with pytest.raises(IndexParseError):
            sync_repository(RepositoryEntry("a", "https://a.example.com"), settings, repository_factory=FakeRemotes())


def test__sync_repository__read_error(settings: HelmSettings) -> None:
    settings.repository_config.mkdir(parents=True)

    with pytest.raises(IndexReadError):
        sync_repository(RepositoryEntry("a", "https://a.example.com"), settings, repository_factory=FakeRemotes())


def test__sync_repository__directory_error(tmp_path: Path) -> None:
    (tmp_path / "file").write_text("")
    settings = HelmSettings(
        repository_config=tmp_path / "file" / "helm" / "repositories.yaml", repository_cache=tmp_path / "cache"
    )

    with pytest.raises(DirectoryCreateError):
        sync_repository(RepositoryEntry("a", "https://a.example.com"), settings, repository_factory=FakeRemotes())


def test__sync_repository__write_error_keeps_previous_file(
    settings: HelmSettings, monkeypatch: pytest.MonkeyPatch
) -> None:
    sync_repository(RepositoryEntry("a", "https://a.example.com"), settings, repository_factory=FakeRemotes())
    content = settings.repository_config.read_text()

    def fail_replace(src: object, dst: object) -> None:
        raise PermissionError("read-only file system")

    monkeypatch.setattr("pbdeploy.tools.fs.os.replace", fail_replace)

    with pytest.raises(IndexWriteError):
        sync_repository(RepositoryEntry("b", "https://b.example.com"), settings, repository_factory=FakeRemotes())

    monkeypatch.undo()
    assert settings.repository_config.read_text() == content
    assert not list(settings.repository_config.parent.glob("*.tmp"))


def test__sync_repository__lock_timeout_is_surfaced(settings: HelmSettings) -> None:
    settings.repository_config.parent.mkdir(parents=True)
    held = FileLock(settings.lock_file)

    with held:
        with pytest.raises(LockTimeout):
            sync_repository(
                RepositoryEntry("a", "https://a.example.com"),
                settings,
                lock_timeout=0.2,
                poll_interval=0.05,
                repository_factory=FakeRemotes(),
            )

    assert not settings.repository_config.exists()


def test__sync_repository__concurrent_calls_do_not_lose_updates(settings: HelmSettings) -> None:
    remotes = FakeRemotes(delay=0.2)
    errors: list[BaseException] = []

    def run(name: str) -> None:
        try:
            sync_repository(
                RepositoryEntry(name, f"https://{name}.example.com"),
                settings,
                poll_interval=0.01,
                repository_factory=remotes,
            )
        except BaseException as exc:
            errors.append(exc)

    threads = [threading.Thread(target=run, args=(name,)) for name in ("a", "b", "c")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert stored_urls(settings) == {
        "a": "https://a.example.com",
        "b": "https://b.example.com",
        "c": "https://c.example.com",
    }


def test__sync_repository__lock_error_is_not_a_timeout(settings: HelmSettings) -> None:
    settings.lock_file.mkdir(parents=True)

    with pytest.raises(LockError) as excinfo:
        sync_repository(RepositoryEntry("a", "https://a.example.com"), settings, repository_factory=FakeRemotes())

    assert not isinstance(excinfo.value, LockTimeout)
    assert not settings.repository_config.exists()
