from dataclasses import dataclass


class PbDeployError(Exception):
    """
    Base class for expected failures that are reported to the user without a traceback.
    """


class SyncError(PbDeployError):
    """
    Raised when a chart repository could not be synchronized into the local repository index.
    """


class DirectoryCreateError(SyncError):
    pass


class LockError(SyncError):
    pass


class LockTimeout(SyncError):
    """
    The repository index lock could not be acquired in time. Unlike [LockError], nothing went wrong with the lock
    file itself; another process held on to it for too long.
    """


class IndexReadError(SyncError):
    pass


class IndexParseError(SyncError):
    pass


class RepositoryUpdateError(SyncError):
    """
    A repository that is already known by name could not be refreshed from its remote.
    """


class RepositoryUnreachableError(SyncError):
    """
    A repository that is not yet known could not be reached or does not serve a valid chart repository index.
    """


class IndexWriteError(SyncError):
    pass


class InvalidIndexError(PbDeployError):
    """
    The remote served a document that is not a chart repository index.
    """


class HelmConfigurationError(PbDeployError):
    PREFIX = "failed to initialize Helm configuration: "

    def __init__(self, message: str) -> None:
        super().__init__(self.PREFIX + message)


@dataclass
class HelmError(PbDeployError):
    command: list[str]
    statuscode: int
    stderr: str | None = None

    def __str__(self) -> str:
        message = f"Helm command failed with status code {self.statuscode}"
        if self.stderr:
            message += f": {self.stderr.strip()}"
        return message


class APIError(PbDeployError):
    pass
