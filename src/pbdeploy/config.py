from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from pbdeploy.errors import PbDeployError
from pbdeploy.tools.fs import find_config_file


@dataclass
class Profile:
    """
    Connection details for the server that the API client talks to.
    """

    url: str
    """
    Base URL of the server, e.g. `https://demo.parseable.com`. The API path prefix is appended by the client.
    """

    username: str = ""
    password: str = ""


@dataclass
class ConfigFile:
    """
    Contents of the `pbdeploy.yaml` configuration file.
    """

    profiles: dict[str, Profile] = field(default_factory=dict)

    default_profile: str | None = None
    """
    The profile to use if none is specified explicitly. If not set, a profile named `default` is used.
    """


@dataclass
class ProfileConfig:
    FILENAME = "pbdeploy.yaml"
    FALLBACK_PATH = Path.home() / ".config" / "pbdeploy" / FILENAME

    file: Path | None
    config: ConfigFile

    def get_profile(self, name: str | None = None) -> Profile:
        """
        Return the profile with the given *name*, or the default profile.
        """

        name = name or self.config.default_profile or "default"
        try:
            return self.config.profiles[name]
        except KeyError:
            raise PbDeployError(f"Profile '{name}' not found in '{self.file}'.") from None

    @staticmethod
    def load(file: Path | None = None, /, *, required: bool = True) -> "ProfileConfig":
        """
        Load the configuration from the given file or the default file. If the configuration file does not exist, an
        error is raised unless *required* is set to `False`, in which case an empty configuration is returned.
        """

        from databind.json import load as deser
        from yaml import safe_load

        if file is None:
            file = find_config_file(ProfileConfig.FILENAME, required=False)
            if file is None and ProfileConfig.FALLBACK_PATH.exists():
                file = ProfileConfig.FALLBACK_PATH.absolute()

        if file is None:
            if required:
                raise PbDeployError(
                    f"Configuration file '{ProfileConfig.FILENAME}' not found in '{Path.cwd()}', "
                    f"any of its parent directories or '{ProfileConfig.FALLBACK_PATH.parent}'"
                )
            return ProfileConfig(None, ConfigFile())

        logger.debug("Loading configuration from '{}'", file)
        config = deser(safe_load(file.read_text()) or {}, ConfigFile, filename=str(file))
        return ProfileConfig(file, config)
