import posixpath
from urllib.parse import urlsplit, urlunsplit

from loguru import logger
import requests

from pbdeploy.config import Profile
from pbdeploy.errors import APIError

API_PATH = "api/v1/"
DEFAULT_TIMEOUT = 60


class HTTPClient:
    """
    Client for the server's REST API. Every request is authenticated with HTTP Basic Auth using the credentials of
    the profile. Requests are not retried.

    Args:
        profile: The server URL and credentials.
        session: The session to send requests with.
        timeout: Overall timeout of a request, in seconds.
    """

    def __init__(
        self, profile: Profile, *, session: requests.Session | None = None, timeout: float = DEFAULT_TIMEOUT
    ) -> None:
        self.profile = profile
        self.timeout = timeout
        self._session = session or requests.Session()

    def api_url(self, path: str) -> str:
        """
        Return the URL of *path* below the API path prefix of the server.
        """

        parts = urlsplit(self.profile.url)
        segments = [s.strip("/") for s in (parts.path, API_PATH, path)]
        joined = posixpath.normpath("/" + "/".join(s for s in segments if s))
        if path.endswith("/") and not joined.endswith("/"):
            joined += "/"
        return urlunsplit(parts._replace(path=joined))

    def new_request(self, method: str, path: str, body: str | bytes | None = None) -> requests.PreparedRequest:
        request = requests.Request(
            method,
            self.api_url(path),
            data=body,
            auth=(self.profile.username, self.profile.password),
            headers={"Content-Type": "application/json"},
        )
        return self._session.prepare_request(request)

    def send(self, request: requests.PreparedRequest) -> requests.Response:
        logger.debug("{} {}", request.method, request.url)
        try:
            return self._session.send(request, timeout=self.timeout)
        except requests.RequestException as exc:
            raise APIError(f"{request.method} {request.url} failed: {exc}") from exc

    def request(self, method: str, path: str, body: str | bytes | None = None) -> requests.Response:
        return self.send(self.new_request(method, path, body))


def default_client(profile: Profile) -> HTTPClient:
    return HTTPClient(profile)
