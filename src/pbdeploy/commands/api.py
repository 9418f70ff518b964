"""
Send requests to the Parseable REST API using the profiles in `pbdeploy.yaml`.
"""

from typing import Optional

from typer import Argument, Option

from pbdeploy.client import default_client
from pbdeploy.config import ProfileConfig
from pbdeploy.errors import APIError
from pbdeploy.tools.typer import new_typer

app = new_typer(name="api", help=__doc__)


@app.command()
def get(
    path: str = Argument(..., help="The path below the API prefix, e.g. `logstream`."),
    profile: Optional[str] = Option(None, envvar="PBDEPLOY_PROFILE", help="The profile to use."),
) -> None:
    """
    Send a GET request and print the response body.
    """

    config = ProfileConfig.load()
    client = default_client(config.get_profile(profile))
    response = client.request("GET", path)
    if not response.ok:
        raise APIError(f"GET {response.url} returned {response.status_code}: {response.text}")
    print(response.text)
