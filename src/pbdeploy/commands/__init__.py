"""
pbdeploy installs and manages Parseable releases on Kubernetes with Helm, and talks to the Parseable REST API.
"""

from enum import Enum
import sys

from loguru import logger
from typer import Option

from pbdeploy.tools.typer import new_typer, run_app

app = new_typer(help=__doc__)


from . import api  # noqa: E402
from . import release  # noqa: E402
from . import repo  # noqa: E402

app.add_typer(api.app)
app.add_typer(release.app)
app.add_typer(repo.app)


class LogLevel(str, Enum):
    TRACE = "trace"
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@app.callback()
def _callback(
    log_level: LogLevel = Option(LogLevel.INFO, "--log-level", "-l", help="The log level to use."),
) -> None:
    logger.remove()
    logger.add(sys.stderr, level=log_level.name)


def main() -> None:
    run_app(app)
