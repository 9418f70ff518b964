import sys
from typing import Any

from loguru import logger
from typer import Typer

from pbdeploy.errors import PbDeployError


def new_typer(**kwargs: Any) -> Typer:
    return Typer(no_args_is_help=True, pretty_exceptions_enable=False, **kwargs)


def run_app(app: Typer, args: list[str] | None = None) -> None:
    """
    Run the Typer *app*. Expected failures are logged without a traceback and exit with status code 1.
    """

    try:
        app(args)
    except PbDeployError as exc:
        logger.error("{}", exc)
        sys.exit(1)
