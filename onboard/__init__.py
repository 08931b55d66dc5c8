"""Onboard a contributor's machine for a repository from its setup manifest."""

import logging
import sys

from onboard.errors import (
    ConfigError,
    OnboardError,
    format_error,
    format_suggestion,
)
from onboard.execution import (
    DEFAULT_TIMEOUT,
    INSTALL_TIMEOUT,
    run_command,
)

__version__ = "0.1.0"

_FMT_MINIMAL = "%(message)s"
_FMT_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d - %(message)s"
_DATEFMT_DEBUG = "%H:%M:%S"

_NOISY_LOGGERS = ("urllib3", "asyncio")


def setup_logging(debug: bool = False) -> None:
    """Configure the root logger for a CLI invocation.

    WARNING with bare messages normally, DEBUG with module and line
    detail when ``--debug`` is given.
    """
    level = logging.DEBUG if debug else logging.WARNING
    if debug:
        formatter = logging.Formatter(_FMT_DEBUG, datefmt=_DATEFMT_DEBUG)
    else:
        formatter = logging.Formatter(_FMT_MINIMAL)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    if not debug:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


__all__ = [
    "__version__",
    "setup_logging",
    "ConfigError",
    "OnboardError",
    "format_error",
    "format_suggestion",
    "DEFAULT_TIMEOUT",
    "INSTALL_TIMEOUT",
    "run_command",
]
