"""Logging setup for the CLI.

Idempotent: calling setup_logging() more than once won't duplicate handlers.
"""

import logging
import os
import sys
from typing import Optional, Union

_DEFAULT_LEVEL = os.getenv("CLAWDEPLOY_LOG_LEVEL", "INFO").upper()
_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
_ROOT = "clawdeploy"


def setup_logging(level: Union[str, int] = _DEFAULT_LEVEL) -> None:
    logger = logging.getLogger(_ROOT)
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(level)

    for handler in logger.handlers:
        if getattr(handler, "_clawdeploy", False):
            # sys.stderr may have been swapped since the first call
            handler.setStream(sys.stderr)
            handler.setLevel(level)
            return

    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%H:%M:%S"))
    handler._clawdeploy = True
    logger.addHandler(handler)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name if name else _ROOT)
