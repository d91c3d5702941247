from __future__ import annotations

import logging
import sys
from pathlib import Path


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_HANDLER_MARKER = "_demeter_watchdog_handler"


def reset_logging() -> None:
    # Detach only the handlers installed here so repeated setup never duplicates output.
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            root.removeHandler(handler)
            handler.close()


def _attach(root: logging.Logger, handler: logging.Handler, formatter: logging.Formatter) -> None:
    handler.setFormatter(formatter)
    setattr(handler, _HANDLER_MARKER, True)
    root.addHandler(handler)


def configure_logging(log_path: str | Path, *, verbose: bool = False, level: str = "INFO") -> logging.Logger:
    # Always log to file; mirror to stdout only when verbose output is requested.
    reset_logging()
    root = logging.getLogger()
    path = Path(log_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT)

    _attach(root, logging.FileHandler(path, mode="a", encoding="utf-8"), formatter)
    if verbose:
        _attach(root, logging.StreamHandler(sys.stdout), formatter)

    root.setLevel(level.upper())
    return root
