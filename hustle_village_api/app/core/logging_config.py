"""
Process‑wide logging for the HustleVillage API.

``create_app`` calls ``setup_logging`` before building any collaborator.
Records go to stderr and, when ``LOG_FILE`` is set, to that file as
well.  Modules log through ``logging.getLogger(__name__)`` and never
include bearer tokens, provider keys or passcodes in messages.
"""

import logging
from pathlib import Path
from typing import List, Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third‑party loggers that are too chatty at INFO.  httpx logs every
# request URL, which would put provider endpoints in the application log.
_QUIET_LOGGERS = ("httpx", "httpcore")


def _handlers(logfile: Optional[str]) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if logfile:
        handlers.append(logging.FileHandler(Path(logfile).resolve(), encoding="utf-8"))
    return handlers


def setup_logging(level: str = "INFO", logfile: Optional[str] = None) -> None:
    """Attach the application's handlers to the root logger.

    Does nothing when the root logger already has handlers, so building
    several apps in one process (the test suite does) never duplicates
    output.

    Parameters
    ----------
    level : str
        Level name such as ``"DEBUG"`` or ``"warning"``.  Unknown names
        fall back to ``INFO``.
    logfile : Optional[str]
        Extra file to write records to.
    """
    root = logging.getLogger()
    if root.handlers:
        return

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root.setLevel(numeric_level)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in _handlers(logfile):
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))
