from __future__ import annotations

import logging
from pathlib import Path

DEFAULT_LOG_PATH = "/var/log/bastion-installer.log"
FALLBACK_LOG_NAME = "bastion-installer.log"

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"


def _open_log_file(log_path: str) -> logging.FileHandler:
    try:
        Path(log_path).parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path)
    except OSError:
        # The post-install pipeline runs unprivileged and usually cannot
        # write under /var/log.
        return logging.FileHandler(Path.cwd() / FALLBACK_LOG_NAME)


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    level: int = logging.INFO,
    also_console: bool = True,
) -> str:
    """Send every record to the log file and `level` and above to the console.

    The file always receives DEBUG, so captured command output and every probe
    decision is kept even when the console is quiet. Calling this twice keeps
    the first configuration. Returns the path of the file actually written.
    """

    root = logging.getLogger()
    if getattr(root, "_bastion_configured", False):
        return getattr(root, "_bastion_log_path", log_path)

    fmt = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)
    root.setLevel(logging.DEBUG)

    file_handler = _open_log_file(log_path)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    if also_console:
        console = logging.StreamHandler()
        console.setLevel(level)
        console.setFormatter(fmt)
        root.addHandler(console)

    chosen_path = file_handler.baseFilename
    setattr(root, "_bastion_configured", True)
    setattr(root, "_bastion_log_path", chosen_path)

    logging.getLogger(__name__).info("Logging to %s (requested %s)", chosen_path, log_path)
    return chosen_path
