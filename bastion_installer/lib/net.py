from __future__ import annotations

import logging

from .command import run_cmd

logger = logging.getLogger(__name__)


def is_online(host: str, *, dry_run: bool = False) -> bool:
    """Single ping probe to a known host."""

    r = run_cmd(["ping", "-c", "1", "-W", "3", host], check=False, quiet=True, dry_run=dry_run)
    if not r.ok:
        logger.info("Network probe to %s failed (%s)", host, r.returncode)
    return r.ok
