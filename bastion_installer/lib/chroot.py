from __future__ import annotations

import logging
from typing import Sequence

from .command import CmdResult, run_cmd

logger = logging.getLogger(__name__)


def in_target(target_root: str, argv: Sequence[str]) -> list[str]:
    return ["arch-chroot", target_root, *argv]


def chroot_cmd(
    target_root: str,
    argv: Sequence[str],
    *,
    check: bool = True,
    interactive: bool = False,
    dry_run: bool = False,
) -> CmdResult:
    """Run a command inside target root.

    arch-chroot sets up /dev, /proc, /sys and resolv.conf itself, so no bind
    mounts are managed here.
    """

    return run_cmd(in_target(target_root, argv), check=check, interactive=interactive, dry_run=dry_run)
