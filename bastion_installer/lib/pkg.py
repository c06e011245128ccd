from __future__ import annotations

import logging
from typing import Optional, Sequence

from .command import as_root, run_cmd

logger = logging.getLogger(__name__)


def pacstrap_rootfs(
    *,
    target_root: str,
    packages: Sequence[str],
    dry_run: bool = False,
) -> None:
    # -K initialises a fresh pacman keyring inside the target
    run_cmd(["pacstrap", "-K", target_root, *packages], dry_run=dry_run)


def pacman_upgrade(*, dry_run: bool = False) -> None:
    run_cmd(as_root(["pacman", "-Syu", "--noconfirm"]), dry_run=dry_run)


def pacman_install(packages: Sequence[str], *, dry_run: bool = False) -> None:
    if not packages:
        return
    run_cmd(
        as_root(["pacman", "-S", "--needed", "--noconfirm", *packages]),
        dry_run=dry_run,
    )


def missing_packages(packages: Sequence[str], *, root: Optional[str] = None) -> list[str]:
    """Return the subset of packages pacman does not report as installed."""

    if not packages:
        return []
    argv = ["pacman"]
    if root:
        argv += ["--root", root]
    argv += ["-Q", *packages]
    r = run_cmd(argv, check=False, quiet=True)
    if r.ok:
        return []
    # pacman prints "error: package 'x' was not found" per missing name
    missing = []
    for ln in r.stderr.splitlines():
        if "was not found" in ln and "'" in ln:
            missing.append(ln.split("'")[1])
    return missing or list(packages)
