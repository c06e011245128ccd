from __future__ import annotations

import logging
import os
import stat

from ..errors import OperationFailed
from .command import run_cmd

logger = logging.getLogger(__name__)


def partition_path(disk: str, n: int) -> str:
    # nvme/mmcblk/loop devices use a p separator
    if disk.endswith(tuple("0123456789")):
        return f"{disk}p{n}"
    return f"{disk}{n}"


def is_block_device(path: str) -> bool:
    try:
        return stat.S_ISBLK(os.stat(path).st_mode)
    except OSError:
        return False


def get_uuid(dev: str, *, dry_run: bool = False) -> str:
    """Return the UUID blkid reports for a block device (LUKS or filesystem)."""

    r = run_cmd(["blkid", "-s", "UUID", "-o", "value", dev], dry_run=dry_run)
    uuid = (r.stdout or "").strip()
    if dry_run:
        return uuid or "00000000-0000-0000-0000-000000000000"
    if not uuid:
        raise OperationFailed(f"blkid {dev}", r.returncode, f"Unable to determine UUID for {dev}")
    return uuid


def fs_type(dev: str) -> str:
    """Filesystem signature on dev, or '' when none/unknown."""

    r = run_cmd(["blkid", "-s", "TYPE", "-o", "value", dev], check=False, quiet=True)
    return (r.stdout or "").strip() if r.ok else ""


def partition_labels(disk: str) -> list[str]:
    r = run_cmd(["lsblk", "-nro", "PARTLABEL", disk], check=False, quiet=True)
    if not r.ok:
        return []
    return [ln.strip() for ln in r.stdout.splitlines() if ln.strip()]
