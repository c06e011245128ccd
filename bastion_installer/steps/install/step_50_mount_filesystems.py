from __future__ import annotations

import logging
from typing import List, Tuple

from ...lib.probe import IsMountPoint, all_of, is_satisfied
from ...lib.storage import BTRFS_MOUNT_OPTIONS, mount
from ...pipeline import StageContext

logger = logging.getLogger(__name__)


def _mount_plan(ctx: StageContext) -> List[Tuple[str, str, List[str]]]:
    """(device, mountpoint, options) in mount order: root first, ESP last."""

    env = ctx.env
    plan = []
    for subvol, rel in env.subvolumes:
        plan.append((env.mapper_path, env.target_path(rel), [f"subvol={subvol}", BTRFS_MOUNT_OPTIONS]))
    plan.append((env.esp_partition, env.target_path("/boot"), ["umask=0077"]))
    return plan


class MountFilesystemsStage:
    stage_id = "50_mount_filesystems"
    depends_on = ("45_create_subvolumes",)

    def is_satisfied(self, ctx: StageContext) -> bool:
        return is_satisfied(all_of(*(IsMountPoint(mp) for _, mp, _ in _mount_plan(ctx))))

    def run(self, ctx: StageContext) -> None:
        for dev, mountpoint, options in _mount_plan(ctx):
            if not ctx.dry_run and is_satisfied(IsMountPoint(mountpoint)):
                continue
            mount(dev, mountpoint, options=options, dry_run=ctx.dry_run)
        logger.info("Target mounted at %s", ctx.env.target_root)
