from __future__ import annotations

import logging

from ...lib.storage import create_subvolumes, list_subvolumes, mount, umount
from ...pipeline import StageContext

logger = logging.getLogger(__name__)

SCRATCH_MOUNT = "/run/bastion-btrfs-top"


class CreateSubvolumesStage:
    stage_id = "45_create_subvolumes"
    depends_on = ("40_create_filesystems",)

    def run(self, ctx: StageContext) -> None:
        env = ctx.env
        names = [name for name, _ in env.subvolumes]

        # Work on the top-level subvolume (id 5) in a scratch mountpoint, so this
        # also works when the target is already mounted from an earlier run.
        top = SCRATCH_MOUNT
        mount(env.mapper_path, top, options=["subvolid=5"], dry_run=ctx.dry_run)
        try:
            existing = set() if ctx.dry_run else list_subvolumes(top)
            created = create_subvolumes(top, names, existing=existing, dry_run=ctx.dry_run)
        finally:
            umount(top, dry_run=ctx.dry_run)

        logger.info("Subvolumes ready (created=%s)", ",".join(created) or "none")
