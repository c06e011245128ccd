from __future__ import annotations

import logging

from ...lib.probe import FilesystemIs, all_of, is_satisfied
from ...lib.storage import make_filesystems
from ...pipeline import StageContext

logger = logging.getLogger(__name__)


class CreateFilesystemsStage:
    stage_id = "40_create_filesystems"
    depends_on = ("20_partition_disk", "35_open_encrypted")

    def is_satisfied(self, ctx: StageContext) -> bool:
        env = ctx.env
        return is_satisfied(
            all_of(
                FilesystemIs(env.esp_partition, "vfat"),
                FilesystemIs(env.mapper_path, "btrfs"),
            )
        )

    def run(self, ctx: StageContext) -> None:
        env = ctx.env
        make_filesystems(esp_part=env.esp_partition, root_dev=env.mapper_path, dry_run=ctx.dry_run)
        logger.info("Filesystems created (esp=vfat root=btrfs)")
