from __future__ import annotations

import logging

from ...lib.block import is_block_device
from ...lib.probe import PartitionLabelsPresent, is_satisfied
from ...lib.storage import ESP_LABEL, ROOT_LABEL, PartitionPlan, partition_disk
from ...lib.wait import wait_until
from ...pipeline import StageContext

logger = logging.getLogger(__name__)

PARTITION_WAIT_ATTEMPTS = 10
PARTITION_WAIT_DELAY_S = 1.0


class PartitionDiskStage:
    stage_id = "20_partition_disk"
    depends_on = ("10_prepare_live",)

    def is_satisfied(self, ctx: StageContext) -> bool:
        return is_satisfied(PartitionLabelsPresent(ctx.env.device, (ESP_LABEL, ROOT_LABEL)))

    def run(self, ctx: StageContext) -> None:
        env = ctx.env
        result = partition_disk(
            plan=PartitionPlan(disk=env.device, esp_size_mib=env.esp_size_mib),
            dry_run=ctx.dry_run,
        )

        # udev creates the partition nodes asynchronously after partprobe.
        for part in (result.esp_part, result.root_part):
            wait_until(
                lambda part=part: is_block_device(part),
                what=f"partition node {part}",
                attempts=PARTITION_WAIT_ATTEMPTS,
                delay_s=PARTITION_WAIT_DELAY_S,
                dry_run=ctx.dry_run,
            )

        logger.info("Partitioned %s (esp=%s root=%s)", env.device, result.esp_part, result.root_part)
