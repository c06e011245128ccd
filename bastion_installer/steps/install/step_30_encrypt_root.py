from __future__ import annotations

import logging

from ...lib.probe import IsLuksDevice, is_satisfied
from ...lib.storage import luks_format
from ...pipeline import StageContext

logger = logging.getLogger(__name__)

LUKS_SECRET = "luks"


class EncryptRootStage:
    stage_id = "30_encrypt_root"
    depends_on = ("20_partition_disk",)

    def is_satisfied(self, ctx: StageContext) -> bool:
        return is_satisfied(IsLuksDevice(ctx.env.root_partition))

    def run(self, ctx: StageContext) -> None:
        dev = ctx.env.root_partition
        passphrase = ctx.secrets.get(LUKS_SECRET, f"Disk encryption passphrase for {dev}")
        luks_format(dev, passphrase, dry_run=ctx.dry_run)
        logger.info("LUKS2 container created on %s", dev)
