from __future__ import annotations

import logging

from ...lib.block import is_block_device
from ...lib.probe import PathExists, is_satisfied
from ...lib.storage import luks_open
from ...lib.wait import wait_until
from ...pipeline import StageContext
from .step_30_encrypt_root import LUKS_SECRET

logger = logging.getLogger(__name__)

MAPPER_WAIT_ATTEMPTS = 10
MAPPER_WAIT_DELAY_S = 1.0


class OpenEncryptedStage:
    stage_id = "35_open_encrypted"
    depends_on = ("30_encrypt_root",)

    def is_satisfied(self, ctx: StageContext) -> bool:
        return is_satisfied(PathExists(ctx.env.mapper_path))

    def run(self, ctx: StageContext) -> None:
        env = ctx.env
        passphrase = ctx.secrets.get(LUKS_SECRET, f"Disk encryption passphrase for {env.root_partition}", confirm=False)
        luks_open(env.root_partition, env.mapper_name, passphrase, dry_run=ctx.dry_run)

        # device-mapper node appears asynchronously
        wait_until(
            lambda: is_block_device(env.mapper_path),
            what=f"device-mapper node {env.mapper_path}",
            attempts=MAPPER_WAIT_ATTEMPTS,
            delay_s=MAPPER_WAIT_DELAY_S,
            dry_run=ctx.dry_run,
        )
        logger.info("Opened %s as %s", env.root_partition, env.mapper_path)
