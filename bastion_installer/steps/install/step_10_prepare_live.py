from __future__ import annotations

import logging

from ...lib.command import run_advisory, run_cmd
from ...pipeline import StageContext

logger = logging.getLogger(__name__)


class PrepareLiveStage:
    stage_id = "10_prepare_live"
    depends_on = ()

    def run(self, ctx: StageContext) -> None:
        env = ctx.env
        # Console keymap only matters for the operator typing passphrases.
        run_advisory(["loadkeys", env.keymap], dry_run=ctx.dry_run)
        run_cmd(["timedatectl", "set-ntp", "true"], dry_run=ctx.dry_run)
        logger.info("Live environment prepared (keymap=%s, ntp=on)", env.keymap)
