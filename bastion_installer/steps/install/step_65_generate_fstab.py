from __future__ import annotations

import logging

from ...lib.command import run_cmd
from ...lib.emit import GeneratedArtifact, write_artifact
from ...pipeline import StageContext

logger = logging.getLogger(__name__)


class GenerateFstabStage:
    stage_id = "65_generate_fstab"
    depends_on = ("60_install_base",)

    def run(self, ctx: StageContext) -> None:
        r = run_cmd(["genfstab", "-U", ctx.env.target_root], quiet=True, dry_run=ctx.dry_run)
        content = "# Generated by bastion-installer (genfstab -U)\n" + r.stdout
        write_artifact(
            GeneratedArtifact(path="/etc/fstab", content=content, mode=0o644),
            root=ctx.sysroot,
            dry_run=ctx.dry_run,
        )
        logger.info("fstab written")
