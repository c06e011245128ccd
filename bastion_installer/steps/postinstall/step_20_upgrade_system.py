from __future__ import annotations

from ...lib.pkg import pacman_upgrade
from ...pipeline import StageContext


class UpgradeSystemStage:
    stage_id = "20_upgrade_system"
    depends_on = ("10_enable_multilib",)

    def run(self, ctx: StageContext) -> None:
        # Refreshes the sync databases too, so multilib packages resolve next.
        pacman_upgrade(dry_run=ctx.dry_run)
