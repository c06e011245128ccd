from __future__ import annotations

import logging

from ...lib.chroot import chroot_cmd
from ...pipeline import StageContext

logger = logging.getLogger(__name__)

BASE_UNITS = [
    "NetworkManager.service",
    "systemd-timesyncd.service",
    "fstrim.timer",
]


class EnableServicesStage:
    stage_id = "90_enable_services"
    depends_on = ("60_install_base", "85_create_user")

    def run(self, ctx: StageContext) -> None:
        # systemctl enable only writes symlinks, so repeating it is harmless.
        chroot_cmd(ctx.env.target_root, ["systemctl", "enable", *BASE_UNITS], dry_run=ctx.dry_run)
        logger.info("Enabled %s", ", ".join(BASE_UNITS))
