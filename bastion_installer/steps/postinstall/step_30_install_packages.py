from __future__ import annotations

import logging

from ...lib.manifests import package_group
from ...lib.pkg import pacman_install
from ...lib.probe import is_satisfied, packages_installed
from ...pipeline import StageContext

logger = logging.getLogger(__name__)

GROUP = "hardening"


class InstallPackagesStage:
    stage_id = "30_install_packages"
    depends_on = ("20_upgrade_system",)

    def is_satisfied(self, ctx: StageContext) -> bool:
        return is_satisfied(packages_installed(package_group(GROUP)))

    def run(self, ctx: StageContext) -> None:
        pkgs = package_group(GROUP)
        pacman_install(pkgs, dry_run=ctx.dry_run)
        logger.info("Installed %d %s packages", len(pkgs), GROUP)
