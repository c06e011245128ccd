from __future__ import annotations

import logging
from typing import List

from ...lib.hwdetect import cpu_vendor, microcode_package
from ...lib.manifests import package_group
from ...lib.pkg import pacstrap_rootfs
from ...lib.probe import packages_installed, is_satisfied
from ...pipeline import StageContext

logger = logging.getLogger(__name__)


def base_packages(ctx: StageContext) -> List[str]:
    env = ctx.env
    packages = [*package_group("base"), env.kernel, f"{env.kernel}-headers"]
    ucode = microcode_package(cpu_vendor())
    if ucode:
        packages.append(ucode)
    packages += list(env.extra_packages)

    dedup: List[str] = []
    for p in packages:
        if p not in dedup:
            dedup.append(p)
    return dedup


class InstallBaseStage:
    stage_id = "60_install_base"
    depends_on = ("50_mount_filesystems",)

    def is_satisfied(self, ctx: StageContext) -> bool:
        return is_satisfied(packages_installed(base_packages(ctx), root=ctx.env.target_root))

    def run(self, ctx: StageContext) -> None:
        packages = base_packages(ctx)
        pacstrap_rootfs(target_root=ctx.env.target_root, packages=packages, dry_run=ctx.dry_run)
        logger.info("Base system installed (%d packages)", len(packages))
