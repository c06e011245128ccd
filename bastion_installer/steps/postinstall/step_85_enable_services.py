from __future__ import annotations

import logging

from ...lib.command import as_root, run_cmd
from ...lib.probe import ServiceActive, is_satisfied
from ...lib.wait import wait_until
from ...pipeline import StageContext

logger = logging.getLogger(__name__)

HARDENING_UNITS = [
    "apparmor.service",
    "auditd.service",
    "ufw.service",
    "sshd.service",
    "snapper-timeline.timer",
    "snapper-cleanup.timer",
    "systemd-resolved.service",
]


class EnableServicesStage:
    stage_id = "85_enable_services"
    depends_on = ("50_configure_firewall", "55_harden_ssh", "65_configure_audit", "75_configure_dns")

    def run(self, ctx: StageContext) -> None:
        for unit in HARDENING_UNITS:
            run_cmd(as_root(["systemctl", "enable", "--now", unit]), dry_run=ctx.dry_run)

        for unit in HARDENING_UNITS:
            wait_until(lambda unit=unit: is_satisfied(ServiceActive(unit)), what=unit, dry_run=ctx.dry_run)
        logger.info("Active: %s", ", ".join(HARDENING_UNITS))
