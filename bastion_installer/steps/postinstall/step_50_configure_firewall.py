from __future__ import annotations

import logging
from typing import Sequence

from ... import preconditions as pre
from ...lib.command import as_root, run_cmd
from ...lib.probe import FirewallActive, is_satisfied
from ...pipeline import StageContext
from ...preconditions import Check

logger = logging.getLogger(__name__)


class ConfigureFirewallStage:
    stage_id = "50_configure_firewall"
    depends_on = ("30_install_packages",)

    def is_satisfied(self, ctx: StageContext) -> bool:
        return is_satisfied(FirewallActive())

    def preconditions(self, ctx: StageContext) -> Sequence[Check]:
        return [pre.command_available("ufw")]

    def run(self, ctx: StageContext) -> None:
        port = ctx.env.ssh_port
        for argv in (
            ["ufw", "default", "deny", "incoming"],
            ["ufw", "default", "allow", "outgoing"],
            # limit = allow, but refuse 6+ connections in 30s from one address
            ["ufw", "limit", f"{port}/tcp"],
            ["ufw", "--force", "enable"],
        ):
            run_cmd(as_root(argv), dry_run=ctx.dry_run)
        logger.info("Firewall enabled (ssh rate-limited on %d/tcp)", port)
