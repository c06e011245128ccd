from __future__ import annotations

import logging

from ...lib.command import as_root, run_cmd
from ...lib.emit import from_template, write_artifact
from ...lib.probe import ServiceActive, is_satisfied
from ...lib.wait import wait_until
from ...pipeline import StageContext

logger = logging.getLogger(__name__)

RESOLVED_DROPIN = "/etc/systemd/resolved.conf.d/bastion.conf"
STUB_RESOLV = "/run/systemd/resolve/stub-resolv.conf"
UNIT = "systemd-resolved.service"


class ConfigureDnsStage:
    stage_id = "75_configure_dns"
    depends_on = ("30_install_packages",)

    def run(self, ctx: StageContext) -> None:
        write_artifact(
            from_template(RESOLVED_DROPIN, "resolved.conf.tmpl", ctx.env.substitutions),
            root=ctx.sysroot,
            dry_run=ctx.dry_run,
        )
        run_cmd(as_root(["systemctl", "enable", "--now", UNIT]), dry_run=ctx.dry_run)
        run_cmd(as_root(["systemctl", "restart", UNIT]), dry_run=ctx.dry_run)
        run_cmd(as_root(["ln", "-sf", STUB_RESOLV, "/etc/resolv.conf"]), dry_run=ctx.dry_run)

        wait_until(lambda: is_satisfied(ServiceActive(UNIT)), what=UNIT, dry_run=ctx.dry_run)
        logger.info("DNS via systemd-resolved (%s)", " ".join(ctx.env.dns_servers))
