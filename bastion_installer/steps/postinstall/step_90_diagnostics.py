from __future__ import annotations

import logging

from ...lib.command import as_root, fmt_argv, run_advisory
from ...pipeline import StageContext

logger = logging.getLogger(__name__)


class DiagnosticsStage:
    """Read-only health summary. Nothing here can fail the run."""

    stage_id = "90_diagnostics"
    depends_on = ("85_enable_services",)

    def run(self, ctx: StageContext) -> None:
        for argv in (
            ["systemctl", "--failed", "--no-pager"],
            as_root(["snapper", "-c", "root", "list"]),
            as_root(["aa-status"]),
        ):
            r = run_advisory(argv, quiet=True, dry_run=ctx.dry_run)
            if r.stdout.strip():
                logger.info("%s:\n%s", fmt_argv(argv), r.stdout.rstrip())
