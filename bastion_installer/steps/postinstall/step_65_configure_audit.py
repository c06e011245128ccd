from __future__ import annotations

from ...lib.emit import from_template, write_artifact
from ...pipeline import StageContext

AUDIT_RULES = "/etc/audit/rules.d/bastion.rules"


class ConfigureAuditStage:
    stage_id = "65_configure_audit"
    depends_on = ("30_install_packages",)

    def run(self, ctx: StageContext) -> None:
        # auditd loads rules.d through augenrules when it starts.
        write_artifact(
            from_template(AUDIT_RULES, "audit.rules.tmpl", ctx.env.substitutions, mode=0o640),
            root=ctx.sysroot,
            dry_run=ctx.dry_run,
        )
