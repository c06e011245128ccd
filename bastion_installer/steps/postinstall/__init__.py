from .step_10_enable_multilib import EnableMultilibStage
from .step_20_upgrade_system import UpgradeSystemStage
from .step_30_install_packages import InstallPackagesStage
from .step_40_configure_snapper import ConfigureSnapperStage
from .step_50_configure_firewall import ConfigureFirewallStage
from .step_55_harden_ssh import HardenSshStage
from .step_60_harden_kernel import HardenKernelStage
from .step_65_configure_audit import ConfigureAuditStage
from .step_70_configure_pam import ConfigurePamStage
from .step_75_configure_dns import ConfigureDnsStage
from .step_80_configure_shell import ConfigureShellStage
from .step_85_enable_services import EnableServicesStage
from .step_90_diagnostics import DiagnosticsStage

__all__ = [
    "EnableMultilibStage",
    "UpgradeSystemStage",
    "InstallPackagesStage",
    "ConfigureSnapperStage",
    "ConfigureFirewallStage",
    "HardenSshStage",
    "HardenKernelStage",
    "ConfigureAuditStage",
    "ConfigurePamStage",
    "ConfigureDnsStage",
    "ConfigureShellStage",
    "EnableServicesStage",
    "DiagnosticsStage",
]
