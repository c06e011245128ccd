from .step_10_prepare_live import PrepareLiveStage
from .step_20_partition_disk import PartitionDiskStage
from .step_30_encrypt_root import EncryptRootStage
from .step_35_open_encrypted import OpenEncryptedStage
from .step_40_create_filesystems import CreateFilesystemsStage
from .step_45_create_subvolumes import CreateSubvolumesStage
from .step_50_mount_filesystems import MountFilesystemsStage
from .step_60_install_base import InstallBaseStage
from .step_65_generate_fstab import GenerateFstabStage
from .step_70_configure_system import ConfigureSystemStage
from .step_75_configure_initramfs import ConfigureInitramfsStage
from .step_80_install_bootloader import InstallBootloaderStage
from .step_85_create_user import CreateUserStage
from .step_90_enable_services import EnableServicesStage
from .step_95_finalize import FinalizeStage

__all__ = [
    "PrepareLiveStage",
    "PartitionDiskStage",
    "EncryptRootStage",
    "OpenEncryptedStage",
    "CreateFilesystemsStage",
    "CreateSubvolumesStage",
    "MountFilesystemsStage",
    "InstallBaseStage",
    "GenerateFstabStage",
    "ConfigureSystemStage",
    "ConfigureInitramfsStage",
    "InstallBootloaderStage",
    "CreateUserStage",
    "EnableServicesStage",
    "FinalizeStage",
]
