"""
Tests for representative install stages, driven through a fake executor.
"""

import pytest
import yaml

from bastion_installer.errors import OperationFailed, TimeoutExceeded
from bastion_installer.install import build_stages
from bastion_installer.lib.secrets import SecretPrompt
from bastion_installer.pipeline import validate_stages
from bastion_installer.steps.install import (
    ConfigureSystemStage,
    CreateSubvolumesStage,
    CreateUserStage,
    EncryptRootStage,
    FinalizeStage,
    InstallBaseStage,
    MountFilesystemsStage,
    OpenEncryptedStage,
    PartitionDiskStage,
)
from bastion_installer.steps.install import step_20_partition_disk, step_35_open_encrypted
from bastion_installer.steps.install.step_70_configure_system import locale_charset


class TestStageList:
    def test_install_order_is_valid(self):
        stages = build_stages()
        validate_stages(stages)
        ids = [s.stage_id for s in stages]
        assert ids == sorted(ids)
        assert ids[0] == "10_prepare_live"
        assert ids[-1] == "95_finalize"


class TestPartitionDisk:
    def test_commands(self, fake_run, make_ctx, monkeypatch):
        monkeypatch.setattr(step_20_partition_disk, "is_block_device", lambda p: True)
        PartitionDiskStage().run(make_ctx())

        cmds = fake_run.commands()
        assert cmds[0] == ["wipefs", "--all", "/dev/vda"]
        assert ["sgdisk", "--zap-all", "/dev/vda"] in cmds
        assert ["sgdisk", "--new=1:0:+512MiB", "--typecode=1:ef00", "--change-name=1:EFI", "/dev/vda"] in cmds
        assert ["sgdisk", "--new=2:0:0", "--typecode=2:8309", "--change-name=2:CRYPTROOT", "/dev/vda"] in cmds
        assert cmds[-1] == ["partprobe", "/dev/vda"]

    def test_partition_node_never_appears(self, fake_run, make_ctx, monkeypatch):
        monkeypatch.setattr(step_20_partition_disk, "is_block_device", lambda p: False)
        monkeypatch.setattr(step_20_partition_disk, "PARTITION_WAIT_ATTEMPTS", 2)
        monkeypatch.setattr(step_20_partition_disk, "PARTITION_WAIT_DELAY_S", 0)
        with pytest.raises(TimeoutExceeded, match="/dev/vda1"):
            PartitionDiskStage().run(make_ctx())

    def test_satisfied_when_labels_present(self, fake_run, make_ctx):
        fake_run.on(["lsblk"], stdout="\nEFI\nCRYPTROOT\n")
        assert PartitionDiskStage().is_satisfied(make_ctx())

    def test_dry_run(self, fake_run, make_ctx):
        PartitionDiskStage().run(make_ctx(dry_run=True))
        assert fake_run.calls == []


class TestEncryptRoot:
    def test_passphrase_goes_to_stdin(self, fake_run, make_ctx):
        EncryptRootStage().run(make_ctx())
        assert fake_run.calls == [
            ["cryptsetup", "luksFormat", "--type", "luks2", "--batch-mode", "--key-file=-", "/dev/vda2"]
        ]
        assert fake_run.inputs == ["correct horse"]

    def test_passphrase_file(self, fake_run, make_ctx, tmp_path):
        key = tmp_path / "luks.key"
        key.write_text("from-file\n")
        EncryptRootStage().run(make_ctx(secrets=SecretPrompt(files={"luks": str(key)})))
        assert fake_run.inputs == ["from-file"]

    def test_skipped_on_existing_container(self, fake_run, make_ctx):
        fake_run.on(["cryptsetup", "isLuks"], returncode=0)
        assert EncryptRootStage().is_satisfied(make_ctx())
        fake_run.on(["cryptsetup", "isLuks"], returncode=1)
        assert not EncryptRootStage().is_satisfied(make_ctx())


class TestOpenEncrypted:
    def test_opens_and_waits_for_mapper(self, fake_run, make_ctx, monkeypatch):
        monkeypatch.setattr(step_35_open_encrypted, "is_block_device", lambda p: True)
        OpenEncryptedStage().run(make_ctx())
        assert fake_run.calls == [["cryptsetup", "open", "--key-file=-", "/dev/vda2", "cryptroot"]]
        assert fake_run.inputs == ["correct horse"]

    def test_mapper_never_appears(self, fake_run, make_ctx, monkeypatch):
        monkeypatch.setattr(step_35_open_encrypted, "is_block_device", lambda p: False)
        monkeypatch.setattr(step_35_open_encrypted, "MAPPER_WAIT_ATTEMPTS", 2)
        monkeypatch.setattr(step_35_open_encrypted, "MAPPER_WAIT_DELAY_S", 0)
        with pytest.raises(TimeoutExceeded, match="/dev/mapper/cryptroot"):
            OpenEncryptedStage().run(make_ctx())


class TestCreateSubvolumes:
    def test_creates_only_missing(self, fake_run, make_ctx):
        fake_run.on(
            ["btrfs", "subvolume", "list"],
            stdout="ID 256 gen 7 top level 5 path @\nID 257 gen 7 top level 5 path @home\n",
        )
        CreateSubvolumesStage().run(make_ctx())

        created = [c[-1] for c in fake_run.commands() if c[:3] == ["btrfs", "subvolume", "create"]]
        assert created == [
            "/run/bastion-btrfs-top/@snapshots",
            "/run/bastion-btrfs-top/@var_log",
            "/run/bastion-btrfs-top/@pkg",
        ]
        assert fake_run.commands()[-1] == ["umount", "/run/bastion-btrfs-top"]


class TestMountFilesystems:
    def test_mounted_targets_are_skipped(self, fake_run, make_ctx):
        fake_run.on(["mountpoint", "-q", "/mnt/var/log"], returncode=1)
        MountFilesystemsStage().run(make_ctx())

        mounts = [c for c in fake_run.commands() if c[0] == "mount"]
        assert mounts == [
            ["mount", "-o", "subvol=@var_log,noatime,compress=zstd", "/dev/mapper/cryptroot", "/mnt/var/log"]
        ]

    def test_satisfied_only_when_all_mounted(self, fake_run, make_ctx):
        assert MountFilesystemsStage().is_satisfied(make_ctx())
        fake_run.on(["mountpoint", "-q", "/mnt/boot"], returncode=1)
        assert not MountFilesystemsStage().is_satisfied(make_ctx())


class TestInstallBase:
    def test_package_list(self, fake_run, make_ctx, monkeypatch):
        monkeypatch.setattr(
            "bastion_installer.steps.install.step_60_install_base.cpu_vendor", lambda: "amd"
        )
        InstallBaseStage().run(make_ctx())
        argv = fake_run.calls[0]
        assert argv[:3] == ["pacstrap", "-K", "/mnt"]
        for pkg in ("base", "linux", "linux-headers", "amd-ucode", "btrfs-progs", "cryptsetup"):
            assert pkg in argv
        assert len(argv) == len(set(argv))


class TestConfigureSystem:
    def test_locale_charset(self):
        assert locale_charset("en_US.UTF-8") == "UTF-8"
        assert locale_charset("de_DE.ISO-8859-15@euro") == "ISO-8859-15"
        assert locale_charset("C") == "ISO-8859-1"

    def test_writes_identity_files(self, fake_run, make_ctx, sysroot):
        ConfigureSystemStage().run(make_ctx())
        assert (sysroot / "etc/hostname").read_text() == "bastion\n"
        assert "en_US.UTF-8 UTF-8" in (sysroot / "etc/locale.gen").read_text()
        assert "KEYMAP=us" in (sysroot / "etc/vconsole.conf").read_text()
        assert ["arch-chroot", "/mnt", "locale-gen"] in fake_run.commands()


class TestFinalize:
    def test_writes_handoff_without_unmounting(self, fake_run, make_ctx, sysroot):
        FinalizeStage().run(make_ctx())
        data = yaml.safe_load((sysroot / "etc/bastion/environment.yaml").read_text())
        assert data["username"] == "alice"
        assert "luks_passphrase_file" not in data
        assert fake_run.calls == []


class TestCreateUser:
    @pytest.fixture
    def account(self, sysroot):
        """alice exists in the target; write_shadow sets her password field."""
        (sysroot / "etc/passwd").write_text("root:x:0:0::/root:/bin/bash\nalice:x:1000:1000::/home/alice:/bin/bash\n")

        def write_shadow(field):
            (sysroot / "etc/shadow").write_text(f"root:*:19000::::::\nalice:{field}:19000:0:99999:7:::\n")

        return write_shadow

    def test_existing_account_is_kept(self, fake_run, make_ctx, account, sysroot):
        account("$6$salt$hash")
        CreateUserStage().run(make_ctx())

        assert not fake_run.ran("arch-chroot", "/mnt", "useradd")
        assert not fake_run.ran("arch-chroot", "/mnt", "passwd", "alice")
        assert fake_run.commands() == [
            ["arch-chroot", "/mnt", "visudo", "-c", "-q"],
            ["arch-chroot", "/mnt", "passwd", "-l", "root"],
        ]
        assert "%wheel ALL=(ALL:ALL) ALL" in (sysroot / "etc/sudoers.d/10-wheel").read_text()

    def test_password_asked_again_after_failure(self, fake_run, make_ctx, account):
        account("!")
        fake_run.on_sequence(["arch-chroot", "/mnt", "passwd", "alice"], [10, 0])
        CreateUserStage().run(make_ctx())

        asked = [c for c in fake_run.commands() if c == ["arch-chroot", "/mnt", "passwd", "alice"]]
        assert len(asked) == 2
        assert fake_run.commands()[-1] == ["arch-chroot", "/mnt", "passwd", "-l", "root"]

    def test_missing_passwd_is_not_retried(self, fake_run, make_ctx, account):
        account("!")
        fake_run.missing("arch-chroot")
        with pytest.raises(OperationFailed):
            CreateUserStage().run(make_ctx())
        assert len(fake_run.calls) == 1
