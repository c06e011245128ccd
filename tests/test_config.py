"""
Tests for loading and validating the run configuration.
"""

import textwrap

import pytest

from bastion_installer.config import dump_environment, load_environment
from bastion_installer.errors import ConfigError


def _write(tmp_path, text):
    p = tmp_path / "bastion.yaml"
    p.write_text(textwrap.dedent(text))
    return str(p)


class TestLoadEnvironment:
    def test_defaults_applied(self):
        env = load_environment(None, {"device": "/dev/vda", "hostname": "h", "username": "alice"})
        assert env.locale == "en_US.UTF-8"
        assert env.target_root == "/mnt"
        assert env.esp_partition == "/dev/vda1"
        assert env.root_partition == "/dev/vda2"
        assert env.mapper_path == "/dev/mapper/cryptroot"

    def test_nvme_partition_names(self):
        env = load_environment(None, {"device": "/dev/nvme0n1", "hostname": "h", "username": "alice"})
        assert env.esp_partition == "/dev/nvme0n1p1"
        assert env.root_partition == "/dev/nvme0n1p2"

    def test_cli_overrides_file(self, tmp_path):
        path = _write(
            tmp_path,
            """\
            device: /dev/sda
            hostname: from-file
            username: alice
            timezone: Europe/Berlin
            extra_packages: [git, htop]
            """,
        )
        env = load_environment(path, {"hostname": "from-cli", "timezone": None})
        assert env.hostname == "from-cli"
        assert env.timezone == "Europe/Berlin"
        assert env.extra_packages == ("git", "htop")

    def test_snapper_configs_mapping(self, tmp_path):
        path = _write(
            tmp_path,
            """\
            username: alice
            snapper_configs:
              root: /
            """,
        )
        env = load_environment(path, require=("username",))
        assert env.snapper_configs == (("root", "/"),)

    def test_unknown_key(self, tmp_path):
        path = _write(tmp_path, "username: alice\nbootloader: grub\n")
        with pytest.raises(ConfigError, match="bootloader"):
            load_environment(path, require=("username",))

    def test_missing_required(self):
        with pytest.raises(ConfigError, match="device is required"):
            load_environment(None, {"hostname": "h", "username": "alice"})

    @pytest.mark.parametrize(
        "overrides, match",
        [
            ({"device": "sda"}, "/dev path"),
            ({"hostname": "bad_host!"}, "hostname"),
            ({"username": "root"}, "root"),
            ({"username": "Alice"}, "username"),
            ({"ssh_port": 70000}, "ssh_port"),
            ({"ssh_port": "abc"}, "integer"),
        ],
    )
    def test_invalid_values(self, overrides, match):
        values = {"device": "/dev/vda", "hostname": "h", "username": "alice"}
        values.update(overrides)
        with pytest.raises(ConfigError, match=match):
            load_environment(None, values)

    def test_non_mapping_file(self, tmp_path):
        path = _write(tmp_path, "- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_environment(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_environment(str(tmp_path / "absent.yaml"))


class TestHandoff:
    def test_dump_is_loadable_and_omits_secret_path(self, tmp_path):
        env = load_environment(
            None,
            {
                "device": "/dev/vda",
                "hostname": "h",
                "username": "alice",
                "luks_passphrase_file": "/root/luks.key",
                "ssh_port": 2222,
            },
        )
        text = dump_environment(env)
        assert "luks.key" not in text

        p = tmp_path / "environment.yaml"
        p.write_text(text)
        again = load_environment(str(p), require=("username",))
        assert again.ssh_port == 2222
        assert again.snapper_configs == env.snapper_configs
        assert again.luks_passphrase_file is None
