from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

import yaml

from .errors import ConfigError
from .lib.block import partition_path
from .lib.storage import SUBVOLUME_LAYOUT

DEFAULT_HANDOFF_PATH = "/etc/bastion/environment.yaml"

_HOSTNAME_RE = re.compile(r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$", re.IGNORECASE)
_USERNAME_RE = re.compile(r"^[a-z_][a-z0-9_-]{0,31}$")


@dataclass(frozen=True)
class Environment:
    """Read-only values shared by every stage of a run."""

    device: str = ""
    hostname: str = ""
    username: str = ""
    locale: str = "en_US.UTF-8"
    timezone: str = "UTC"
    keymap: str = "us"
    target_root: str = "/mnt"
    mapper_name: str = "cryptroot"
    esp_size_mib: int = 512
    kernel: str = "linux"
    extra_packages: Tuple[str, ...] = ()
    min_memory_mib: int = 1024
    network_probe_host: str = "archlinux.org"
    ssh_port: int = 22
    dns_servers: Tuple[str, ...] = ("9.9.9.9", "149.112.112.112")
    snapper_configs: Tuple[Tuple[str, str], ...] = (("root", "/"), ("home", "/home"))
    luks_passphrase_file: Optional[str] = None
    unmount_on_finish: bool = False
    reboot_on_finish: bool = False

    @property
    def esp_partition(self) -> str:
        return partition_path(self.device, 1)

    @property
    def root_partition(self) -> str:
        return partition_path(self.device, 2)

    @property
    def mapper_path(self) -> str:
        return f"/dev/mapper/{self.mapper_name}"

    @property
    def subvolumes(self) -> Tuple[Tuple[str, str], ...]:
        return SUBVOLUME_LAYOUT

    def target_path(self, rel: str) -> str:
        return str(Path(self.target_root) / rel.lstrip("/"))

    @property
    def substitutions(self) -> Dict[str, Any]:
        """Values available to configuration templates."""

        return {
            "hostname": self.hostname,
            "username": self.username,
            "locale": self.locale,
            "timezone": self.timezone,
            "keymap": self.keymap,
            "kernel": self.kernel,
            "mapper_name": self.mapper_name,
            "ssh_port": self.ssh_port,
            "dns_servers": " ".join(self.dns_servers),
        }

    def to_dict(self) -> Dict[str, Any]:
        d = dataclasses.asdict(self)
        d["extra_packages"] = list(self.extra_packages)
        d["dns_servers"] = list(self.dns_servers)
        d["snapper_configs"] = {name: path for name, path in self.snapper_configs}
        return d


_FIELDS = {f.name: f for f in dataclasses.fields(Environment)}
_INT_FIELDS = {"esp_size_mib", "min_memory_mib", "ssh_port"}
_BOOL_FIELDS = {"unmount_on_finish", "reboot_on_finish"}
_LIST_FIELDS = {"extra_packages", "dns_servers"}


def _coerce(key: str, value: Any) -> Any:
    if key in _INT_FIELDS:
        try:
            n = int(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"{key} must be an integer, got {value!r}") from e
        if n <= 0:
            raise ConfigError(f"{key} must be positive, got {n}")
        return n
    if key in _BOOL_FIELDS:
        if not isinstance(value, bool):
            raise ConfigError(f"{key} must be true or false, got {value!r}")
        return value
    if key in _LIST_FIELDS:
        if isinstance(value, str):
            value = value.split()
        if not isinstance(value, (list, tuple)):
            raise ConfigError(f"{key} must be a list")
        return tuple(str(v).strip() for v in value if str(v).strip())
    if key == "snapper_configs":
        if not isinstance(value, Mapping):
            raise ConfigError("snapper_configs must be a mapping of name -> path")
        return tuple((str(k), str(v)) for k, v in value.items())
    if key == "luks_passphrase_file":
        return None if value in (None, "") else str(value)
    return str(value).strip()


def validate(env: Environment, *, require: Iterable[str] = ("device", "hostname", "username")) -> Environment:
    for key in require:
        if not getattr(env, key):
            raise ConfigError(f"{key} is required")

    if env.device and not env.device.startswith("/dev/"):
        raise ConfigError(f"device must be a /dev path, got {env.device!r}")
    if env.hostname and not _HOSTNAME_RE.match(env.hostname):
        raise ConfigError(f"Invalid hostname: {env.hostname!r}")
    if env.username:
        if not _USERNAME_RE.match(env.username):
            raise ConfigError(f"Invalid username: {env.username!r}")
        if env.username == "root":
            raise ConfigError("username must not be root")
    if not 0 < env.ssh_port < 65536:
        raise ConfigError(f"ssh_port out of range: {env.ssh_port}")
    return env


def load_config_file(path: str) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ConfigError("config file must be YAML")

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a mapping/object")
    return raw


def load_environment(
    path: Optional[str] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    *,
    require: Iterable[str] = ("device", "hostname", "username"),
) -> Environment:
    """Defaults, then the YAML file, then command-line overrides (None = unset)."""

    values: Dict[str, Any] = {}
    if path:
        values.update(load_config_file(path))
    values.update({k: v for k, v in (overrides or {}).items() if v is not None})

    unknown = sorted(set(values) - set(_FIELDS))
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

    env = Environment(**{k: _coerce(k, v) for k, v in values.items()})
    return validate(env, require=require)


def dump_environment(env: Environment) -> str:
    """YAML handoff between the two pipelines; never carries secret locations."""

    data = env.to_dict()
    data.pop("luks_passphrase_file", None)
    return yaml.safe_dump(data, sort_keys=True)
