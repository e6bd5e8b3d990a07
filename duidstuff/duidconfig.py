"""Standalone Pydantic configuration for duidstuff.

Loads config from YAML file, environment variables (DUIDSTUFF_ prefix), or direct init.
All models are frozen: platform adapters receive them through their constructor
and never mutate them.
"""

import os
from pathlib import Path, PureWindowsPath
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from ruamel.yaml import YAML


class StoreConfig(BaseModel):
    """Where the original (pre-spoofing) DUID record is kept."""

    model_config = ConfigDict(frozen=True)

    darwin_dir: Path = Field(default=Path("/var/db/dhcpclient"), description="System directory on macOS")
    darwin_filename: str = Field(default="DUID.original", description="Record file name on macOS")
    linux_dir: Path = Field(default=Path("/var/lib/duidstuff"), description="System directory on Linux")
    windows_dir: str | None = Field(
        default=None, description="System directory on Windows (default: %PROGRAMDATA%\\duidstuff)"
    )
    user_dir: Path | None = Field(
        default=None, description="Per-user fallback directory (default: ~/.duidstuff, %APPDATA%\\duidstuff on Windows)"
    )
    filename: str = Field(default="duid.original", description="Record file name on Linux and Windows")

    def system_path(self, platform_name: str) -> Path:
        if platform_name == "darwin":
            return self.darwin_dir / self.darwin_filename
        if platform_name == "win32":
            base = self.windows_dir or str(PureWindowsPath(os.getenv("PROGRAMDATA", "C:\\ProgramData"), "duidstuff"))
            return Path(base) / self.filename
        if platform_name == "linux":
            return self.linux_dir / self.filename
        return self.fallback_path(platform_name)

    def fallback_path(self, platform_name: str) -> Path:
        if self.user_dir is not None:
            return self.user_dir / self.filename
        if platform_name == "win32":
            return Path(os.getenv("APPDATA", str(Path.home())), "duidstuff", self.filename)
        return Path.home() / ".duidstuff" / self.filename


class MacOSConfig(BaseModel):
    """macOS DHCP client (configd/IPConfiguration) locations."""

    model_config = ConfigDict(frozen=True)

    duid_path: Path = Field(default=Path("/var/db/dhcpclient/DUID"), description="Active DUID file")
    leases_dir: Path = Field(default=Path("/var/db/dhcpclient/leases"), description="DHCP lease directory")


class LinuxConfig(BaseModel):
    """Linux DHCP client configuration locations."""

    model_config = ConfigDict(frozen=True)

    networkd_dropin: Path = Field(
        default=Path("/etc/systemd/networkd.conf.d/00-duidstuff.conf"), description="systemd-networkd drop-in"
    )
    dhclient_conf: Path = Field(default=Path("/etc/dhcp/dhclient6.conf"), description="dhclient DHCPv6 config")
    networkmanager_dropin: Path = Field(
        default=Path("/etc/NetworkManager/conf.d/00-duidstuff.conf"), description="NetworkManager global drop-in"
    )
    dhcp_client: str | None = Field(
        default=None, description="Force the DHCP client (systemd, dhclient, networkmanager) instead of detecting it"
    )


class WindowsConfig(BaseModel):
    """Windows TCP/IPv6 registry location of the DUID."""

    model_config = ConfigDict(frozen=True)

    registry_path: str = Field(
        default="HKEY_LOCAL_MACHINE\\SYSTEM\\CurrentControlSet\\Services\\Tcpip6\\Parameters",
        description="Registry key holding the DUID",
    )
    value_name: str = Field(default="Dhcpv6DUID", description="REG_BINARY value name")


class DuidStuffConfig(BaseModel):
    """Top-level duidstuff configuration."""

    model_config = ConfigDict(frozen=True)

    store: StoreConfig = StoreConfig()
    macos: MacOSConfig = MacOSConfig()
    linux: LinuxConfig = LinuxConfig()
    windows: WindowsConfig = WindowsConfig()
    command_timeout: float | None = Field(
        default=None, gt=0, description="Timeout in seconds for external commands (default: none)"
    )


_ENV_MAP: dict[str, tuple[str | None, str]] = {
    "DUIDSTUFF_STORE_LINUX_DIR": ("store", "linux_dir"),
    "DUIDSTUFF_STORE_DARWIN_DIR": ("store", "darwin_dir"),
    "DUIDSTUFF_STORE_WINDOWS_DIR": ("store", "windows_dir"),
    "DUIDSTUFF_STORE_USER_DIR": ("store", "user_dir"),
    "DUIDSTUFF_STORE_FILENAME": ("store", "filename"),
    "DUIDSTUFF_MACOS_DUID_PATH": ("macos", "duid_path"),
    "DUIDSTUFF_MACOS_LEASES_DIR": ("macos", "leases_dir"),
    "DUIDSTUFF_LINUX_NETWORKD_DROPIN": ("linux", "networkd_dropin"),
    "DUIDSTUFF_LINUX_DHCLIENT_CONF": ("linux", "dhclient_conf"),
    "DUIDSTUFF_LINUX_NETWORKMANAGER_DROPIN": ("linux", "networkmanager_dropin"),
    "DUIDSTUFF_LINUX_DHCP_CLIENT": ("linux", "dhcp_client"),
    "DUIDSTUFF_WINDOWS_REGISTRY_PATH": ("windows", "registry_path"),
    "DUIDSTUFF_WINDOWS_VALUE_NAME": ("windows", "value_name"),
    "DUIDSTUFF_COMMAND_TIMEOUT": (None, "command_timeout"),
}


def load_config(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> DuidStuffConfig:
    """Load DuidStuffConfig from YAML file, environment variables, and overrides.

    Priority (highest first): overrides > env vars > YAML file.

    ``overrides`` uses the same nested shape as the YAML file, e.g.
    ``{"store": {"user_dir": "/tmp/x"}, "command_timeout": 10}``.
    """
    data: dict[str, Any] = {}

    # 1. YAML file
    if config_path is not None:
        path = Path(config_path)
        if path.is_file():
            loaded = YAML().load(path)
            if isinstance(loaded, dict):
                data = {k: dict(v) if isinstance(v, dict) else v for k, v in loaded.items()}

    # 2. Environment variables (DUIDSTUFF_ prefix)
    for env_key, (section, field) in _ENV_MAP.items():
        val = os.getenv(env_key)
        if val is None:
            continue
        if section is None:
            data[field] = val
        else:
            data.setdefault(section, {})[field] = val

    # 3. Overrides from caller (e.g. CLI args)
    if overrides:
        for key, val in overrides.items():
            if val is None:
                continue
            if isinstance(val, dict):
                data.setdefault(key, {}).update({k: v for k, v in val.items() if v is not None})
            else:
                data[key] = val

    return DuidStuffConfig(**data)
