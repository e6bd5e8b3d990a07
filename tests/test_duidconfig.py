"""Tests for the pydantic configuration and its YAML / env / override layering."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from duidstuff.duidconfig import DuidStuffConfig, LinuxConfig, StoreConfig, load_config


class TestDefaults:
    def test_locations(self) -> None:
        cfg = DuidStuffConfig()
        assert cfg.macos.duid_path == Path("/var/db/dhcpclient/DUID")
        assert cfg.linux.dhclient_conf == Path("/etc/dhcp/dhclient6.conf")
        assert cfg.windows.value_name == "Dhcpv6DUID"
        assert cfg.command_timeout is None
        assert cfg.linux.dhcp_client is None

    def test_frozen(self) -> None:
        cfg = DuidStuffConfig()
        with pytest.raises(ValidationError):
            cfg.command_timeout = 5  # type: ignore[misc]

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            DuidStuffConfig(command_timeout=0)


class TestStorePaths:
    def test_system_paths(self, tmp_path: Path) -> None:
        cfg = StoreConfig(darwin_dir=tmp_path / "mac", linux_dir=tmp_path / "lin", windows_dir=str(tmp_path / "win"))
        assert cfg.system_path("darwin") == tmp_path / "mac" / "DUID.original"
        assert cfg.system_path("linux") == tmp_path / "lin" / "duid.original"
        assert cfg.system_path("win32") == tmp_path / "win" / "duid.original"

    def test_programdata(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("PROGRAMDATA", str(tmp_path))
        path = StoreConfig().system_path("win32")
        assert path.name == "duid.original"
        assert "duidstuff" in str(path.parent)

    def test_fallback(self, tmp_path: Path) -> None:
        assert StoreConfig(user_dir=tmp_path).fallback_path("linux") == tmp_path / "duid.original"
        assert StoreConfig().fallback_path("linux") == Path.home() / ".duidstuff" / "duid.original"


class TestLoadConfig:
    def test_from_yaml(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "duidstuff.yaml"
        yaml_file.write_text(
            "store:\n  user_dir: /tmp/duids\nlinux:\n  dhcp_client: dhclient\ncommand_timeout: 15\n"
        )
        cfg = load_config(config_path=yaml_file)
        assert cfg.store.user_dir == Path("/tmp/duids")
        assert cfg.linux.dhcp_client == "dhclient"
        assert cfg.command_timeout == 15

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        assert load_config(config_path=tmp_path / "nope.yaml") == DuidStuffConfig()

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DUIDSTUFF_LINUX_DHCP_CLIENT", "systemd")
        monkeypatch.setenv("DUIDSTUFF_COMMAND_TIMEOUT", "2.5")
        cfg = load_config()
        assert cfg.linux.dhcp_client == "systemd"
        assert cfg.command_timeout == 2.5

    def test_priority(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        yaml_file = tmp_path / "duidstuff.yaml"
        yaml_file.write_text("linux:\n  dhcp_client: dhclient\n  dhclient_conf: /etc/dhcp/custom.conf\n")
        monkeypatch.setenv("DUIDSTUFF_LINUX_DHCP_CLIENT", "systemd")

        cfg = load_config(config_path=yaml_file)
        assert cfg.linux.dhcp_client == "systemd"
        assert cfg.linux.dhclient_conf == Path("/etc/dhcp/custom.conf")

        cfg = load_config(config_path=yaml_file, overrides={"linux": {"dhcp_client": "networkmanager"}})
        assert cfg.linux.dhcp_client == "networkmanager"
        assert cfg.linux.dhclient_conf == Path("/etc/dhcp/custom.conf")

    def test_none_overrides_ignored(self) -> None:
        cfg = load_config(overrides={"command_timeout": None, "linux": {"dhcp_client": None}})
        assert cfg == DuidStuffConfig()

    def test_invalid_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DUIDSTUFF_COMMAND_TIMEOUT", "-1")
        with pytest.raises(ValidationError):
            load_config()

    def test_section_model(self) -> None:
        cfg = load_config(overrides={"linux": {"networkd_dropin": "/run/x.conf"}})
        assert isinstance(cfg.linux, LinuxConfig)
        assert cfg.linux.networkd_dropin == Path("/run/x.conf")
