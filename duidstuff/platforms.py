"""Per-OS access to the active DHCPv6 DUID.

Each adapter implements the same small set of mechanism primitives
(``read_active_duid``, ``write_active_duid``, ``delete_active_duid``,
``toggle_interface_v6``, ``clear_cached_state``, ``reload``) on top of the
operating system's own tools.  The shared workflow lives in
:class:`DuidPlatform`:

* ``set_duid`` backs up the current DUID into the original-value store
  before anything else happens, so the first DUID ever observed is the one
  that ``restore_duid`` brings back.
* ``restore_duid`` writes the stored original, unless there is none or it is
  already active.
* ``reset_duid`` deletes the active DUID so the OS generates a new one.  It
  never touches the original-value store.

IPv6 toggling, lease clearing and client reloads are best-effort; the DUID
write itself is not.
"""

import abc
import re
import shutil
import struct
import sys
from enum import Enum
from pathlib import Path
from typing import ClassVar

from loguru import logger

from duidstuff.codec import (
    DUID_MAX_LENGTH,
    DUID_MIN_LENGTH,
    DuidError,
    DuidType,
    format_colon_hex,
    from_hex_text,
    to_hex_text,
)
from duidstuff.duidconfig import DuidStuffConfig, LinuxConfig, MacOSConfig, WindowsConfig
from duidstuff.runner import CommandError, CommandRunner, best_effort, ps_quote
from duidstuff.store import OriginalDuidStore, OriginalStoreError


class UnsupportedPlatformError(DuidError):
    """Raised when the host OS is not macOS, Linux or Windows."""


class UnsupportedDhcpClientError(DuidError):
    """Raised on Linux when no supported DHCP client can be detected."""


class DuidWriteError(DuidError):
    """Raised when the new DUID cannot be written or the active one removed."""


class RestoreResult(str, Enum):
    RESTORED = "restored"
    NOT_SPOOFED = "not_spoofed"
    NO_ORIGINAL = "no_original"


def _check_length(duid: bytes) -> bytes:
    if not DUID_MIN_LENGTH <= len(duid) <= DUID_MAX_LENGTH:
        raise ValueError(f"DUID must be {DUID_MIN_LENGTH}..{DUID_MAX_LENGTH} bytes, got {len(duid)}")
    return duid


def detect_platform_name(platform: str | None = None) -> str:
    """Map ``sys.platform`` (or ``platform``) to ``darwin``, ``linux`` or ``win32``.

    Raises:
        UnsupportedPlatformError: For any other OS.
    """
    p = platform or sys.platform
    if p == "darwin":
        return "darwin"
    if p.startswith("linux"):
        return "linux"
    if p in ("win32", "cygwin"):
        return "win32"
    raise UnsupportedPlatformError(f"Unsupported platform: {p}")


class DuidPlatform(abc.ABC):
    """Common DUID workflow on top of per-OS mechanism primitives.

    Args:
        store: Original-value store used for the first-time backup.
        runner: Executes external commands; a fresh :class:`CommandRunner`
            when omitted.
    """

    name: ClassVar[str]

    def __init__(self, store: OriginalDuidStore, runner: CommandRunner | None = None) -> None:
        self.store = store
        self.runner = runner or CommandRunner()
        self._log = logger.bind(classname=type(self).__name__)

    # ── mechanism primitives ───────────────────────────────────────────

    @abc.abstractmethod
    def read_active_duid(self) -> bytes | None:
        """Return the DUID the OS currently uses, ``None`` if there is none."""

    @abc.abstractmethod
    def write_active_duid(self, duid: bytes, iface: str | None = None) -> None:
        """Install ``duid`` as the active DUID."""

    @abc.abstractmethod
    def delete_active_duid(self, iface: str | None = None) -> None:
        """Remove the active DUID so the OS generates a fresh one."""

    @abc.abstractmethod
    def toggle_interface_v6(self, iface: str, enabled: bool) -> None:
        """Enable or disable IPv6 on ``iface``."""

    def clear_cached_state(self, iface: str | None = None) -> None:
        """Drop cached DHCPv6 leases."""

    def reload(self, iface: str | None = None) -> None:
        """Make the DHCP client pick up a changed DUID."""

    # ── workflow ───────────────────────────────────────────────────────

    def get_current(self) -> bytes | None:
        """Read the active DUID; never raises for missing or unreadable values."""
        try:
            duid = self.read_active_duid()
        except (CommandError, OSError, ValueError) as exc:
            self._log.debug(f"could not read current DUID: {exc}")
            return None
        return duid or None

    def backup_original(self) -> bool:
        """Store the current DUID as the original unless one is stored already.

        Returns:
            Whether a new record was written.
        """
        current = self.get_current()
        if current is None:
            self._log.debug("no active DUID, nothing to back up")
            return False
        return self.store.backup_if_absent(current)

    def set_duid(self, duid: bytes, iface: str | None = None) -> bool:
        """Back up the original, then install ``duid``.

        Raises:
            ValueError: If ``duid`` is not 3..130 bytes long.
            DuidWriteError: If the new DUID cannot be written.
            OriginalStoreError: If the backup record cannot be written.
        """
        duid = _check_length(bytes(duid))

        self.backup_original()
        self._apply(duid, iface)
        return True

    def restore_duid(self, iface: str | None = None) -> RestoreResult:
        """Write the stored original DUID back unless it is missing or already active.

        Raises:
            OriginalStoreError: If the stored original is not a valid DUID.
            DuidWriteError: If the original cannot be written.
        """
        original = self.store.load()
        if original is None:
            return RestoreResult.NO_ORIGINAL
        try:
            _check_length(original)
        except ValueError as exc:
            raise OriginalStoreError(f"Stored original DUID in {self.store.path()} is unusable: {exc}") from exc

        current = self.get_current()
        if current is not None and current == original:
            return RestoreResult.NOT_SPOOFED

        self._apply(original, iface)
        return RestoreResult.RESTORED

    def reset_duid(self, iface: str | None = None) -> bool:
        if iface:
            best_effort(f"disable IPv6 on {iface}", self.toggle_interface_v6, iface, False)

        try:
            self.delete_active_duid(iface)
        except (CommandError, OSError) as exc:
            raise DuidWriteError(f"Could not remove the active DUID: {exc}") from exc

        best_effort("reload DHCP client", self.reload, iface)
        if iface:
            best_effort(f"enable IPv6 on {iface}", self.toggle_interface_v6, iface, True)
        return True

    def _apply(self, duid: bytes, iface: str | None) -> None:
        if iface:
            best_effort(f"disable IPv6 on {iface}", self.toggle_interface_v6, iface, False)
        best_effort("clear DHCPv6 leases", self.clear_cached_state, iface)

        try:
            self.write_active_duid(duid, iface)
        except (CommandError, OSError) as exc:
            raise DuidWriteError(f"Could not write new DUID {format_colon_hex(duid)}: {exc}") from exc
        self._log.info(f"active DUID set to {format_colon_hex(duid)}")

        best_effort("reload DHCP client", self.reload, iface)
        if iface:
            best_effort(f"enable IPv6 on {iface}", self.toggle_interface_v6, iface, True)


# ── macOS ─────────────────────────────────────────────────────────────────

_DEFAULTS_DATA_RE = re.compile(r"<([0-9a-fA-F\s]+)>|bytes = 0x([0-9a-fA-F]+)")


class MacOSPlatform(DuidPlatform):
    """configd/IPConfiguration keeps the DUID in ``/var/db/dhcpclient/DUID``."""

    name = "darwin"

    def __init__(
        self, store: OriginalDuidStore, config: MacOSConfig | None = None, runner: CommandRunner | None = None
    ) -> None:
        super().__init__(store, runner)
        self.config = config or MacOSConfig()

    def read_active_duid(self) -> bytes | None:
        path = self.config.duid_path
        if path.is_file():
            return path.read_bytes() or None

        out = self.runner.run(["defaults", "read", str(path)], check=False).strip()
        if not out:
            return None
        m = _DEFAULTS_DATA_RE.search(out)
        if m:
            return from_hex_text(m.group(1) or m.group(2))
        return from_hex_text(out)

    def write_active_duid(self, duid: bytes, iface: str | None = None) -> None:
        path = self.config.duid_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(duid)

    def delete_active_duid(self, iface: str | None = None) -> None:
        self.config.duid_path.unlink(missing_ok=True)

    def clear_cached_state(self, iface: str | None = None) -> None:
        leases = self.config.leases_dir
        if not leases.is_dir():
            return
        for entry in leases.iterdir():
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()

    def toggle_interface_v6(self, iface: str, enabled: bool) -> None:
        # networksetup wants the network service name (Wi-Fi), not the BSD device (en0)
        flag = "-setv6automatic" if enabled else "-setv6off"
        port = self.hardware_port(iface)
        if not port or port == iface:
            self.runner.run(["networksetup", flag, iface])
            return
        try:
            self.runner.run(["networksetup", flag, port])
        except CommandError:
            self._log.debug(f"networksetup rejected service {port!r}, retrying with device {iface}")
            self.runner.run(["networksetup", flag, iface])

    def hardware_port(self, device: str) -> str | None:
        """Resolve a BSD device name (``en0``) to its hardware port (``Wi-Fi``)."""
        try:
            output = self.runner.run(["networksetup", "-listallhardwareports"])
        except CommandError:
            return None

        port: str | None = None
        for line in output.splitlines():
            line = line.strip()
            if line.startswith("Hardware Port:"):
                port = line.split(":", 1)[1].strip()
            elif line.startswith("Device:") and line.split(":", 1)[1].strip() == device:
                return port
        return None


# ── Linux ─────────────────────────────────────────────────────────────────

_NETWORKD_DUID_TYPES = {"link-layer-time": 1, "vendor": 2, "link-layer": 3, "uuid": 4}
_NETWORKCTL_DUID_RE = re.compile(r"DUID:\s*(?:DUID-([A-Za-z]+)(?:/\w+)?:)?\s*([0-9a-fA-F:]+)")
_DHCLIENT_DUID_RE = re.compile(r"send\s+dhcp6\.client-id\s+([^;]+);\n?")
_NM_DUID_RE = re.compile(r"^\s*ipv6\.dhcp-duid\s*=\s*(\S+)\s*$", re.MULTILINE)
_HEX_DUID_RE = re.compile(r"^[0-9a-fA-F]{2}(:?[0-9a-fA-F]{2})+$")


class LinuxPlatform(DuidPlatform):
    """Linux: the DUID lives in the configuration of whichever DHCP client runs.

    Supported clients are systemd-networkd, ISC dhclient and NetworkManager.
    """

    name = "linux"

    SYSTEMD = "systemd"
    DHCLIENT = "dhclient"
    NETWORKMANAGER = "networkmanager"
    UNKNOWN = "unknown"

    def __init__(
        self, store: OriginalDuidStore, config: LinuxConfig | None = None, runner: CommandRunner | None = None
    ) -> None:
        super().__init__(store, runner)
        self.config = config or LinuxConfig()

    def detect_dhcp_client(self) -> str:
        if self.config.dhcp_client:
            return self.config.dhcp_client
        if self.runner.succeeds(["systemctl", "is-active", "--quiet", "systemd-networkd"]):
            return self.SYSTEMD
        if self.runner.succeeds(["pgrep", "-x", "dhclient"]):
            return self.DHCLIENT
        if self.runner.succeeds(["pgrep", "-x", "NetworkManager"]):
            return self.NETWORKMANAGER
        return self.UNKNOWN

    def _require_client(self) -> str:
        client = self.detect_dhcp_client()
        if client not in (self.SYSTEMD, self.DHCLIENT, self.NETWORKMANAGER):
            raise UnsupportedDhcpClientError("Could not detect DHCP client. Please configure DUID manually.")
        return client

    def read_active_duid(self) -> bytes | None:
        client = self.detect_dhcp_client()
        if client == self.SYSTEMD:
            return self._read_networkd()
        if client == self.DHCLIENT:
            return self._read_dhclient()
        if client == self.NETWORKMANAGER:
            return self._read_networkmanager()
        return None

    def write_active_duid(self, duid: bytes, iface: str | None = None) -> None:
        client = self._require_client()
        if client == self.SYSTEMD:
            (duid_type,) = struct.unpack_from("!H", duid, 0)
            content = f"[DHCPv6]\nDUIDType={duid_type}\nDUIDRawData={format_colon_hex(duid[2:]).lower()}\n"
            _write_text(self.config.networkd_dropin, content)
        elif client == self.DHCLIENT:
            content = self._dhclient_conf_without_duid()
            if content and not content.endswith("\n"):
                content += "\n"
            content += f"send dhcp6.client-id {format_colon_hex(duid).lower()};\n"
            _write_text(self.config.dhclient_conf, content)
        else:
            _write_text(
                self.config.networkmanager_dropin, f"[connection]\nipv6.dhcp-duid={format_colon_hex(duid).lower()}\n"
            )
            if iface:
                conn = self._nm_connection(iface)
                if conn:
                    self.runner.run(
                        ["nmcli", "connection", "modify", conn, "ipv6.dhcp-duid", format_colon_hex(duid).lower()]
                    )

    def delete_active_duid(self, iface: str | None = None) -> None:
        client = self._require_client()
        if client == self.SYSTEMD:
            self.config.networkd_dropin.unlink(missing_ok=True)
        elif client == self.DHCLIENT:
            if self.config.dhclient_conf.is_file():
                _write_text(self.config.dhclient_conf, self._dhclient_conf_without_duid())
        else:
            self.config.networkmanager_dropin.unlink(missing_ok=True)
            if iface:
                conn = self._nm_connection(iface)
                if conn:
                    self.runner.run(["nmcli", "connection", "modify", conn, "ipv6.dhcp-duid", ""])

    def clear_cached_state(self, iface: str | None = None) -> None:
        if iface and self.detect_dhcp_client() == self.DHCLIENT:
            self.runner.run(["dhclient", "-6", "-r", iface])

    def reload(self, iface: str | None = None) -> None:
        client = self.detect_dhcp_client()
        if client == self.SYSTEMD:
            self.runner.run(["systemctl", "restart", "systemd-networkd"])
        elif client == self.DHCLIENT:
            if iface:
                self.runner.run(["dhclient", "-6", iface])
        elif client == self.NETWORKMANAGER:
            self.runner.run(["nmcli", "general", "reload", "conf"])
            if iface:
                conn = self._nm_connection(iface)
                if conn:
                    self.runner.run(["nmcli", "connection", "down", conn])
                    self.runner.run(["nmcli", "connection", "up", conn])

    def toggle_interface_v6(self, iface: str, enabled: bool) -> None:
        self.runner.run(["sysctl", "-w", f"net.ipv6.conf.{iface}.disable_ipv6={0 if enabled else 1}"])

    def _read_networkd(self) -> bytes | None:
        dropin = self.config.networkd_dropin
        if dropin.is_file():
            text = dropin.read_text()
            m_type = re.search(r"^\s*DUIDType\s*=\s*(\S+)", text, re.MULTILINE)
            m_raw = re.search(r"^\s*DUIDRawData\s*=\s*([0-9a-fA-F:]+)", text, re.MULTILINE)
            if m_type and m_raw:
                type_text = m_type.group(1).lower()
                duid_type = _NETWORKD_DUID_TYPES.get(type_text) or int(type_text)
                return struct.pack("!H", duid_type) + from_hex_text(m_raw.group(1))

        out = self.runner.run(["networkctl", "status"], check=False)
        m = _NETWORKCTL_DUID_RE.search(out)
        if not m:
            return None
        payload = from_hex_text(m.group(2))
        if m.group(1):
            try:
                duid_type = DuidType[m.group(1).upper()]
            except KeyError:
                return payload
            return struct.pack("!H", duid_type) + payload
        return payload

    def _read_dhclient(self) -> bytes | None:
        conf = self.config.dhclient_conf
        if not conf.is_file():
            return None
        m = _DHCLIENT_DUID_RE.search(conf.read_text())
        return from_hex_text(m.group(1).strip()) if m else None

    def _dhclient_conf_without_duid(self) -> str:
        conf = self.config.dhclient_conf
        if not conf.is_file():
            return ""
        return _DHCLIENT_DUID_RE.sub("", conf.read_text())

    def _read_networkmanager(self) -> bytes | None:
        dropin = self.config.networkmanager_dropin
        if not dropin.is_file():
            return None
        m = _NM_DUID_RE.search(dropin.read_text())
        if not m or not _HEX_DUID_RE.match(m.group(1)):
            # symbolic values (llt, stable-ll, ...) are generated by NetworkManager itself
            return None
        return from_hex_text(m.group(1))

    def _nm_connection(self, iface: str) -> str | None:
        out = self.runner.run(["nmcli", "-g", "GENERAL.CONNECTION", "device", "show", iface])
        conn = out.strip().replace("\\:", ":")
        return conn or None


def _write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)


# ── Windows ───────────────────────────────────────────────────────────────


class WindowsPlatform(DuidPlatform):
    """Windows keeps the DUID as a REG_BINARY value under the Tcpip6 parameters."""

    name = "win32"

    def __init__(
        self, store: OriginalDuidStore, config: WindowsConfig | None = None, runner: CommandRunner | None = None
    ) -> None:
        super().__init__(store, runner)
        self.config = config or WindowsConfig()
        self._value_re = re.compile(rf"{re.escape(self.config.value_name)}\s+REG_BINARY\s+([0-9A-Fa-f]+)")

    def read_active_duid(self) -> bytes | None:
        out = self.runner.run(["reg", "query", self.config.registry_path, "/v", self.config.value_name])
        m = self._value_re.search(out)
        return from_hex_text(m.group(1)) if m else None

    def write_active_duid(self, duid: bytes, iface: str | None = None) -> None:
        try:
            self.runner.run(
                [
                    "reg",
                    "add",
                    self.config.registry_path,
                    "/v",
                    self.config.value_name,
                    "/t",
                    "REG_BINARY",
                    "/d",
                    to_hex_text(duid),
                    "/f",
                ]
            )
        except CommandError as exc:
            raise DuidWriteError(
                f"Could not write registry value {self.config.value_name}. "
                f"Make sure you are running as Administrator. ({exc})"
            ) from exc

    def delete_active_duid(self, iface: str | None = None) -> None:
        if self.get_current() is None:
            return
        self.runner.run(["reg", "delete", self.config.registry_path, "/v", self.config.value_name, "/f"])

    def clear_cached_state(self, iface: str | None = None) -> None:
        if iface:
            self.runner.run(["ipconfig", "/release6", iface])

    def toggle_interface_v6(self, iface: str, enabled: bool) -> None:
        state = "enabled" if enabled else "disabled"
        try:
            self.runner.run(["netsh", "interface", "ipv6", "set", "interface", iface, state])
        except CommandError:
            cmdlet = "Enable-NetAdapterBinding" if enabled else "Disable-NetAdapterBinding"
            self.runner.run(["powershell", "-Command", f"{cmdlet} -Name {ps_quote(iface)} -ComponentID ms_tcpip6"])


def create_platform(
    platform_name: str | None = None,
    config: DuidStuffConfig | None = None,
    store: OriginalDuidStore | None = None,
    runner: CommandRunner | None = None,
) -> DuidPlatform:
    """Build the adapter for ``platform_name`` (default: the running OS).

    Raises:
        UnsupportedPlatformError: If the OS is not macOS, Linux or Windows.
    """
    name = detect_platform_name(platform_name)
    config = config or DuidStuffConfig()
    runner = runner or CommandRunner(timeout=config.command_timeout)
    store = store or OriginalDuidStore(name, config.store)

    if name == "darwin":
        return MacOSPlatform(store, config.macos, runner)
    if name == "linux":
        return LinuxPlatform(store, config.linux, runner)
    return WindowsPlatform(store, config.windows, runner)
