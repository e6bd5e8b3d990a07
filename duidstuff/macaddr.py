"""Live MAC address lookup for a named interface.

Asks the OS tool first (``ifconfig`` on macOS, ``ip link`` on Linux,
``Get-NetAdapter`` on Windows).  If that fails, scapy's interface table is
searched instead.
"""

import re

from loguru import logger

from duidstuff.codec import normalize_mac
from duidstuff.platforms import detect_platform_name
from duidstuff.runner import CommandError, CommandRunner, ps_quote

_ZERO_MAC = "00:00:00:00:00:00"
_DARWIN_ETHER_RE = re.compile(r"^\s*ether\s+(\S+)", re.IGNORECASE | re.MULTILINE)
_LINUX_ETHER_RE = re.compile(r"link/ether\s+(\S+)", re.IGNORECASE)

log = logger.bind(classname="macaddr")


def _valid_mac(text: str | None) -> str | None:
    if not text:
        return None
    try:
        return normalize_mac(text)
    except ValueError:
        log.debug(f"ignoring malformed MAC {text!r}")
        return None


def _primary_lookup(iface: str, platform_name: str, runner: CommandRunner) -> str | None:
    if platform_name == "darwin":
        m = _DARWIN_ETHER_RE.search(runner.run(["ifconfig", iface]))
        return _valid_mac(m.group(1)) if m else None
    if platform_name == "linux":
        m = _LINUX_ETHER_RE.search(runner.run(["ip", "link", "show", iface]))
        return _valid_mac(m.group(1)) if m else None
    if platform_name == "win32":
        out = runner.run(
            [
                "powershell",
                "-Command",
                f"Get-NetAdapter -Name {ps_quote(iface)} | Select-Object -ExpandProperty MacAddress",
            ]
        )
        return _valid_mac(out.strip())
    return None


def _fallback_lookup(iface: str) -> str | None:
    # deferred import, scapy is slow to load and only needed here
    from scapy.interfaces import get_if_list
    from scapy.arch import get_if_hwaddr

    for name in get_if_list():
        if name.lower() != iface.lower():
            continue
        mac = _valid_mac(get_if_hwaddr(name))
        if mac and mac != _ZERO_MAC:
            return mac
        return None
    return None


def get_current_mac_address(
    iface: str, platform_name: str | None = None, runner: CommandRunner | None = None
) -> str | None:
    """Return the current MAC of ``iface`` as lowercase colon hex, or ``None``.

    Args:
        iface: Interface name (``en0``, ``eth0``, ``Ethernet``).
        platform_name: ``darwin``, ``linux`` or ``win32``; the running OS when omitted.
        runner: Command runner for the OS tool.
    """
    platform_name = detect_platform_name(platform_name)
    runner = runner or CommandRunner()
    try:
        return _primary_lookup(iface, platform_name, runner)
    except (CommandError, OSError) as exc:
        log.debug(f"primary MAC lookup for {iface} failed ({exc}), trying interface enumeration")

    try:
        return _fallback_lookup(iface)
    except Exception as exc:
        log.debug(f"interface enumeration for {iface} failed: {exc}")
        return None
