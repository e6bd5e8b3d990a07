"""Platform-independent facade over the DUID codec, store and platform adapter."""

from pathlib import Path
from typing import Callable

from loguru import logger

from duidstuff.codec import DuidError, DuidType, ParsedDuid, decode, encode, from_hex_text
from duidstuff.macaddr import get_current_mac_address
from duidstuff.platforms import DuidPlatform, RestoreResult, create_platform
from duidstuff.store import OriginalDuidRecord

MacReader = Callable[[str], str | None]


class MissingInterfaceError(DuidError):
    """Raised when an operation needs an interface name and none was given."""


class InterfaceMacUnavailableError(DuidError):
    """Raised when the live MAC of an interface cannot be determined."""


class ConfirmationRequiredError(DuidError):
    """Raised when clearing the original DUID without explicit confirmation."""


class DuidController:
    """Generate, set, sync, restore and reset the host's DUID.

    The platform adapter is selected once, at construction.

    Args:
        platform: Adapter to use; built by :func:`create_platform` when omitted.
        mac_reader: ``iface -> mac`` lookup used by :meth:`get_current_mac`;
            defaults to :func:`get_current_mac_address` for the adapter's OS.
    """

    def __init__(self, platform: DuidPlatform | None = None, mac_reader: MacReader | None = None) -> None:
        self.platform = platform or create_platform()
        self._mac_reader = mac_reader or (
            lambda iface: get_current_mac_address(iface, self.platform.name, self.platform.runner)
        )
        self._log = logger.bind(classname="DuidController")

    # ── pure ───────────────────────────────────────────────────────────

    def generate(self, duid_type: int = DuidType.LL, mac: str | None = None) -> bytes:
        return encode(duid_type, mac)

    def parse(self, duid: bytes) -> ParsedDuid:
        return decode(duid)

    # ── OS state ───────────────────────────────────────────────────────

    def get_current(self) -> bytes | None:
        return self.platform.get_current()

    def get_current_mac(self, iface: str | None) -> str | None:
        if not iface:
            raise MissingInterfaceError("Interface name required")
        return self._mac_reader(iface)

    def set_duid(self, duid: bytes | str, iface: str | None = None) -> bytes:
        """Install ``duid`` (bytes or hex text) after backing up the original."""
        raw = from_hex_text(duid) if isinstance(duid, str) else bytes(duid)
        self.platform.set_duid(raw, iface)
        return raw

    def randomize(self, duid_type: int = DuidType.LL, iface: str | None = None, mac: str | None = None) -> bytes:
        duid = self.generate(duid_type, mac)
        self.set_duid(duid, iface)
        return duid

    def sync_to_mac(self, iface: str, duid_type: int = DuidType.LL) -> bytes:
        """Set a DUID built from the interface's current MAC.

        Keeps DHCPv6 identity consistent with a spoofed link-layer address.

        Raises:
            MissingInterfaceError: If ``iface`` is empty.
            InterfaceMacUnavailableError: If the interface has no readable MAC.
        """
        mac = self.get_current_mac(iface)
        if not mac:
            raise InterfaceMacUnavailableError(f"Could not get MAC address for interface: {iface}")
        self._log.debug(f"syncing DUID to {iface} MAC {mac}")
        duid = self.generate(duid_type, mac)
        self.set_duid(duid, iface)
        return duid

    def restore(self, iface: str | None = None) -> RestoreResult:
        return self.platform.restore_duid(iface)

    def reset(self, iface: str | None = None) -> bool:
        return self.platform.reset_duid(iface)

    # ── original-value record ──────────────────────────────────────────

    def has_original(self) -> bool:
        return self.platform.store.has()

    def original(self) -> bytes | None:
        return self.platform.store.load()

    def original_record(self) -> OriginalDuidRecord | None:
        return self.platform.store.record()

    def original_path(self) -> Path:
        return self.platform.store.path()

    def is_spoofed(self) -> bool | None:
        """``True``/``False`` when both current and original are known, else ``None``."""
        current, original = self.get_current(), self.original()
        if current is None or original is None:
            return None
        return current != original

    def clear_original(self, confirm: bool = False) -> bool:
        """Delete the stored original DUID.  After this, ``restore`` has nothing to go back to.

        Raises:
            ConfirmationRequiredError: Unless ``confirm`` is ``True``.
        """
        if not confirm:
            raise ConfirmationRequiredError("Clearing the original DUID requires explicit confirmation")
        return self.platform.store.clear()
