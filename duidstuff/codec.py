"""DUID (DHCP Unique Identifier) encoding and decoding, RFC 8415.

Supports the four standard layouts (all integers big-endian):

====  =========  ======  ==================================================
Type  Name       Length  Fields
====  =========  ======  ==================================================
1     DUID_LLT   14      type(2) hwtype(2) time(4) lladdr(6)
2     DUID_EN    6+N     type(2) enterprise-number(4) identifier(N)
3     DUID_LL    10      type(2) hwtype(2) lladdr(6)
4     DUID_UUID  18      type(2) uuid(16)
====  =========  ======  ==================================================

A DUID is handled as plain immutable ``bytes``.  Decoding never fails on a
short buffer: only the fields covered by the buffer length are populated.
"""

import dataclasses
import datetime
import math
import os
import re
import struct
import time
from enum import IntEnum

from pydantic import TypeAdapter
from pydantic_extra_types.mac_address import MacAddress

DUID_MIN_LENGTH = 3
DUID_MAX_LENGTH = 130

HW_TYPE_ETHERNET = 1

# DUID-LLT time is counted from 2000-01-01T00:00:00Z
DUID_EPOCH_OFFSET = 946684800

# 9 = ciscoSystems, used as the fixed enterprise number for DUID-EN
DUID_EN_ENTERPRISE_NUMBER = 9

_HEX_SEPARATORS_RE = re.compile(r"[:\s-]")
_MAC_ADAPTER: TypeAdapter[MacAddress] = TypeAdapter(MacAddress)


class DuidError(Exception):
    """Base class for all duidstuff errors."""


class UnsupportedTypeError(DuidError):
    """Raised when asked to encode a DUID type outside 1..4."""


class DuidType(IntEnum):
    LLT = 1
    EN = 2
    LL = 3
    UUID = 4

    @property
    def type_name(self) -> str:
        return f"DUID_{self.name}"


DUID_TYPE_NAMES: dict[int, str] = {t.value: t.type_name for t in DuidType}


def parse_duid_type(text: str | int) -> DuidType:
    """Resolve ``LLT``/``EN``/``LL``/``UUID`` or ``1``..``4`` to a :class:`DuidType`."""
    if isinstance(text, int):
        try:
            return DuidType(text)
        except ValueError as exc:
            raise UnsupportedTypeError(f"Unknown DUID type: {text}") from exc

    key = text.strip().upper()
    if key.startswith("DUID_") or key.startswith("DUID-"):
        key = key[5:]
    if key.isdigit():
        return parse_duid_type(int(key))
    try:
        return DuidType[key]
    except KeyError as exc:
        raise UnsupportedTypeError(f"Unknown DUID type: {text}") from exc


@dataclasses.dataclass(frozen=True)
class ParsedDuid:
    """Decoded view of a DUID.

    ``type`` is the integer type tag, or the string ``"unknown"`` when the
    buffer is too short to even hold a tag.  Callers must treat
    ``type_name == "unknown"`` as not decodable.
    """

    type: int | str
    type_name: str
    raw: str
    hw_type: int | None = None
    time: int | None = None
    time_date: datetime.datetime | None = None
    lladdr: str | None = None
    enterprise_number: int | None = None
    identifier: str | None = None
    uuid: str | None = None

    @property
    def is_known(self) -> bool:
        return self.type_name != "unknown"

    def as_rows(self) -> list[list[str]]:
        """Return ``[label, value]`` rows for the populated fields."""
        rows = [["Raw", self.raw], ["Type", f"{self.type_name} ({self.type})"]]
        if self.lladdr is not None:
            rows.append(["Link-layer address", self.lladdr])
        if self.hw_type is not None:
            hw_name = "Ethernet" if self.hw_type == HW_TYPE_ETHERNET else "Other"
            rows.append(["Hardware type", f"{self.hw_type} ({hw_name})"])
        if self.time_date is not None:
            rows.append(["Timestamp", self.time_date.isoformat()])
        if self.uuid is not None:
            rows.append(["UUID", self.uuid])
        if self.enterprise_number is not None:
            rows.append(["Enterprise number", str(self.enterprise_number)])
            rows.append(["Identifier", self.identifier or ""])
        return rows


def random_mac() -> str:
    """Return a random unicast, locally administered MAC as lowercase colon hex."""
    raw = bytearray(os.urandom(6))
    raw[0] = (raw[0] | 0x02) & 0xFE
    return bytes_to_mac(bytes(raw))


def normalize_mac(mac: str) -> str:
    """Validate a 48-bit MAC (``:``, ``-`` or dotted form) and return it as lowercase colon hex.

    Raises:
        ValueError: If ``mac`` is not a 6-byte link-layer address.
    """
    normalized = str(_MAC_ADAPTER.validate_python(mac.strip()))
    if normalized.count(":") != 5:
        raise ValueError(f"Not a 48-bit MAC address: {mac!r}")
    return normalized


def mac_to_bytes(mac: str) -> bytes:
    return bytes(int(b, 16) for b in normalize_mac(mac).split(":"))


def bytes_to_mac(raw: bytes) -> str:
    return ":".join(f"{b:02x}" for b in raw)


def encode(duid_type: int, mac: str | None = None) -> bytes:
    """Build a DUID of ``duid_type``.

    Args:
        duid_type: One of :class:`DuidType` (plain ints accepted).
        mac: Link-layer address to embed.  A random locally administered
            address is generated when omitted.

    Raises:
        UnsupportedTypeError: For a type outside 1..4.
        ValueError: If ``mac`` is not ``xx:xx:xx:xx:xx:xx``.
    """
    if duid_type not in DUID_TYPE_NAMES:
        raise UnsupportedTypeError(f"Unknown DUID type: {duid_type}")

    lladdr = mac_to_bytes(mac if mac else random_mac())

    if duid_type == DuidType.LLT:
        duid_time = math.floor(time.time()) - DUID_EPOCH_OFFSET
        return struct.pack("!HHI", DuidType.LLT, HW_TYPE_ETHERNET, duid_time) + lladdr

    if duid_type == DuidType.EN:
        return struct.pack("!HI", DuidType.EN, DUID_EN_ENTERPRISE_NUMBER) + lladdr

    if duid_type == DuidType.LL:
        return struct.pack("!HH", DuidType.LL, HW_TYPE_ETHERNET) + lladdr

    # DUID-UUID: random v4 UUID, version nibble and variant bits forced
    buf = bytearray(struct.pack("!H", DuidType.UUID) + os.urandom(16))
    buf[8] = (buf[8] & 0x0F) | 0x40
    buf[10] = (buf[10] & 0x3F) | 0x80
    return bytes(buf)


def decode(data: bytes) -> ParsedDuid:
    """Decode a DUID buffer into a :class:`ParsedDuid`.

    Buffers shorter than two bytes yield ``type="unknown"``.  A recognized
    type tag on a buffer shorter than that type's fixed layout yields only
    ``type``/``type_name``/``raw``.
    """
    data = bytes(data or b"")
    if len(data) < 2:
        return ParsedDuid(type="unknown", type_name="unknown", raw=format_colon_hex(data))

    (duid_type,) = struct.unpack_from("!H", data, 0)
    base = {"type": duid_type, "type_name": DUID_TYPE_NAMES.get(duid_type, "unknown"), "raw": format_colon_hex(data)}

    if duid_type == DuidType.LLT and len(data) >= 14:
        hw_type, duid_time = struct.unpack_from("!HI", data, 2)
        return ParsedDuid(
            **base,
            hw_type=hw_type,
            time=duid_time,
            time_date=datetime.datetime.fromtimestamp(duid_time + DUID_EPOCH_OFFSET, tz=datetime.timezone.utc),
            lladdr=bytes_to_mac(data[8:14]),
        )

    if duid_type == DuidType.EN and len(data) >= 6:
        (enterprise_number,) = struct.unpack_from("!I", data, 2)
        return ParsedDuid(**base, enterprise_number=enterprise_number, identifier=data[6:].hex())

    if duid_type == DuidType.LL and len(data) >= 10:
        (hw_type,) = struct.unpack_from("!H", data, 2)
        return ParsedDuid(**base, hw_type=hw_type, lladdr=bytes_to_mac(data[4:10]))

    if duid_type == DuidType.UUID and len(data) >= 18:
        u = data[2:18].hex()
        return ParsedDuid(**base, uuid=f"{u[0:8]}-{u[8:12]}-{u[12:16]}-{u[16:20]}-{u[20:32]}")

    return ParsedDuid(**base)


def to_hex_text(data: bytes) -> str:
    return bytes(data).hex().upper()


def from_hex_text(text: str) -> bytes:
    """Parse hex text, ignoring ``:``, ``-`` and whitespace separators.

    Raises:
        ValueError: On an odd number of digits or non-hex characters.
    """
    cleaned = _HEX_SEPARATORS_RE.sub("", text)
    if len(cleaned) % 2:
        raise ValueError(f"Hex DUID has an odd number of digits: {text!r}")
    return bytes.fromhex(cleaned)


def format_colon_hex(data: bytes) -> str:
    return ":".join(f"{b:02X}" for b in bytes(data))


# names used by the controller and the CLI
generate_duid = encode
parse_duid = decode
