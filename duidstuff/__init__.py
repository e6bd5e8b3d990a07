"""duidstuff: inspect, spoof and restore the DHCPv6 DUID of a host.

Encodes and decodes the four RFC 8415 DUID types, reads and writes the
active DUID through each OS's own mechanism (macOS DHCP client database,
systemd-networkd / dhclient / NetworkManager on Linux, the Tcpip6 registry
key on Windows), and keeps the first DUID ever observed so it can be
restored later.

Typical usage::

    from duidstuff import DuidController, DuidType

    ctl = DuidController()
    ctl.randomize(DuidType.LLT, iface="en0")
    ...
    ctl.restore(iface="en0")

CLI: ``python -m duidstuff --help``.
"""

import os
import sys

from loguru import logger

__version__ = "0.1.0"

from duidstuff.codec import (
    DuidError,
    DuidType,
    ParsedDuid,
    UnsupportedTypeError,
    format_colon_hex,
    from_hex_text,
    generate_duid,
    parse_duid,
    random_mac,
    to_hex_text,
)
from duidstuff.controller import (
    ConfirmationRequiredError,
    DuidController,
    InterfaceMacUnavailableError,
    MissingInterfaceError,
)
from duidstuff.duidconfig import DuidStuffConfig, load_config
from duidstuff.platforms import (
    DuidWriteError,
    RestoreResult,
    UnsupportedDhcpClientError,
    UnsupportedPlatformError,
    create_platform,
)
from duidstuff.runner import CommandError
from duidstuff.store import OriginalDuidStore, OriginalStoreError

__all__ = [
    "__version__",
    "configure_logging",
    "CommandError",
    "ConfirmationRequiredError",
    "DuidController",
    "DuidError",
    "DuidStuffConfig",
    "DuidType",
    "DuidWriteError",
    "InterfaceMacUnavailableError",
    "MissingInterfaceError",
    "OriginalDuidStore",
    "OriginalStoreError",
    "ParsedDuid",
    "RestoreResult",
    "UnsupportedDhcpClientError",
    "UnsupportedPlatformError",
    "UnsupportedTypeError",
    "create_platform",
    "format_colon_hex",
    "from_hex_text",
    "generate_duid",
    "load_config",
    "parse_duid",
    "random_mac",
    "to_hex_text",
]

logger_fmt: str = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{module}</cyan>::<cyan>{extra[classname]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"


def _loguru_skiplog_filter(record: dict) -> bool:  # type: ignore[type-arg]
    return not record.get("extra", {}).get("skiplog", False)


def configure_logging() -> None:
    """(Re)install the stderr loguru handler at ``LOGURU_LEVEL`` (default DEBUG)."""
    logger.remove()  # remove default-handler
    logger.add(
        sys.stderr,
        level=os.getenv("LOGURU_LEVEL", "DEBUG"),
        format=logger_fmt,
        filter=_loguru_skiplog_filter,  # type: ignore[arg-type]
    )
    logger.configure(extra={"classname": "None", "skiplog": False})
