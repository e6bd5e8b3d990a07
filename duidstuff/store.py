"""Persistent record of the original (pre-spoofing) DUID.

The record is written once, the first time anything is about to change the
active DUID, and is only removed by an explicit, confirmed clear.  It is a
small JSON document::

    {
      "duid": "000300011c1b0d0a0b0c",
      "storedAt": "2026-10-19T12:00:00+00:00",
      "platform": "linux",
      "hostname": "myhost"
    }

Older versions stored the raw DUID bytes instead; :meth:`OriginalDuidStore.load`
still reads those.

Two concurrent invocations can both see "absent" and race on the write; the
write-once guarantee holds for single-invocation use only.
"""

import datetime
import os
import socket
import tempfile
from pathlib import Path

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from duidstuff.codec import DuidError, from_hex_text
from duidstuff.duidconfig import StoreConfig


class OriginalStoreError(DuidError):
    """Raised when the original-DUID record cannot be written or removed."""


class OriginalDuidRecord(BaseModel):
    """Metadata stored alongside the original DUID."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    duid: str
    stored_at: datetime.datetime = Field(alias="storedAt")
    platform: str
    hostname: str

    @property
    def duid_bytes(self) -> bytes:
        return from_hex_text(self.duid)


class OriginalDuidStore:
    """Write-once file store for the original DUID.

    Args:
        platform_name: ``darwin``, ``linux`` or ``win32``; selects the
            system directory and is written into the record.
        config: Directory layout; defaults to :class:`StoreConfig`.
        path: Explicit record path, bypassing directory resolution.
    """

    def __init__(self, platform_name: str, config: StoreConfig | None = None, path: str | Path | None = None) -> None:
        self.platform_name = platform_name
        self.config = config or StoreConfig()
        self._path: Path | None = Path(path) if path is not None else None
        self._log = logger.bind(classname="OriginalDuidStore")

    def path(self) -> Path:
        """Canonical record location, resolved once per store.

        Uses the platform's system directory, creating it if needed, and falls
        back to the per-user directory when that is not possible.
        """
        if self._path is None:
            system_path = self.config.system_path(self.platform_name)
            try:
                system_path.parent.mkdir(parents=True, exist_ok=True, mode=0o755)
                self._path = system_path
            except OSError as exc:
                self._path = self.config.fallback_path(self.platform_name)
                self._log.debug(f"cannot use {system_path.parent} ({exc}), falling back to {self._path}")
        return self._path

    def has(self) -> bool:
        return self.path().is_file()

    def backup_if_absent(self, duid: bytes) -> bool:
        """Write the record unless one already exists.

        Returns:
            ``True`` if a record was written, ``False`` if one was already there.

        Raises:
            OriginalStoreError: If the record cannot be written.
        """
        path = self.path()
        if path.exists():
            return False

        record = OriginalDuidRecord(
            duid=bytes(duid).hex(),
            stored_at=datetime.datetime.now(datetime.timezone.utc),
            platform=self.platform_name,
            hostname=socket.gethostname(),
        )
        payload = record.model_dump_json(by_alias=True, indent=2)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".duid-", dir=path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(payload)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise OriginalStoreError(f"Could not write original DUID record to {path}: {exc}") from exc

        self._log.info(f"Original DUID stored for future restoration at {path}")
        return True

    def record(self) -> OriginalDuidRecord | None:
        """Return the structured record, or ``None`` for a missing or legacy file."""
        path = self.path()
        try:
            return OriginalDuidRecord.model_validate_json(path.read_bytes())
        except (OSError, ValidationError):
            return None

    def load(self) -> bytes | None:
        """Return the original DUID bytes, or ``None`` when there is no usable record.

        The structured JSON format is tried first, then the legacy raw-bytes
        format.
        """
        path = self.path()
        try:
            content = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            self._log.warning(f"Cannot read original DUID record {path}: {exc}")
            return None

        for parse in (self._parse_record, self._parse_legacy):
            duid = parse(content)
            if duid:
                return duid
        return None

    @staticmethod
    def _parse_record(content: bytes) -> bytes | None:
        try:
            return OriginalDuidRecord.model_validate_json(content).duid_bytes
        except (ValidationError, ValueError):
            return None

    @staticmethod
    def _parse_legacy(content: bytes) -> bytes | None:
        return content or None

    def clear(self) -> bool:
        """Delete the record.  Callers must have confirmation from the operator.

        Returns:
            Whether a record was deleted.
        """
        path = self.path()
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise OriginalStoreError(f"Could not remove original DUID record {path}: {exc}") from exc
        self._log.warning(f"Original DUID record {path} removed")
        return True
