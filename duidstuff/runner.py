"""External command execution for the platform adapters.

Every OS mechanism (``networksetup``, ``nmcli``, ``reg``, ...) goes through a
:class:`CommandRunner` so tests can substitute a fake.  Steps that are allowed
to fail silently are wrapped in :func:`best_effort`.
"""

import subprocess
from typing import Any, Callable, Sequence, TypeVar

from loguru import logger

from duidstuff.codec import DuidError

T = TypeVar("T")


class CommandError(DuidError):
    """Raised when an external command cannot be run or exits non-zero."""

    def __init__(self, cmd: Sequence[str], returncode: int | None, stderr: str = "") -> None:
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = stderr.strip()
        detail = f"exit code {returncode}" if returncode is not None else "could not be started"
        msg = f"Command {' '.join(self.cmd)!r} failed ({detail})"
        if self.stderr:
            msg += f": {self.stderr}"
        super().__init__(msg)


class CommandRunner:
    """Run external commands synchronously and return their stdout.

    Args:
        timeout: Seconds before a command is killed (``None`` = wait forever).
    """

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout
        self._log = logger.bind(classname="CommandRunner")

    def run(self, cmd: Sequence[str], check: bool = True) -> str:
        """Run ``cmd`` and return its stdout.

        Raises:
            CommandError: If the command is missing, times out, or (with
                ``check=True``) exits non-zero.
        """
        self._log.debug(f"exec: {' '.join(cmd)}")
        try:
            result = subprocess.run(list(cmd), capture_output=True, text=True, timeout=self.timeout)
        except FileNotFoundError as exc:
            raise CommandError(cmd, None, str(exc)) from exc
        except subprocess.TimeoutExpired as exc:
            raise CommandError(cmd, None, f"timed out after {self.timeout}s") from exc

        if check and result.returncode != 0:
            raise CommandError(cmd, result.returncode, result.stderr)
        return result.stdout

    def succeeds(self, cmd: Sequence[str]) -> bool:
        """Return whether ``cmd`` runs and exits zero."""
        try:
            self.run(cmd)
        except CommandError:
            return False
        return True


def best_effort(step: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T | None:
    """Call ``fn`` and swallow any failure, logging it at debug level.

    Only for steps whose failure must not abort the surrounding operation
    (IPv6 toggling, lease clearing, service reloads).

    Returns:
        ``fn``'s result, or ``None`` if it raised.
    """
    try:
        return fn(*args, **kwargs)
    except Exception as exc:
        logger.bind(classname="best_effort").debug(f"{step} failed (ignored): {exc}")
        return None


def ps_quote(value: str) -> str:
    """Quote ``value`` as a single-quoted PowerShell string literal."""
    return "'" + value.replace("'", "''") + "'"
