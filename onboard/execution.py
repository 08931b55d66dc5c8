"""Async command execution utilities."""

import asyncio
import logging
import os
import threading
from dataclasses import dataclass

DEFAULT_TIMEOUT = 30
QUERY_TIMEOUT = 10
INSTALL_TIMEOUT = 600
UNINSTALL_TIMEOUT = 300

_logging = logging.getLogger(__name__)


@dataclass
class CommandOutcome:
    output: str
    returncode: int
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out


async def run_command(
    command: str,
    timeout: float = DEFAULT_TIMEOUT,
    env: dict[str, str] | None = None,
    cwd: str | None = None,
) -> CommandOutcome:
    """Run a shell command and capture combined output.

    Never raises for a failing or hanging command: a timeout kills the
    process and is reported through ``timed_out``.
    """
    process = None
    try:
        _logging.debug(f"Running command: {command}")
        process = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env={**os.environ, **env} if env else None,
            cwd=cwd,
        )
        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=timeout
            )
        except asyncio.CancelledError:
            process.kill()
            raise
        except asyncio.TimeoutError:
            process.kill()
            _ = await process.wait()
            _logging.error(f"Command timed out after {timeout} seconds: {command}")
            return CommandOutcome(
                f"Command timed out after {timeout} seconds", 1, timed_out=True
            )
        output = stdout.decode(errors="replace").strip()
        err_text = stderr.decode(errors="replace").strip()
        if err_text:
            _logging.debug(f"stderr: {err_text}")
            output = f"{output}\n{err_text}" if output else err_text
        returncode = process.returncode if process.returncode is not None else 1
        return CommandOutcome(output, returncode)
    except OSError as e:
        _logging.error(f"Command execution failed: {type(e).__name__}: {e} | Command: {command}")
        return CommandOutcome(f"Error: {e}", 1)
    finally:
        if process:
            transport = getattr(process, "_transport", None)
            if transport:
                transport.close()


class CancelToken:
    """User-requested abort flag, safe to set from a signal handler."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


__all__ = [
    "DEFAULT_TIMEOUT",
    "QUERY_TIMEOUT",
    "INSTALL_TIMEOUT",
    "UNINSTALL_TIMEOUT",
    "CommandOutcome",
    "CancelToken",
    "run_command",
]
