"""Process runner with concurrent output relay and reliable termination.

run-vstest runtime module v0.1.0

This module provides:
- Cross-platform subprocess isolation (new session/process group)
- Concurrent line-oriented draining of stdout and stderr
- Reliable termination with graceful shutdown (SIGTERM -> timeout -> SIGKILL)
- Cancel-safe cleanup using asyncio.shield

Key design points:
- The child receives a single pre-escaped argument string, which is split
  with Windows command-line rules into argv before launch
- stdout and stderr each get their own reader; both are joined before the
  final wait so a full pipe buffer on either side cannot deadlock the child
- Cancellation terminates the process group, not just the main process
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import subprocess
import sys
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import anyio

from ..escaping import split_command_line
from .errors import ProcessStartError

__all__ = [
    "LineCallback",
    "ProcessRunner",
    "ProcessSpec",
]

logger = logging.getLogger(__name__)

# Callback receiving one decoded output line (without the line terminator)
LineCallback = Callable[[str], None]

# Platform detection
IS_WINDOWS = sys.platform == "win32"

# Default timeouts
DEFAULT_TERM_TIMEOUT = 2.0  # seconds to wait after SIGTERM
DEFAULT_KILL_TIMEOUT = 1.0  # seconds to wait after SIGKILL

READ_CHUNK_SIZE = 4096


@dataclass(frozen=True)
class ProcessSpec:
    """Specification for a subprocess to run.

    Attributes:
        executable: Path of the program to start
        arguments: Pre-escaped argument string (tokens joined by single spaces)
        cwd: Working directory for the process (None = inherit parent)
        env: Environment variables (None = inherit parent)
    """

    executable: Path
    arguments: str = ""
    cwd: Path | None = None
    env: Mapping[str, str] | None = None

    @property
    def argv(self) -> list[str]:
        """Full argv, executable first, as the child will see it."""
        return [str(self.executable), *split_command_line(self.arguments)]


@dataclass
class ProcessRunner:
    """Cross-platform process runner with output relay and reliable termination.

    This class manages subprocess execution with:
    - Process group/session isolation to prevent SIGINT propagation
    - One reader per output stream, joined before waiting for exit
    - Graceful termination (SIGTERM -> timeout -> SIGKILL) on early exit
    - Cancel-safe cleanup

    Example:
        runner = ProcessRunner()
        spec = ProcessSpec(
            executable=Path("/opt/tools/vstest.console.exe"),
            arguments="--nologo /t/tests.dll",
        )

        exit_code = await runner.run(spec, on_stdout=print, on_stderr=print)
    """

    term_timeout: float = DEFAULT_TERM_TIMEOUT
    kill_timeout: float = DEFAULT_KILL_TIMEOUT

    async def run(
        self,
        spec: ProcessSpec,
        *,
        on_stdout: LineCallback | None = None,
        on_stderr: LineCallback | None = None,
    ) -> int:
        """Run subprocess to completion and return its exit code.

        This method:
        1. Starts the subprocess in an isolated process group/session
        2. Drains stdout and stderr concurrently, one line per callback call
        3. Waits for both readers, then for the process to exit
        4. Ensures cleanup even if cancelled

        Args:
            spec: Process specification
            on_stdout: Optional callback for each stdout line
            on_stderr: Optional callback for each stderr line

        Returns:
            The process exit code, verbatim

        Raises:
            ProcessStartError: If the executable cannot be started
        """
        process: asyncio.subprocess.Process | None = None

        argv = spec.argv
        kwargs = self._build_subprocess_kwargs(spec)

        try:
            try:
                process = await asyncio.create_subprocess_exec(
                    *argv,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    **kwargs,
                )
            except OSError as e:
                raise ProcessStartError(spec.executable, e) from e

            logger.debug(
                f"Started subprocess pid={process.pid} "
                f"executable={spec.executable} cwd={spec.cwd}"
            )

            async with anyio.create_task_group() as tg:
                tg.start_soon(self._drain_lines, process.stdout, on_stdout)
                tg.start_soon(self._drain_lines, process.stderr, on_stderr)

            returncode = await process.wait()

            logger.debug(
                f"Subprocess completed pid={process.pid} "
                f"returncode={returncode}"
            )
            return returncode

        finally:
            # Ensure cleanup with shield to prevent cancel interruption
            await self._safe_cleanup(process)

    def _build_subprocess_kwargs(self, spec: ProcessSpec) -> dict[str, Any]:
        """Build platform-specific subprocess kwargs.

        Args:
            spec: Process specification

        Returns:
            Dict of kwargs for asyncio.create_subprocess_exec
        """
        kwargs: dict[str, Any] = {}

        if spec.cwd is not None:
            kwargs["cwd"] = spec.cwd

        # Environment
        if spec.env is not None:
            kwargs["env"] = dict(spec.env)

        # Platform-specific isolation
        if IS_WINDOWS:
            # Windows: CREATE_NEW_PROCESS_GROUP
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            # POSIX: start_new_session (equivalent to setsid)
            kwargs["start_new_session"] = True

        return kwargs

    async def _drain_lines(
        self,
        stream: asyncio.StreamReader | None,
        on_line: LineCallback | None,
    ) -> None:
        """Read a stream to EOF and hand every complete line to on_line.

        Reads fixed-size chunks rather than readline() so that a single
        line larger than the StreamReader limit is still delivered whole.
        Consumed bytes are dropped once per chunk, so a very long line is
        accumulated in linear time.

        Args:
            stream: stdout or stderr of the subprocess
            on_line: Optional callback for each decoded line
        """
        if stream is None:
            return

        buffer = bytearray()

        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                # Final unterminated line
                if buffer:
                    self._emit_line(bytes(buffer), on_line)
                break

            # Only the new chunk can contain a terminator
            search_from = len(buffer)
            buffer += chunk
            start = 0
            newline = buffer.find(b"\n", search_from)
            while newline != -1:
                self._emit_line(bytes(buffer[start:newline]), on_line)
                start = newline + 1
                newline = buffer.find(b"\n", start)
            if start:
                del buffer[:start]

    @staticmethod
    def _emit_line(line_bytes: bytes, on_line: LineCallback | None) -> None:
        if on_line is None:
            return
        on_line(line_bytes.rstrip(b"\r").decode("utf-8", errors="replace"))

    async def _safe_cleanup(
        self,
        process: asyncio.subprocess.Process | None,
    ) -> None:
        """Terminate the subprocess if still running, shielded from cancellation."""
        if process is None or process.returncode is not None:
            return
        try:
            await asyncio.shield(self._terminate_process(process))
        except asyncio.CancelledError:
            await self._terminate_process(process)
            raise

    async def _terminate_process(
        self,
        process: asyncio.subprocess.Process,
    ) -> None:
        """Stop the process group: polite signal first, forced kill after term_timeout."""
        pid = process.pid
        phases = ((False, self.term_timeout), (True, self.kill_timeout))

        for force, timeout in phases:
            if process.returncode is not None:
                return
            logger.debug(f"{'Killing' if force else 'Terminating'} subprocess pid={pid}")
            try:
                _signal_process_group(process, force)
            except ProcessLookupError:
                return
            except OSError as e:
                logger.warning(f"Error signalling subprocess pid={pid}: {e}")
                return
            try:
                await asyncio.wait_for(process.wait(), timeout=timeout)
                logger.debug(f"Subprocess exited pid={pid} returncode={process.returncode}")
                return
            except asyncio.TimeoutError:
                pass

        logger.warning(f"Subprocess did not exit after kill pid={pid}")


def _signal_process_group(process: asyncio.subprocess.Process, force: bool) -> None:
    """Signal the whole group created at launch.

    POSIX: SIGTERM/SIGKILL to the session's process group.
    Windows: CTRL_BREAK_EVENT to the new process group, then kill().
    """
    if IS_WINDOWS:
        if force:
            process.kill()
            return
        try:
            os.kill(process.pid, signal.CTRL_BREAK_EVENT)
        except OSError:
            process.terminate()
        return

    sig = signal.SIGKILL if force else signal.SIGTERM
    try:
        os.killpg(os.getpgid(process.pid), sig)
    except PermissionError:
        process.send_signal(sig)
