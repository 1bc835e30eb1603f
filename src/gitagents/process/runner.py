"""Async runner for external commands."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Sequence

from .utils import sanitize_environment

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0


class CommandRunnerError(RuntimeError):
    """Base class for command runner errors."""


class CommandSpawnError(CommandRunnerError):
    """Raised when the program cannot be started at all."""

    def __init__(self, program: str, reason: str) -> None:
        super().__init__(f"Failed to start '{program}': {reason}")
        self.program = program
        self.reason = reason


class CommandTimeoutError(CommandRunnerError):
    """Raised when a command exceeds its timeout and is killed."""

    def __init__(self, program: str, timeout: float) -> None:
        super().__init__(f"'{program}' timed out after {timeout:g}s")
        self.program = program
        self.timeout = timeout


@dataclass(slots=True)
class CommandResult:
    """Holds the outcome of a spawned command."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return self.stdout + self.stderr


class CommandRunner:
    """Execute programs from an argument vector, never through a shell."""

    def __init__(self, *, default_timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self._default_timeout = default_timeout

    async def run(
        self,
        program: str,
        args: Sequence[str] = (),
        *,
        cwd: Path | str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """Run ``program`` with ``args`` to completion.

        A non-zero exit status is returned, not raised. Spawn failures raise
        :class:`CommandSpawnError`; an expired timeout kills the process,
        discards its output and raises :class:`CommandTimeoutError`.
        """

        return await self._invoke(
            program,
            tuple(args),
            cwd=Path(cwd) if cwd is not None else None,
            timeout=timeout if timeout is not None else self._default_timeout,
        )

    async def _invoke(
        self,
        program: str,
        args: tuple[str, ...],
        *,
        cwd: Path | None,
        timeout: float,
    ) -> CommandResult:
        cmd = (program, *args)
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(cwd) if cwd is not None else None,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=sanitize_environment(),
            )
        except OSError as exc:
            raise CommandSpawnError(program, exc.strerror or str(exc)) from exc

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(process.communicate(), timeout)
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            logger.warning("Command timed out", extra={"program": program, "timeout": timeout})
            raise CommandTimeoutError(program, timeout) from exc

        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        returncode = process.returncode if process.returncode is not None else -1
        logger.debug(
            "Command finished",
            extra={"program": program, "argv": list(args), "returncode": returncode},
        )
        return CommandResult(args=cmd, returncode=returncode, stdout=stdout, stderr=stderr)


Responder = Callable[[tuple[str, ...], Path | None], CommandResult]


class FakeCommandRunner(CommandRunner):
    """Test double that replays scripted command results."""

    def __init__(
        self,
        responses: Iterable[CommandResult] | None = None,
        *,
        responder: Responder | None = None,
    ) -> None:
        super().__init__()
        self._responses = list(responses or [])
        self._responder = responder
        self._invocations: list[tuple[str, ...]] = []

    async def _invoke(  # type: ignore[override]
        self,
        program: str,
        args: tuple[str, ...],
        *,
        cwd: Path | None,
        timeout: float,
    ) -> CommandResult:
        cmd = (program, *args)
        self._invocations.append(cmd)
        if self._responder is not None:
            return self._responder(cmd, cwd)
        if self._responses:
            return self._responses.pop(0)
        return CommandResult(args=cmd, returncode=0, stdout="", stderr="")

    @property
    def invocations(self) -> list[tuple[str, ...]]:
        return self._invocations
