"""External command execution."""

from .runner import (
    CommandResult,
    CommandRunner,
    CommandRunnerError,
    CommandSpawnError,
    CommandTimeoutError,
)

__all__ = [
    "CommandResult",
    "CommandRunner",
    "CommandRunnerError",
    "CommandSpawnError",
    "CommandTimeoutError",
]
