"""Read-only planning and status reporting for waves."""

from __future__ import annotations

import shlex
from typing import Mapping

from ..errors import WaveNotFoundError
from ..git import AgentBranchInfo
from .registry import BUILTIN_WAVES, Wave

DISPATCH_PROGRAM = "gitagents"


class WavePlanner:
    """Report waves and the commands that would run them.

    The planner never launches agents. Running the dispatched commands, in
    parallel or not, is left to the operator.
    """

    def __init__(self, waves: Mapping[int, Wave] | None = None) -> None:
        self._waves = waves if waves is not None else BUILTIN_WAVES

    def waves(self) -> list[Wave]:
        return [self._waves[number] for number in sorted(self._waves)]

    def get(self, number: int) -> Wave:
        try:
            return self._waves[number]
        except KeyError as exc:
            raise WaveNotFoundError(number, self._waves.keys()) from exc

    def dispatch_commands(self, number: int, *, program: str = DISPATCH_PROGRAM) -> list[str]:
        """Shell-ready ``agent run`` invocations for every task of a wave."""

        wave = self.get(number)
        return [
            shlex.join([program, "agent", "run", task.agent_name, task.task])
            for task in wave.tasks
        ]

    def status(self, branches: list[AgentBranchInfo], number: int | None = None) -> list[AgentBranchInfo]:
        """Filter branch inventory down to one wave, or to all waves.

        Matching is a substring test on the agent name, so ``wave1`` also
        matches ``wave10-*`` agents.
        """

        if number is not None:
            self.get(number)
        tag = f"wave{number}" if number is not None else "wave"
        return [branch for branch in branches if tag in branch.agent_name]


__all__ = ["DISPATCH_PROGRAM", "WavePlanner"]
