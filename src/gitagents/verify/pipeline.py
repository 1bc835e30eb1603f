"""Run verification steps and aggregate their results."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator

from ..process import CommandRunner, CommandRunnerError
from .definitions import StepDefinition, SubsystemDefinition

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_LIMIT = 2000


def truncate_output(text: str, limit: int = DEFAULT_OUTPUT_LIMIT) -> str:
    return text if len(text) <= limit else text[:limit]


@dataclass(slots=True, frozen=True)
class VerificationStepResult:
    passed: bool
    output: str
    duration_ms: int


@dataclass(slots=True)
class SubsystemResult:
    name: str
    steps: dict[str, VerificationStepResult] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return all(step.passed for step in self.steps.values())


@dataclass(slots=True)
class VerificationResult:
    """Step results grouped by subsystem; passes only if every step passed."""

    subsystems: list[SubsystemResult] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(subsystem.passed for subsystem in self.subsystems)

    def subsystem(self, name: str) -> SubsystemResult:
        for subsystem in self.subsystems:
            if subsystem.name == name:
                return subsystem
        raise KeyError(name)

    def failures(self) -> Iterator[tuple[str, str, VerificationStepResult]]:
        for subsystem in self.subsystems:
            for step_name, step in subsystem.steps.items():
                if not step.passed:
                    yield subsystem.name, step_name, step

    def to_dict(self, output_limit: int = DEFAULT_OUTPUT_LIMIT) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "subsystems": {
                subsystem.name: {
                    "passed": subsystem.passed,
                    "steps": {
                        name: {
                            "passed": step.passed,
                            "durationMs": step.duration_ms,
                            "output": "" if step.passed else truncate_output(step.output, output_limit),
                        }
                        for name, step in subsystem.steps.items()
                    },
                }
                for subsystem in self.subsystems
            },
        }


StepCallback = Callable[[str, str, VerificationStepResult], None]


class VerificationPipeline:
    """Run every step of every subsystem, in order, without short-circuiting."""

    def __init__(
        self,
        subsystems: Iterable[SubsystemDefinition],
        *,
        runner: CommandRunner | None = None,
        step_timeout: float = 5 * 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._subsystems = list(subsystems)
        self._runner = runner or CommandRunner()
        self._step_timeout = step_timeout
        self._clock = clock

    @property
    def subsystems(self) -> list[SubsystemDefinition]:
        return list(self._subsystems)

    async def run(self, cwd: Path, *, on_step: StepCallback | None = None) -> VerificationResult:
        result = VerificationResult()
        for definition in self._subsystems:
            directory = Path(cwd) / definition.directory if definition.directory else Path(cwd)
            subsystem = SubsystemResult(name=definition.name)
            for step in definition.steps:
                outcome = await self._run_step(step, directory)
                subsystem.steps[step.name] = outcome
                logger.info(
                    "Verification step finished",
                    extra={
                        "subsystem": definition.name,
                        "step": step.name,
                        "passed": outcome.passed,
                        "duration_ms": outcome.duration_ms,
                    },
                )
                if on_step is not None:
                    on_step(definition.name, step.name, outcome)
            result.subsystems.append(subsystem)
        return result

    async def _run_step(self, step: StepDefinition, cwd: Path) -> VerificationStepResult:
        program, *args = step.command
        started = self._clock()
        try:
            completed = await self._runner.run(program, args, cwd=cwd, timeout=self._step_timeout)
        except CommandRunnerError as exc:
            return VerificationStepResult(
                passed=False,
                output=str(exc),
                duration_ms=int((self._clock() - started) * 1000),
            )
        return VerificationStepResult(
            passed=completed.ok,
            output=completed.output,
            duration_ms=int((self._clock() - started) * 1000),
        )


__all__ = [
    "SubsystemResult",
    "VerificationPipeline",
    "VerificationResult",
    "VerificationStepResult",
    "truncate_output",
]
