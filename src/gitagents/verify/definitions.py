"""Verification step definitions and YAML loading."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..errors import GitAgentError


class PipelineConfigError(GitAgentError):
    """Raised when a verification definition file cannot be used."""


class StepDefinition(BaseModel):
    """A named external command, given as an argument vector."""

    name: str = Field(..., description="Step name shown to the operator, e.g. 'lint'.")
    command: list[str] = Field(..., min_length=1, description="Program followed by its arguments.")

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Step name must not be empty")
        return normalized


class SubsystemDefinition(BaseModel):
    """Ordered steps that run in one directory and pass or fail together."""

    name: str
    directory: str | None = Field(
        default=None,
        description="Working directory relative to the repository root.",
    )
    steps: list[StepDefinition] = Field(..., min_length=1)

    @field_validator("steps", mode="before")
    @classmethod
    def _ensure_list(cls, value: Any):  # type: ignore[override]
        if isinstance(value, dict):
            return [{"name": name, "command": command} for name, command in value.items()]
        return value


def _gradle() -> str:
    return "gradlew.bat" if os.name == "nt" else "./gradlew"


def default_subsystems() -> list[SubsystemDefinition]:
    """Backend build/test through Gradle, frontend type-check/lint/test through npm."""

    gradle = _gradle()
    return [
        SubsystemDefinition(
            name="backend",
            steps=[
                StepDefinition(name="build", command=[gradle, "build", "-x", "test"]),
                StepDefinition(name="test", command=[gradle, "test"]),
            ],
        ),
        SubsystemDefinition(
            name="frontend",
            directory="sam-dashboard",
            steps=[
                StepDefinition(name="type-check", command=["npx", "tsc", "--noEmit"]),
                StepDefinition(name="lint", command=["npm", "run", "lint"]),
                StepDefinition(name="test", command=["npm", "test", "--", "--run"]),
            ],
        ),
    ]


def load_subsystems(path: Path) -> list[SubsystemDefinition]:
    """Load subsystem definitions from a YAML file.

    The document is either a list of subsystems or a mapping with a
    ``subsystems`` key.
    """

    try:
        document = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise PipelineConfigError(f"Could not read verification file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise PipelineConfigError(f"Failed to parse YAML in {path}: {exc}") from exc

    if isinstance(document, dict):
        document = document.get("subsystems")
    if not isinstance(document, list) or not document:
        raise PipelineConfigError(f"Verification file {path} must define a non-empty list of subsystems")

    try:
        return [SubsystemDefinition.model_validate(item) for item in document]
    except ValidationError as exc:
        raise PipelineConfigError(f"Verification definition error in {path}: {exc}") from exc


__all__ = [
    "PipelineConfigError",
    "StepDefinition",
    "SubsystemDefinition",
    "default_subsystems",
    "load_subsystems",
]
